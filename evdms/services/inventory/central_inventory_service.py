"""
Central Inventory Service
Catalogue queries and stock maintenance for the central warehouse
"""
import logging
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from evdms.core.database import run_in_transaction
from evdms.core.exceptions import ValidationError
from evdms.core.security import Identity, SYSTEM_IDENTITY, log_user_action
from evdms.models.inventory import CentralInventoryPart
from .central_ledger import CentralInventoryLedger
from .part_resolver import LIKE_ESCAPE, contains_pattern

logger = logging.getLogger(__name__)


def _ledger_snapshot(part: CentralInventoryPart) -> dict:
    return {
        "stock_quantity": part.stock_quantity,
        "allocated": part.allocated,
        "available": part.available,
    }


class CentralInventoryService:
    """List, create and restock central parts"""

    def __init__(self, db: Session, current_user: Optional[Identity] = None):
        self.db = db
        self.current_user = current_user or SYSTEM_IDENTITY
        self.ledger = CentralInventoryLedger(db)

    def list_parts(self, category: Optional[str] = None, search: Optional[str] = None) -> List[CentralInventoryPart]:
        query = self.db.query(CentralInventoryPart)
        if category:
            query = query.filter(CentralInventoryPart.category == category)
        if search:
            pattern = contains_pattern(search.strip())
            query = query.filter(or_(
                CentralInventoryPart.part_name.ilike(pattern, escape=LIKE_ESCAPE),
                CentralInventoryPart.part_number.ilike(pattern, escape=LIKE_ESCAPE),
            ))
        return query.order_by(CentralInventoryPart.part_name, CentralInventoryPart.id).all()

    def get_part(self, part_id: int) -> CentralInventoryPart:
        return self.ledger.get_part(part_id)

    def create_part(self, data: dict) -> CentralInventoryPart:
        """Register a new central part; ``allocated`` always starts at zero"""
        if not (data.get("part_name") or "").strip():
            raise ValidationError("Part name is required")
        if (data.get("stock_quantity") or 0) < 0:
            raise ValidationError("Stock quantity must be zero or more", stock_quantity=data.get("stock_quantity"))

        def work():
            part = CentralInventoryPart(**{**data, "part_name": data["part_name"].strip(), "allocated": 0})
            self.db.add(part)
            self.db.flush()
            log_user_action(
                db=self.db,
                user=self.current_user,
                action="CREATE_CENTRAL_PART",
                table="central_inventory_parts",
                key=str(part.id),
                new_values={"part_name": part.part_name, "part_number": part.part_number,
                            **_ledger_snapshot(part)},
                module="INVENTORY"
            )
            return part

        part = run_in_transaction(self.db, work)
        logger.info(f"Created central part {part.id} {part.part_name!r} with stock {part.stock_quantity}")
        return part

    def add_stock(self, part_id: int, quantity: int) -> CentralInventoryPart:
        """Deposit goods received into the central warehouse"""
        if quantity is None or quantity <= 0:
            raise ValidationError("Quantity must be greater than zero", quantity=quantity)

        def work():
            part = self.ledger.get_part(part_id, lock=True)
            before = _ledger_snapshot(part)
            part = self.ledger.deposit(part_id, quantity)
            log_user_action(
                db=self.db,
                user=self.current_user,
                action="ADD_CENTRAL_STOCK",
                table="central_inventory_parts",
                key=str(part_id),
                old_values=before,
                new_values={**_ledger_snapshot(part), "quantity": quantity},
                module="INVENTORY"
            )
            return part

        part = run_in_transaction(self.db, work)
        logger.info(f"Added {quantity} units to central part {part_id}, stock now {part.stock_quantity}")
        return part

    def set_stock(self, part_id: int, stock_quantity: int) -> CentralInventoryPart:
        """Overwrite on-hand stock; may not drop below what is already allocated"""

        def work():
            part = self.ledger.get_part(part_id, lock=True)
            before = _ledger_snapshot(part)
            if stock_quantity is not None and stock_quantity < part.allocated:
                raise ValidationError(
                    f"Stock for {part.part_name} cannot be set below the {part.allocated} units already allocated",
                    part_id=part_id,
                    stock_quantity=stock_quantity,
                    allocated=part.allocated,
                )
            part = self.ledger.set_stock(part_id, stock_quantity)
            log_user_action(
                db=self.db,
                user=self.current_user,
                action="SET_CENTRAL_STOCK",
                table="central_inventory_parts",
                key=str(part_id),
                old_values=before,
                new_values=_ledger_snapshot(part),
                module="INVENTORY"
            )
            return part

        part = run_in_transaction(self.db, work)
        logger.info(f"Set central part {part_id} stock to {part.stock_quantity}")
        return part
