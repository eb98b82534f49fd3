"""
Central Inventory Ledger

Atomic increment/decrement operations on a central part's ``stock_quantity``
and ``allocated``. Every operation reads the part under a row lock, applies
the delta, checks ``0 <= allocated <= stock_quantity`` and flushes; the
caller's transaction decides when the change is committed.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from evdms.core.exceptions import LedgerConflictError, NotFoundError, ValidationError
from evdms.models.inventory import CentralInventoryPart

logger = logging.getLogger("evdms.inventory")


def _check_quantity(operation: str, part_id: int, qty: int) -> None:
    if qty is None or qty < 0:
        raise ValidationError(f"Quantity for {operation} must be zero or more", part_id=part_id, quantity=qty)


class CentralInventoryLedger:
    """Stock and allocation bookkeeping for the central warehouse"""

    def __init__(self, db: Session):
        self.db = db

    def get_part(self, part_id: int, lock: bool = False) -> CentralInventoryPart:
        """
        Load a central part, optionally with ``SELECT ... FOR UPDATE``.

        A locked read re-populates the instance from the row so that
        validation always sees the committed values of concurrent writers.
        """
        query = self.db.query(CentralInventoryPart).filter(CentralInventoryPart.id == part_id)
        if lock:
            self.db.flush()
            query = query.with_for_update().populate_existing()
        part = query.first()
        if part is None:
            raise NotFoundError("Central inventory part", part_id)
        return part

    def allocate(self, part_id: int, qty: int) -> CentralInventoryPart:
        """Promise ``qty`` units to an open request"""
        _check_quantity("allocate", part_id, qty)
        return self._apply("allocate", part_id, allocated_delta=qty)

    def deallocate(self, part_id: int, qty: int) -> CentralInventoryPart:
        """Release ``qty`` promised units"""
        _check_quantity("deallocate", part_id, qty)
        return self._apply("deallocate", part_id, allocated_delta=-qty)

    def withdraw(self, part_id: int, qty: int) -> CentralInventoryPart:
        """Physically remove ``qty`` units (dispatch)"""
        _check_quantity("withdraw", part_id, qty)
        return self._apply("withdraw", part_id, stock_delta=-qty)

    def deposit(self, part_id: int, qty: int) -> CentralInventoryPart:
        """Physically add ``qty`` units"""
        _check_quantity("deposit", part_id, qty)
        return self._apply("deposit", part_id, stock_delta=qty)

    def set_stock(self, part_id: int, stock_quantity: int) -> CentralInventoryPart:
        """Overwrite the on-hand quantity after a stock count"""
        if stock_quantity is None or stock_quantity < 0:
            raise ValidationError("Stock quantity must be zero or more", stock_quantity=stock_quantity)

        part = self.get_part(part_id, lock=True)
        return self._apply("set_stock", part_id, stock_delta=stock_quantity - part.stock_quantity, part=part)

    def _apply(
        self,
        operation: str,
        part_id: int,
        stock_delta: int = 0,
        allocated_delta: int = 0,
        part: Optional[CentralInventoryPart] = None
    ) -> CentralInventoryPart:
        if part is None:
            part = self.get_part(part_id, lock=True)

        new_stock = part.stock_quantity + stock_delta
        new_allocated = part.allocated + allocated_delta

        if new_stock < 0 or new_allocated < 0 or new_allocated > new_stock:
            raise LedgerConflictError(
                f"{operation} on {part.part_name} would leave stock={new_stock}, "
                f"allocated={new_allocated}",
                part_id=part.id,
                part_name=part.part_name,
                operation=operation,
                stock_quantity=new_stock,
                allocated=new_allocated,
            )

        part.stock_quantity = new_stock
        part.allocated = new_allocated
        self.db.flush()

        logger.debug(
            f"Ledger {operation} part={part.id} stock={new_stock} allocated={new_allocated}"
        )
        return part
