"""
Service Center Inventory Ledger
Destination-side stock, incremented when a service center confirms receipt
"""
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from evdms.core.exceptions import ValidationError
from evdms.models.inventory import CentralInventoryPart, ServiceCenterInventory

logger = logging.getLogger("evdms.inventory")

# New destination rows get a ceiling of this multiple of the reorder level
MAX_STOCK_MULTIPLIER = 5


class ServiceCenterInventoryLedger:
    """Per service center stock; same shape as the central ledger, without allocation"""

    def __init__(self, db: Session):
        self.db = db

    def find_row(self, service_center_id: int, part: CentralInventoryPart):
        """Match by part number, or by name when the central part has no number"""
        query = self.db.query(ServiceCenterInventory).filter(
            ServiceCenterInventory.service_center_id == service_center_id
        )
        if part.part_number:
            query = query.filter(ServiceCenterInventory.part_number == part.part_number)
        else:
            query = query.filter(
                ServiceCenterInventory.part_number.is_(None),
                func.lower(ServiceCenterInventory.part_name) == part.part_name.strip().lower()
            )
        return query.with_for_update().first()

    def upsert_and_increment_stock(
        self,
        service_center_id: int,
        part: CentralInventoryPart,
        qty: int
    ) -> ServiceCenterInventory:
        """
        Deposit ``qty`` units of ``part`` at a service center.

        An existing row is incremented; otherwise a row is created carrying the
        central part's catalogue and pricing fields.
        """
        if qty is None or qty < 0:
            raise ValidationError("Deposit quantity must be zero or more", quantity=qty)

        row = self.find_row(service_center_id, part)
        if row is None:
            min_level = part.min_stock_level or 0
            row = ServiceCenterInventory(
                service_center_id=service_center_id,
                part_name=part.part_name,
                part_number=part.part_number,
                category=part.category or "",
                unit_price=part.unit_price or 0,
                cost_price=part.cost_price or 0,
                gst_rate=part.gst_rate or 0,
                min_stock_level=min_level,
                max_stock_level=min_level * MAX_STOCK_MULTIPLIER,
                stock_quantity=qty,
            )
            self.db.add(row)
            logger.info(
                f"Created stock row for {part.part_name} at service center {service_center_id} with {qty} units"
            )
        else:
            row.stock_quantity = (row.stock_quantity or 0) + qty
            logger.debug(
                f"Deposited {qty} x {part.part_name} at service center {service_center_id}, "
                f"now {row.stock_quantity}"
            )

        self.db.flush()
        return row
