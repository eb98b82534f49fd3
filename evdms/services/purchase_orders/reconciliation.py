"""
Purchase Order Reconciliation

A parts issue may be tied to a purchase order. At creation the PO line's
ordered quantity replaces whatever quantity the client sent; at dispatch the
shipped quantity is accumulated onto the PO line's ``received_qty``.
Mismatches are logged and never fail the surrounding operation.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session, selectinload

from evdms.core.exceptions import NotFoundError, ValidationError
from evdms.models.inventory import CentralInventoryPart
from evdms.models.purchase_order import PurchaseOrder, PurchaseOrderItem
from evdms.services.inventory.part_resolver import normalize

logger = logging.getLogger(__name__)


class PurchaseOrderReconciler:
    """Reads PO quantities and writes back received quantities"""

    def __init__(self, db: Session):
        self.db = db

    def find_purchase_order(self, purchase_order_id: int) -> Optional[PurchaseOrder]:
        return (
            self.db.query(PurchaseOrder)
            .options(selectinload(PurchaseOrder.items))
            .filter(PurchaseOrder.id == purchase_order_id)
            .first()
        )

    def get_purchase_order_with_items(self, purchase_order_id: int) -> PurchaseOrder:
        purchase_order = self.find_purchase_order(purchase_order_id)
        if purchase_order is None:
            raise NotFoundError("Purchase order", purchase_order_id)
        return purchase_order

    @staticmethod
    def match_line(purchase_order: PurchaseOrder, part: CentralInventoryPart) -> Optional[PurchaseOrderItem]:
        """PO line for ``part``: by part id, then part name, then part number"""
        items = purchase_order.items

        for item in items:
            if item.central_inventory_part_id is not None and item.central_inventory_part_id == part.id:
                return item

        name_key = normalize(part.part_name)
        if name_key:
            for item in items:
                if normalize(item.part_name) == name_key:
                    return item

        number_key = normalize(part.part_number)
        if number_key:
            for item in items:
                if normalize(item.part_number) == number_key:
                    return item

        return None

    def override_quantity(self, purchase_order: PurchaseOrder, part: CentralInventoryPart, supplied_qty: int) -> int:
        """Ordered quantity from the PO line, or ``supplied_qty`` when no line matches"""
        line = self.match_line(purchase_order, part)
        if line is None:
            logger.warning(
                f"No line on purchase order {purchase_order.po_number} matches part "
                f"{part.part_name!r} ({part.part_number}); keeping requested quantity {supplied_qty}"
            )
            return supplied_qty

        if line.quantity != supplied_qty:
            logger.info(
                f"Requested quantity for {part.part_name!r} taken from purchase order "
                f"{purchase_order.po_number}: {supplied_qty} -> {line.quantity}"
            )
        return line.quantity

    def increment_received_qty(self, po_line_id: int, qty: int) -> PurchaseOrderItem:
        if qty is None or qty <= 0:
            raise ValidationError("Received quantity increment must be greater than zero", quantity=qty)

        line = (
            self.db.query(PurchaseOrderItem)
            .filter(PurchaseOrderItem.id == po_line_id)
            .with_for_update()
            .first()
        )
        if line is None:
            raise NotFoundError("Purchase order line", po_line_id)

        line.received_qty = (line.received_qty or 0) + qty
        self.db.flush()
        return line

    def record_dispatch(self, purchase_order_id: int, part: CentralInventoryPart, qty: int) -> Optional[PurchaseOrderItem]:
        """Accumulate a dispatched quantity onto the matching PO line, if any"""
        purchase_order = self.find_purchase_order(purchase_order_id)
        if purchase_order is None:
            logger.warning(
                f"Purchase order {purchase_order_id} no longer exists; "
                f"dispatch of {qty} x {part.part_name!r} not reconciled"
            )
            return None

        line = self.match_line(purchase_order, part)
        if line is None:
            logger.warning(
                f"No line on purchase order {purchase_order.po_number} matches dispatched part "
                f"{part.part_name!r} ({part.part_number}); received quantity not updated"
            )
            return None

        line = self.increment_received_qty(line.id, qty)
        logger.info(
            f"Purchase order {purchase_order.po_number} line {line.id} received_qty now {line.received_qty}"
        )
        return line
