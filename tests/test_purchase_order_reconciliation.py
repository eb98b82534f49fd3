"""
Tests for purchase order quantity override and received quantity write back
"""
import logging

import pytest
from sqlalchemy.orm import Session

from evdms.core.exceptions import NotFoundError
from evdms.models import PurchaseOrder, PurchaseOrderItem
from evdms.services.purchase_orders import PurchaseOrderReconciler


class TestPurchaseOrderReconciler:
    """Test suite for PurchaseOrderReconciler"""

    def test_match_line_by_part_id(self, db_session: Session, purchase_order, part):
        """Linked part id is the strongest match"""
        line = PurchaseOrderReconciler.match_line(purchase_order, part)
        assert line.quantity == 50

    def test_match_line_by_name_then_number(self, db_session: Session, make_part):
        """Unlinked PO lines match by name, then by number, ignoring case and spaces"""
        by_name = make_part(part_name="Battery Coolant", part_number="BC-220")
        by_number = make_part(part_name="Charging Port Cover", part_number="CP-031")
        order = PurchaseOrder(po_number="PO-2026-0002", status="APPROVED")
        order.items.append(PurchaseOrderItem(part_name=" battery COOLANT", quantity=11))
        order.items.append(PurchaseOrderItem(part_name="Port cover (old name)", part_number="cp-031 ", quantity=7))
        db_session.add(order)
        db_session.commit()

        assert PurchaseOrderReconciler.match_line(order, by_name).quantity == 11
        assert PurchaseOrderReconciler.match_line(order, by_number).quantity == 7

    def test_unknown_purchase_order(self, db_session: Session):
        """Reading a missing PO is not found"""
        with pytest.raises(NotFoundError):
            PurchaseOrderReconciler(db_session).get_purchase_order_with_items(404)

    def test_scenario_c_po_quantity_overrides_request(self, db_session: Session, create_issue, part, purchase_order):
        """The PO's ordered quantity replaces the quantity the client sent"""
        issue = create_issue(part, 10, purchase_order_id=purchase_order.id)

        assert issue.items[0].requested_qty == 50
        assert issue.purchase_order_id == purchase_order.id
        db_session.refresh(part)
        assert part.allocated == 50

    def test_no_matching_po_line_keeps_supplied_quantity(self, db_session: Session, create_issue, make_part, purchase_order, caplog):
        """A mismatch is logged and the caller's quantity stands"""
        coolant = make_part(part_name="Battery Coolant", part_number="BC-220")

        with caplog.at_level(logging.WARNING, logger="evdms"):
            issue = create_issue(coolant, 4, purchase_order_id=purchase_order.id)

        assert issue.items[0].requested_qty == 4
        assert any("No line on purchase order PO-2026-0001" in message for message in caplog.messages)

    def test_missing_purchase_order_fails_creation(self, create_issue, part):
        """A request cannot reference a PO that does not exist"""
        with pytest.raises(NotFoundError):
            create_issue(part, 5, purchase_order_id=404)

    def test_dispatch_accumulates_received_qty(self, db_session: Session, issue_service, create_issue, part, purchase_order):
        """Every dispatch adds its quantity to the PO line"""
        issue = create_issue(part, 10, purchase_order_id=purchase_order.id)
        issue = issue_service.approve_by_admin(issue.id)
        line_id = issue.items[0].id

        issue_service.dispatch(issue.id, [{"item_id": line_id, "quantity": 20}])
        issue_service.dispatch(issue.id, [{"item_id": line_id, "quantity": 30}])

        po_line = db_session.query(PurchaseOrderItem).filter_by(purchase_order_id=purchase_order.id).one()
        assert po_line.received_qty == 50
        assert issue_service.get_request(issue.id).items[0].dispatches[-1].sub_po_number.endswith("_2C")

    def test_dispatch_with_deleted_po_still_ships(self, db_session: Session, issue_service, create_issue, part, purchase_order, caplog):
        """Losing the PO only costs the write back"""
        issue = create_issue(part, 10, purchase_order_id=purchase_order.id)
        issue = issue_service.approve_by_admin(issue.id)
        line_id = issue.items[0].id
        purchase_order_id = purchase_order.id
        db_session.delete(purchase_order)
        db_session.commit()

        with caplog.at_level(logging.WARNING, logger="evdms"):
            issue = issue_service.dispatch(issue.id, [{"item_id": line_id, "quantity": 5}])

        assert issue.items[0].issued_qty == 5
        assert any(f"Purchase order {purchase_order_id} no longer exists" in m for m in caplog.messages)
