"""
Tests for sub-order numbers on the dispatch ledger
"""
from datetime import datetime

from sqlalchemy.orm import Session

from evdms.models import PartsIssue
from evdms.services.document_numbers import parse_sequence
from evdms.services.parts_issue import build_sub_po_number


class TestSubPoNumber:
    """Test suite for build_sub_po_number"""

    def test_format(self):
        """PO {code} {ddmmyyyy} {center}_{request}_{dispatch}"""
        number = build_sub_po_number("CW", datetime(2026, 3, 7), "BLR01", 12, 2)
        assert number == "PO CW 07032026 BLR01_12_2"

    def test_fulfilled_suffix(self):
        """The completing dispatch carries a C suffix"""
        number = build_sub_po_number("CW", datetime(2026, 3, 7), "BLR01", 12, 3, fully_fulfilled=True)
        assert number == "PO CW 07032026 BLR01_12_3C"

    def test_issue_sequence_matches_document_number_parse(self):
        """The request component uses the shared document number parser"""
        issue = PartsIssue(issue_number="PI-2026-0042")
        assert issue.sequence == parse_sequence(issue.issue_number) == 42
        assert PartsIssue(issue_number="PI-2026-12345").sequence == 12345

    def test_request_sequence_is_unpadded(self, db_session: Session, issue_service, create_issue, part):
        """The request component is the issue number's sequence as an integer"""
        issue = create_issue(part, 2)
        issue = issue_service.approve_by_admin(issue.id)

        issue = issue_service.dispatch(issue.id, [{"item_id": issue.items[0].id, "quantity": 1}])

        record = issue.items[0].dispatches[0]
        expected = f"PO CW {record.dispatched_at.strftime('%d%m%Y')} BLR01_1_1"
        assert issue.issue_number.endswith("-0001")
        assert record.sub_po_number == expected

    def test_dispatch_sequence_is_per_line(self, issue_service, service_center, make_part):
        """Each line counts its own dispatches"""
        pad = make_part()
        coolant = make_part(part_name="Battery Coolant", part_number="BC-220")
        issue = issue_service.create_request({
            "to_service_center_id": service_center.id,
            "items": [
                {"central_inventory_part_id": pad.id, "requested_qty": 4},
                {"central_inventory_part_id": coolant.id, "requested_qty": 4},
            ],
        })
        issue = issue_service.approve_by_admin(issue.id)
        pad_line, coolant_line = issue.items

        issue_service.dispatch(issue.id, [{"item_id": pad_line.id, "quantity": 1}])
        issue = issue_service.dispatch(issue.id, [
            {"item_id": pad_line.id, "quantity": 1},
            {"item_id": coolant_line.id, "quantity": 4},
        ])

        pad_line, coolant_line = issue.items
        assert pad_line.dispatches[0].sub_po_number.endswith("_1_1")
        assert pad_line.dispatches[1].sub_po_number.endswith("_1_2")
        assert coolant_line.dispatches[0].sub_po_number.endswith("_1_1C")
