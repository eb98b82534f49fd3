"""
Tests for the Central Inventory Ledger and Central Inventory Service
"""
import pytest
from sqlalchemy.orm import Session

from evdms.core.exceptions import LedgerConflictError, NotFoundError, ValidationError
from evdms.models import AuditLog
from evdms.services.inventory import CentralInventoryLedger, CentralInventoryService


class TestCentralInventoryLedger:
    """Test suite for CentralInventoryLedger"""

    def test_allocate_increases_allocated_only(self, db_session: Session, part):
        """Allocation is a promise; stock on hand is unchanged"""
        ledger = CentralInventoryLedger(db_session)

        ledger.allocate(part.id, 30)
        db_session.commit()

        assert part.allocated == 30
        assert part.stock_quantity == 100
        assert part.available == 70

    def test_deallocate_releases_hold(self, db_session: Session, make_part):
        """Deallocation reduces allocated"""
        part = make_part(allocated=40)
        ledger = CentralInventoryLedger(db_session)

        ledger.deallocate(part.id, 25)
        db_session.commit()

        assert part.allocated == 15

    def test_deallocate_below_zero_conflicts(self, db_session: Session, make_part):
        """Driving allocated negative aborts instead of clamping"""
        part = make_part(allocated=5)
        ledger = CentralInventoryLedger(db_session)

        with pytest.raises(LedgerConflictError) as exc_info:
            ledger.deallocate(part.id, 6)

        assert exc_info.value.context["allocated"] == -1
        db_session.rollback()
        assert part.allocated == 5

    def test_allocate_beyond_stock_conflicts(self, db_session: Session, make_part):
        """allocated may never exceed stock_quantity"""
        part = make_part(stock_quantity=10, allocated=8)
        ledger = CentralInventoryLedger(db_session)

        with pytest.raises(LedgerConflictError):
            ledger.allocate(part.id, 3)

    def test_withdraw_reduces_stock(self, db_session: Session, part):
        """Withdraw removes physical units"""
        ledger = CentralInventoryLedger(db_session)

        ledger.withdraw(part.id, 20)
        db_session.commit()

        assert part.stock_quantity == 80
        assert part.allocated == 0

    def test_withdraw_into_allocated_units_conflicts(self, db_session: Session, make_part):
        """Withdrawing units promised elsewhere breaks allocated <= stock"""
        part = make_part(stock_quantity=10, allocated=6)
        ledger = CentralInventoryLedger(db_session)

        with pytest.raises(LedgerConflictError):
            ledger.withdraw(part.id, 5)

    def test_withdraw_below_zero_conflicts(self, db_session: Session, make_part):
        """Stock can never go negative"""
        part = make_part(stock_quantity=3)
        ledger = CentralInventoryLedger(db_session)

        with pytest.raises(LedgerConflictError):
            ledger.withdraw(part.id, 4)

    def test_deposit_increases_stock(self, db_session: Session, part):
        """Deposit adds physical units"""
        ledger = CentralInventoryLedger(db_session)

        ledger.deposit(part.id, 15)
        db_session.commit()

        assert part.stock_quantity == 115

    def test_negative_quantity_rejected(self, db_session: Session, part):
        """Operations take non-negative quantities; direction comes from the operation"""
        ledger = CentralInventoryLedger(db_session)

        with pytest.raises(ValidationError):
            ledger.allocate(part.id, -1)

    def test_unknown_part(self, db_session: Session):
        """Missing part is reported as not found"""
        ledger = CentralInventoryLedger(db_session)

        with pytest.raises(NotFoundError):
            ledger.deposit(999, 1)


class TestCentralInventoryService:
    """Test suite for CentralInventoryService"""

    def test_create_part_starts_unallocated(self, db_session: Session, admin):
        """New parts never carry an allocation"""
        service = CentralInventoryService(db_session, admin)

        part = service.create_part({
            "part_name": "  Motor Controller ",
            "part_number": "MC-77",
            "category": "Drivetrain",
            "stock_quantity": 12,
        })

        assert part.id is not None
        assert part.part_name == "Motor Controller"
        assert part.allocated == 0
        assert part.available == 12

    def test_list_parts_filters(self, db_session: Session, admin, make_part):
        """Search matches name or number; category filters exactly"""
        make_part()
        make_part(part_name="Battery Coolant", part_number="BC-220", category="Battery")
        service = CentralInventoryService(db_session, admin)

        assert [p.part_number for p in service.list_parts(search="bc-2")] == ["BC-220"]
        assert [p.part_name for p in service.list_parts(category="Brakes")] == ["Brake Pad Set"]
        assert len(service.list_parts()) == 2

    def test_list_parts_search_treats_wildcards_literally(self, db_session: Session, admin, make_part):
        """Percent and underscore in a search term match only themselves"""
        make_part(part_name="Wiper Blade", part_number="WB-10")
        make_part(part_name="Coolant 50% Mix", part_number="CM_50")
        service = CentralInventoryService(db_session, admin)

        assert service.list_parts(search="wiper_blade") == []
        assert [p.part_number for p in service.list_parts(search="50%")] == ["CM_50"]
        assert [p.part_number for p in service.list_parts(search="cm_")] == ["CM_50"]
        assert [p.part_number for p in service.list_parts(search="%")] == ["CM_50"]

    def test_add_stock_writes_audit(self, db_session: Session, admin, part):
        """Restock deposits and records the change"""
        service = CentralInventoryService(db_session, admin)

        part = service.add_stock(part.id, 25)

        assert part.stock_quantity == 125
        audit = db_session.query(AuditLog).filter(AuditLog.audit_action == "ADD_CENTRAL_STOCK").one()
        assert audit.audit_user == "admin-1"
        assert audit.audit_old_values["stock_quantity"] == 100
        assert audit.audit_new_values["stock_quantity"] == 125

    def test_add_stock_requires_positive_quantity(self, db_session: Session, admin, part):
        """Zero restock is rejected"""
        service = CentralInventoryService(db_session, admin)

        with pytest.raises(ValidationError):
            service.add_stock(part.id, 0)

    def test_set_stock_below_allocated_rejected(self, db_session: Session, admin, make_part):
        """A count may not strand existing allocations"""
        part = make_part(stock_quantity=50, allocated=20)
        service = CentralInventoryService(db_session, admin)

        with pytest.raises(ValidationError):
            service.set_stock(part.id, 19)

        db_session.refresh(part)
        assert part.stock_quantity == 50

    def test_set_stock_overwrites(self, db_session: Session, admin, make_part):
        """Stock count replaces on-hand quantity"""
        part = make_part(stock_quantity=50, allocated=20)
        service = CentralInventoryService(db_session, admin)

        part = service.set_stock(part.id, 20)

        assert part.stock_quantity == 20
        assert part.available == 0
