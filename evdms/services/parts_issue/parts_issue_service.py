"""
Parts Issue Service

Service-center requests for parts from the central warehouse: creation with
part resolution and purchase order override, CIM and admin approval,
partial dispatches, rejection and receipt. Every mutating call is one
all-or-nothing transaction; ledger errors roll back the whole call.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session, selectinload

from evdms.core.config import settings
from evdms.core.database import run_in_transaction
from evdms.core.exceptions import (
    InsufficientStockError, NotFoundError, PermissionDeniedError, ValidationError
)
from evdms.core.security import Identity, SYSTEM_IDENTITY, log_user_action
from evdms.models.parts_issue import (
    IssuePriority, PartsIssue, PartsIssueItem, PartsIssueStatus
)
from evdms.models.service_center import ServiceCenter
from evdms.services.document_numbers import generate_document_number
from evdms.services.inventory.central_ledger import CentralInventoryLedger
from evdms.services.inventory.part_resolver import PartReference, resolve_part
from evdms.services.inventory.service_center_inventory import ServiceCenterInventoryLedger
from evdms.services.purchase_orders.reconciliation import PurchaseOrderReconciler
from .dispatch_ledger import DispatchLedger
from .state_machine import PartsIssueStateMachine

logger = logging.getLogger(__name__)

# Unique key on issue_number as Postgres and SQLite report it
ISSUE_NUMBER_KEYS = ("uq_parts_issues_issue_number", "parts_issues.issue_number")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _line_snapshot(item: PartsIssueItem) -> Dict[str, Any]:
    return {
        "item_id": item.id,
        "part_id": item.central_inventory_part_id,
        "requested_qty": item.requested_qty,
        "approved_qty": item.approved_qty,
        "issued_qty": item.issued_qty,
        "received_qty": item.received_qty,
    }


def _index_payload(issue: PartsIssue, entries: List[Dict[str, Any]], qty_field: str) -> Dict[int, int]:
    """Map line id -> quantity, rejecting unknown or repeated lines"""
    quantities: Dict[int, int] = {}
    for entry in entries:
        item_id = entry.get("item_id")
        if issue.item_by_id(item_id) is None:
            raise NotFoundError("Parts issue item", item_id)
        if item_id in quantities:
            raise ValidationError(f"Item {item_id} appears more than once", item_id=item_id)
        quantities[item_id] = entry.get(qty_field)
    return quantities


class PartsIssueService:
    """
    Parts issue request workflow

    ``current_user`` is the caller's identity; non-central roles only see and
    act on requests addressed to their own service center.
    """

    def __init__(self, db: Session, current_user: Optional[Identity] = None):
        self.db = db
        self.current_user = current_user or SYSTEM_IDENTITY
        self.ledger = CentralInventoryLedger(db)
        self.destination = ServiceCenterInventoryLedger(db)
        self.reconciler = PurchaseOrderReconciler(db)
        self.dispatch_ledger = DispatchLedger(db)
        self.state_machine = PartsIssueStateMachine

    # Queries

    def list_requests(
        self,
        status: Optional[str] = None,
        to_service_center_id: Optional[int] = None,
        page: int = 1,
        page_size: Optional[int] = None
    ) -> Tuple[List[PartsIssue], int]:
        """Newest first; returns (page of requests, total matching)"""
        page = max(page or 1, 1)
        page_size = min(page_size or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)

        query = self._base_query()
        if status:
            try:
                status = PartsIssueStatus(status.upper()).value
            except ValueError:
                raise ValidationError(f"Unknown status {status}", status=status)
            query = query.filter(PartsIssue.status == status)
        if to_service_center_id is not None:
            query = query.filter(PartsIssue.to_service_center_id == to_service_center_id)
        if not self.current_user.is_central:
            query = query.filter(PartsIssue.to_service_center_id == self.current_user.service_center_id)

        total = query.count()
        issues = (
            query.order_by(PartsIssue.created_at.desc(), PartsIssue.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return issues, total

    def get_request(self, issue_id: int) -> PartsIssue:
        issue = self._base_query().filter(PartsIssue.id == issue_id).first()
        return self._check_visible(issue, issue_id)

    # Creation

    def create_request(self, data: Dict[str, Any]) -> PartsIssue:
        """
        Create a PENDING_APPROVAL request and allocate every line.

        Args:
            data: ``to_service_center_id``, optional ``purchase_order_id`` and
                ``priority``, and ``items``: each with any of
                ``central_inventory_part_id`` / ``part_number`` / ``part_name``
                plus ``requested_qty``

        Raises:
            UnresolvablePartError: any line's part cannot be found
            InsufficientStockError: a line asks for more than is available
        """
        to_service_center_id = data.get("to_service_center_id")
        items = data.get("items") or []
        if not items:
            raise ValidationError("A parts issue needs at least one item")
        for entry in items:
            qty = entry.get("requested_qty")
            if qty is None or qty <= 0:
                raise ValidationError("Requested quantity must be greater than zero", requested_qty=qty)

        if not self.current_user.is_central and to_service_center_id != self.current_user.service_center_id:
            raise PermissionDeniedError(
                "Parts can only be requested for your own service center",
                to_service_center_id=to_service_center_id,
            )

        priority = (data.get("priority") or IssuePriority.NORMAL.value).upper()
        try:
            priority = IssuePriority(priority).value
        except ValueError:
            raise ValidationError(f"Unknown priority {priority}", priority=priority)

        purchase_order_id = data.get("purchase_order_id")

        def work():
            service_center = self.db.get(ServiceCenter, to_service_center_id)
            if service_center is None:
                raise NotFoundError("Service center", to_service_center_id)

            purchase_order = None
            if purchase_order_id is not None:
                purchase_order = self.reconciler.get_purchase_order_with_items(purchase_order_id)

            # Resolve everything before writing so an unknown part creates nothing
            lines = []
            for entry in items:
                part = resolve_part(self.db, PartReference(
                    part_id=entry.get("central_inventory_part_id"),
                    part_number=entry.get("part_number"),
                    part_name=entry.get("part_name"),
                ))
                qty = entry["requested_qty"]
                if purchase_order is not None:
                    qty = self.reconciler.override_quantity(purchase_order, part, qty)
                lines.append((part, qty))

            issue = PartsIssue(
                issue_number=generate_document_number(
                    self.db, PartsIssue.issue_number, settings.ISSUE_NUMBER_PREFIX
                ),
                to_service_center_id=service_center.id,
                requested_by_id=self.current_user.user_id,
                purchase_order_id=purchase_order.id if purchase_order is not None else None,
                status=self.state_machine.INITIAL_STATE,
                priority=priority,
            )
            self.db.add(issue)

            for part, qty in lines:
                part = self.ledger.get_part(part.id, lock=True)
                if qty > part.available:
                    raise InsufficientStockError(part.part_name, qty, part.available)
                issue.items.append(PartsIssueItem(central_inventory_part_id=part.id, requested_qty=qty))
                self.ledger.allocate(part.id, qty)

            self.db.flush()
            log_user_action(
                db=self.db,
                user=self.current_user,
                action="CREATE_PARTS_ISSUE",
                table="parts_issues",
                key=issue.issue_number,
                new_values={
                    "to_service_center_id": issue.to_service_center_id,
                    "purchase_order_id": issue.purchase_order_id,
                    "priority": issue.priority,
                    "items": [_line_snapshot(item) for item in issue.items],
                },
                module="PARTS"
            )
            return issue.id, issue.issue_number, len(lines)

        issue_id, issue_number, line_count = run_in_transaction(
            self.db, work, retry_unique_keys=ISSUE_NUMBER_KEYS
        )
        logger.info(
            f"Parts issue {issue_number} created for service center {to_service_center_id} "
            f"with {line_count} line(s)"
        )
        return self.get_request(issue_id)

    # Transitions

    def reject_request(self, issue_id: int, reason: Optional[str] = None) -> PartsIssue:
        """Release every line's allocation; REJECTED is terminal"""

        def work():
            issue = self._lock_request(issue_id)
            previous = issue.status
            target = self.state_machine.validate_action("reject", issue.status)

            for item in issue.items:
                self.ledger.deallocate(item.central_inventory_part_id, item.requested_qty)

            issue.status = target
            issue.rejection_reason = reason
            issue.rejected_at = _utcnow()
            self._audit("REJECT_PARTS_ISSUE", issue, {"status": previous}, {"status": target, "reason": reason})
            return issue.issue_number

        issue_number = run_in_transaction(self.db, work)
        logger.info(f"Parts issue {issue_number} rejected: {reason}")
        return self.get_request(issue_id)

    def approve_by_cim(self, issue_id: int, approved_items: Optional[List[Dict[str, Any]]] = None) -> PartsIssue:
        """
        Central inventory manager review.

        Each listed line gets ``approved_qty`` in
        ``[0, stock_quantity - allocated + requested_qty]``; lines left out are
        approved in full. The allocation moves from the requested to the
        approved quantity.
        """

        def work():
            issue = self._lock_request(issue_id)
            previous = issue.status
            target = self.state_machine.validate_action("approve_by_cim", issue.status)
            approvals = _index_payload(issue, approved_items or [], "approved_qty")

            before = [_line_snapshot(item) for item in issue.items]
            for item in issue.items:
                approved = approvals.get(item.id, item.requested_qty)
                if approved is None or approved < 0:
                    raise ValidationError(
                        "Approved quantity must be zero or more", item_id=item.id, approved_qty=approved
                    )

                part = self.ledger.get_part(item.central_inventory_part_id, lock=True)
                # This line's own hold is already inside ``allocated``
                ceiling = part.stock_quantity - part.allocated + item.requested_qty
                if approved > ceiling:
                    raise InsufficientStockError(part.part_name, approved, ceiling)

                delta = approved - item.requested_qty
                if delta < 0:
                    self.ledger.deallocate(part.id, -delta)
                elif delta > 0:
                    self.ledger.allocate(part.id, delta)
                item.approved_qty = approved

            issue.status = target
            issue.cim_approved_at = _utcnow()
            self._audit(
                "CIM_APPROVE_PARTS_ISSUE", issue,
                {"status": previous, "items": before},
                {"status": target, "items": [_line_snapshot(item) for item in issue.items]},
            )
            return issue.issue_number

        issue_number = run_in_transaction(self.db, work)
        logger.info(f"Parts issue {issue_number} approved by central inventory manager")
        return self.get_request(issue_id)

    def approve_by_admin(self, issue_id: int) -> PartsIssue:
        """
        Final approval. Releases each line's current allocation hold; on the
        direct path from PENDING_APPROVAL the approved quantity is backfilled
        from the requested quantity first.
        """

        def work():
            issue = self._lock_request(issue_id)
            previous = issue.status
            target = self.state_machine.validate_action("approve_by_admin", issue.status)
            direct = previous == self.state_machine.PENDING_APPROVAL

            for item in issue.items:
                if direct:
                    item.approved_qty = item.requested_qty
                if item.approved_qty:
                    self.ledger.deallocate(item.central_inventory_part_id, item.approved_qty)

            issue.status = target
            issue.admin_approved_at = _utcnow()
            self._audit(
                "ADMIN_APPROVE_PARTS_ISSUE", issue,
                {"status": previous},
                {
                    "status": target,
                    "path": "direct" if direct else "after_cim_review",
                    "items": [_line_snapshot(item) for item in issue.items],
                },
            )
            return issue.issue_number, direct

        issue_number, direct = run_in_transaction(self.db, work)
        logger.info(
            f"Parts issue {issue_number} approved by admin"
            f"{' without central inventory review' if direct else ''}"
        )
        return self.get_request(issue_id)

    def dispatch(
        self,
        issue_id: int,
        dispatch_items: List[Dict[str, Any]],
        transport_details: Optional[Any] = None
    ) -> PartsIssue:
        """
        Ship some or all of the approved quantities.

        May be called repeatedly while the request is ADMIN_APPROVED or
        DISPATCHED. Each item appends a dispatch record, withdraws central
        stock and, for PO-linked requests, accumulates the PO line's
        received quantity.
        """
        if not dispatch_items:
            raise ValidationError("A dispatch needs at least one item")

        def work():
            issue = self._lock_request(issue_id)
            previous = issue.status
            target = self.state_machine.validate_action("dispatch", issue.status)
            dispatched_at = _utcnow()
            records = []

            for entry in dispatch_items:
                item_id = entry.get("item_id")
                quantity = entry.get("quantity")
                item = issue.item_by_id(item_id)
                if item is None:
                    raise NotFoundError("Parts issue item", item_id)
                if quantity is None or quantity <= 0:
                    raise ValidationError("Dispatch quantity must be greater than zero", item_id=item_id, quantity=quantity)

                remaining = item.remaining_to_dispatch
                if quantity > remaining:
                    raise ValidationError(
                        f"Cannot dispatch {quantity} of item {item_id}; only {remaining} remain approved",
                        item_id=item_id,
                        quantity=quantity,
                        remaining=remaining,
                    )

                part = self.ledger.get_part(item.central_inventory_part_id, lock=True)
                if quantity > part.available:
                    raise InsufficientStockError(part.part_name, quantity, part.available)

                record = self.dispatch_ledger.append(
                    issue, item, quantity,
                    dispatched_by_id=self.current_user.user_id,
                    transport_details=transport_details,
                    dispatched_at=dispatched_at,
                )
                self.ledger.withdraw(part.id, quantity)
                if issue.purchase_order_id is not None:
                    self.reconciler.record_dispatch(issue.purchase_order_id, part, quantity)
                records.append(record)

            issue.status = target
            if issue.dispatched_date is None:
                issue.dispatched_date = dispatched_at
            if transport_details is not None:
                issue.transport_details = transport_details

            self._audit(
                "DISPATCH_PARTS_ISSUE", issue,
                {"status": previous},
                {
                    "status": target,
                    "dispatches": [
                        {"item_id": r.issue_item_id, "quantity": r.quantity,
                         "sub_po_number": r.sub_po_number, "is_fully_fulfilled": r.is_fully_fulfilled}
                        for r in records
                    ],
                },
            )
            return issue.issue_number, len(records)

        issue_number, count = run_in_transaction(self.db, work)
        logger.info(f"Parts issue {issue_number} dispatched {count} line(s)")
        return self.get_request(issue_id)

    def receive(self, issue_id: int, received_items: List[Dict[str, Any]]) -> PartsIssue:
        """Service center confirms receipt; stock is deposited at the destination"""

        def work():
            issue = self._lock_request(issue_id)
            previous = issue.status
            target = self.state_machine.validate_action("receive", issue.status)
            receipts = _index_payload(issue, received_items or [], "received_qty")

            for item_id, received in receipts.items():
                item = issue.item_by_id(item_id)
                if received is None or received < 0 or received > (item.issued_qty or 0):
                    raise ValidationError(
                        f"Received quantity for item {item_id} must be between 0 and {item.issued_qty}",
                        item_id=item_id,
                        received_qty=received,
                        issued_qty=item.issued_qty,
                    )
                item.received_qty = received
                if received:
                    self.destination.upsert_and_increment_stock(
                        issue.to_service_center_id, item.central_inventory_part, received
                    )

            issue.status = target
            issue.received_date = _utcnow()
            self._audit(
                "RECEIVE_PARTS_ISSUE", issue,
                {"status": previous},
                {"status": target, "received": {str(k): v for k, v in receipts.items()}},
            )
            return issue.issue_number

        issue_number = run_in_transaction(self.db, work)
        logger.info(f"Parts issue {issue_number} received at service center")
        return self.get_request(issue_id)

    def update_transport_details(self, issue_id: int, transport_details: Any) -> PartsIssue:
        """Replace the carrier details shown on the request"""

        def work():
            issue = self._lock_request(issue_id)
            self.state_machine.validate_action("update_transport_details", issue.status)
            previous = issue.transport_details
            issue.transport_details = transport_details
            self._audit(
                "UPDATE_TRANSPORT_DETAILS", issue,
                {"transport_details": previous},
                {"transport_details": transport_details},
            )
            return issue.issue_number

        issue_number = run_in_transaction(self.db, work)
        logger.info(f"Transport details updated for parts issue {issue_number}")
        return self.get_request(issue_id)

    # Helpers

    def _base_query(self):
        return self.db.query(PartsIssue).options(
            selectinload(PartsIssue.to_service_center),
            selectinload(PartsIssue.items).selectinload(PartsIssueItem.central_inventory_part),
            selectinload(PartsIssue.items).selectinload(PartsIssueItem.dispatches),
        )

    def _check_visible(self, issue: Optional[PartsIssue], issue_id: int) -> PartsIssue:
        # Requests outside the caller's service center are reported as missing
        if issue is None or (
            not self.current_user.is_central
            and issue.to_service_center_id != self.current_user.service_center_id
        ):
            raise NotFoundError("Parts issue", issue_id)
        return issue

    def _lock_request(self, issue_id: int) -> PartsIssue:
        self.db.flush()
        issue = (
            self._base_query()
            .filter(PartsIssue.id == issue_id)
            .with_for_update(of=PartsIssue)
            .populate_existing()
            .first()
        )
        return self._check_visible(issue, issue_id)

    def _audit(self, action: str, issue: PartsIssue, old_values: Dict[str, Any], new_values: Dict[str, Any]) -> None:
        log_user_action(
            db=self.db,
            user=self.current_user,
            action=action,
            table="parts_issues",
            key=issue.issue_number,
            old_values=old_values,
            new_values=new_values,
            module="PARTS"
        )
