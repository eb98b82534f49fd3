"""
Dispatch Ledger

Append-only history of shipments against parts issue lines. Each record
gets a sub-order number:

    PO {code} {ddmmyyyy} {serviceCenterCode}_{requestSeq}_{dispatchSeq}[C]

where ``C`` marks the dispatch that brings the line's cumulative issued
quantity up to its originally requested quantity.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.orm import Session

from evdms.core.config import settings
from evdms.core.exceptions import ValidationError
from evdms.models.parts_issue import (
    PartsIssue, PartsIssueItem, PartsIssueDispatch, quantities_match
)

logger = logging.getLogger(__name__)

FULFILLED_SUFFIX = "C"


def build_sub_po_number(
    code: str,
    dispatched_at: datetime,
    service_center_code: str,
    request_seq: int,
    dispatch_seq: int,
    fully_fulfilled: bool = False
) -> str:
    suffix = FULFILLED_SUFFIX if fully_fulfilled else ""
    return (
        f"PO {code} {dispatched_at.strftime('%d%m%Y')} "
        f"{service_center_code}_{request_seq}_{dispatch_seq}{suffix}"
    )


class DispatchLedger:
    """Appends dispatch records and keeps each line's running issued total"""

    def __init__(self, db: Session, code: Optional[str] = None):
        self.db = db
        self.code = code or settings.SUB_PO_CODE

    def append(
        self,
        issue: PartsIssue,
        item: PartsIssueItem,
        quantity: int,
        dispatched_by_id: Optional[str] = None,
        transport_details: Optional[Any] = None,
        dispatched_at: Optional[datetime] = None
    ) -> PartsIssueDispatch:
        """
        Record one shipment of ``quantity`` units against ``item``.

        Updates ``issued_qty`` and the line's latest ``sub_po_number``.
        Fulfillment is judged against ``requested_qty``, never the approved
        quantity. Stock is not touched here.
        """
        if quantity is None or quantity <= 0:
            raise ValidationError("Dispatch quantity must be greater than zero", item_id=item.id, quantity=quantity)

        dispatched_at = dispatched_at or datetime.now(timezone.utc)
        new_issued = (item.issued_qty or 0) + quantity
        fully_fulfilled = quantities_match(new_issued, item.requested_qty)
        dispatch_seq = len(item.dispatches) + 1

        sub_po_number = build_sub_po_number(
            self.code,
            dispatched_at,
            issue.to_service_center.code,
            issue.sequence,
            dispatch_seq,
            fully_fulfilled,
        )

        record = PartsIssueDispatch(
            issue_item=item,
            issue=issue,
            quantity=quantity,
            sub_po_number=sub_po_number,
            is_fully_fulfilled=fully_fulfilled,
            dispatched_at=dispatched_at,
            dispatched_by_id=dispatched_by_id,
            transport_details=transport_details,
        )
        self.db.add(record)

        item.issued_qty = new_issued
        item.sub_po_number = sub_po_number
        self.db.flush()

        logger.info(
            f"Dispatch {sub_po_number}: {quantity} x item {item.id} "
            f"(issued {new_issued}/{item.requested_qty}, fulfilled={fully_fulfilled})"
        )
        return record
