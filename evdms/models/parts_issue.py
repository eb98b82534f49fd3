"""
Parts Issue Models

A parts issue is one service center's request for parts from the central
warehouse. Each line carries the originally requested quantity (fixed at
creation), the quantity approved on review, the running total issued across
dispatches and the quantity received at the service center. Every shipment
against a line is appended to the dispatch ledger.
"""
from enum import Enum

from sqlalchemy import (
    Column, String, Integer, DateTime, Text, JSON, Boolean,
    ForeignKey, CheckConstraint, Index
)
from sqlalchemy.orm import relationship, validates
from sqlalchemy.sql import func

from evdms.core.config import settings
from evdms.core.database import Base
from evdms.core.exceptions import ValidationError


class PartsIssueStatus(str, Enum):
    PENDING_APPROVAL = "PENDING_APPROVAL"
    CIM_APPROVED = "CIM_APPROVED"
    ADMIN_APPROVED = "ADMIN_APPROVED"
    DISPATCHED = "DISPATCHED"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"


class IssuePriority(str, Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


def quantities_match(issued, requested) -> bool:
    """Fulfillment comparison with tolerance for decimal-quantity parts"""
    return abs((issued or 0) - (requested or 0)) < settings.FULFILLMENT_TOLERANCE


class PartsIssue(Base):
    """Parts issue request header"""
    __tablename__ = "parts_issues"

    id = Column(Integer, primary_key=True, autoincrement=True)
    issue_number = Column(String(30), unique=True, nullable=False, doc="PI-{YYYY}-{SEQ}")
    to_service_center_id = Column(Integer, ForeignKey("service_centers.id", ondelete="RESTRICT"), nullable=False, index=True)
    requested_by_id = Column(String(64), nullable=False)
    purchase_order_id = Column(Integer, ForeignKey("purchase_orders.id", ondelete="SET NULL"), nullable=True)
    status = Column(String(20), nullable=False, default=PartsIssueStatus.PENDING_APPROVAL.value, index=True)
    priority = Column(String(10), nullable=False, default=IssuePriority.NORMAL.value)

    transport_details = Column(JSON, nullable=True, doc="Opaque carrier details, latest wins")
    rejection_reason = Column(Text, nullable=True)

    # Workflow timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp())
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp())
    cim_approved_at = Column(DateTime(timezone=True), nullable=True)
    admin_approved_at = Column(DateTime(timezone=True), nullable=True)
    dispatched_date = Column(DateTime(timezone=True), nullable=True, doc="First dispatch")
    received_date = Column(DateTime(timezone=True), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)

    to_service_center = relationship("ServiceCenter", back_populates="parts_issues")
    purchase_order = relationship("PurchaseOrder")
    items = relationship(
        "PartsIssueItem",
        back_populates="issue",
        order_by="PartsIssueItem.id",
        cascade="all, delete-orphan",
    )
    dispatches = relationship(
        "PartsIssueDispatch",
        back_populates="issue",
        order_by="PartsIssueDispatch.id",
    )

    @property
    def sequence(self) -> int:
        """Numeric suffix of the issue number"""
        from evdms.services.document_numbers import parse_sequence
        return parse_sequence(self.issue_number)

    def item_by_id(self, item_id: int):
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def __repr__(self):
        return f"<PartsIssue {self.issue_number} {self.status}>"


class PartsIssueItem(Base):
    """One part within a parts issue request"""
    __tablename__ = "parts_issue_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    issue_id = Column(Integer, ForeignKey("parts_issues.id", ondelete="CASCADE"), nullable=False, index=True)
    central_inventory_part_id = Column(Integer, ForeignKey("central_inventory_parts.id", ondelete="RESTRICT"), nullable=False)

    requested_qty = Column(Integer, nullable=False, doc="Set once at creation")
    approved_qty = Column(Integer, nullable=True, doc="Set on CIM review or backfilled on direct admin approval")
    issued_qty = Column(Integer, nullable=False, default=0, doc="Sum of dispatch quantities")
    received_qty = Column(Integer, nullable=True, doc="Confirmed by the receiving service center")
    sub_po_number = Column(String(80), nullable=True, doc="Latest dispatch's sub-order number")

    issue = relationship("PartsIssue", back_populates="items")
    central_inventory_part = relationship("CentralInventoryPart", back_populates="issue_items")
    dispatches = relationship(
        "PartsIssueDispatch",
        back_populates="issue_item",
        order_by="PartsIssueDispatch.id",
    )

    __table_args__ = (
        CheckConstraint("requested_qty > 0", name="requested_positive"),
        CheckConstraint("approved_qty IS NULL OR approved_qty >= 0", name="approved_non_negative"),
        CheckConstraint("issued_qty >= 0", name="issued_non_negative"),
    )

    @validates("requested_qty")
    def _guard_requested_qty(self, key, value):
        if self.requested_qty is not None and value != self.requested_qty:
            raise ValidationError(
                "requested_qty cannot be changed after creation",
                item_id=self.id,
                requested_qty=self.requested_qty,
            )
        return value

    @property
    def effective_approved_qty(self) -> int:
        """Approved quantity, or the requested quantity when never explicitly approved"""
        return self.approved_qty if self.approved_qty is not None else self.requested_qty

    @property
    def remaining_to_dispatch(self) -> int:
        return max(self.effective_approved_qty - (self.issued_qty or 0), 0)

    @property
    def available(self):
        part = self.central_inventory_part
        return part.available if part is not None else None

    @property
    def part_name(self):
        part = self.central_inventory_part
        return part.part_name if part is not None else None

    @property
    def part_number(self):
        part = self.central_inventory_part
        return part.part_number if part is not None else None

    @property
    def is_fully_fulfilled(self) -> bool:
        return quantities_match(self.issued_qty, self.requested_qty)


class PartsIssueDispatch(Base):
    """Append-only record of one partial or full shipment against a line"""
    __tablename__ = "parts_issue_dispatches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    issue_item_id = Column(Integer, ForeignKey("parts_issue_items.id", ondelete="CASCADE"), nullable=False)
    issue_id = Column(Integer, ForeignKey("parts_issues.id", ondelete="CASCADE"), nullable=False)
    quantity = Column(Integer, nullable=False)
    sub_po_number = Column(String(80), nullable=False)
    is_fully_fulfilled = Column(Boolean, nullable=False, default=False)
    dispatched_at = Column(DateTime(timezone=True), nullable=False, server_default=func.current_timestamp())
    dispatched_by_id = Column(String(64), nullable=True)
    transport_details = Column(JSON, nullable=True)

    issue_item = relationship("PartsIssueItem", back_populates="dispatches")
    issue = relationship("PartsIssue", back_populates="dispatches")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="dispatch_quantity_positive"),
        Index("idx_dispatch_issue_item", "issue_item_id"),
        Index("idx_dispatch_issue", "issue_id"),
    )
