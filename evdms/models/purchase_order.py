"""
Purchase Order Models

Purchase orders are created and approved elsewhere; the parts flow only reads
line quantities and accumulates received quantities.
"""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from evdms.core.database import Base


class PurchaseOrder(Base):
    """Purchase order header"""
    __tablename__ = "purchase_orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    po_number = Column(String(30), unique=True, nullable=False)
    status = Column(String(20), nullable=False, default="DRAFT")
    supplier_name = Column(String(200), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp())

    items = relationship(
        "PurchaseOrderItem",
        back_populates="purchase_order",
        order_by="PurchaseOrderItem.id",
        cascade="all, delete-orphan",
    )


class PurchaseOrderItem(Base):
    """Purchase order line"""
    __tablename__ = "purchase_order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    purchase_order_id = Column(Integer, ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    central_inventory_part_id = Column(Integer, ForeignKey("central_inventory_parts.id"), nullable=True)
    part_name = Column(String(200), nullable=True)
    part_number = Column(String(60), nullable=True)
    quantity = Column(Integer, nullable=False, doc="Quantity originally ordered")
    received_qty = Column(Integer, nullable=False, default=0, doc="Accumulated from parts issue dispatches")

    purchase_order = relationship("PurchaseOrder", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="po_quantity_non_negative"),
        CheckConstraint("received_qty >= 0", name="po_received_non_negative"),
    )
