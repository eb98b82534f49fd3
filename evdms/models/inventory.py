"""
EVDMS Inventory Models
Central warehouse ledger and per-service-center stock
"""
from sqlalchemy import (
    Column, String, Integer, Numeric, DateTime,
    ForeignKey, CheckConstraint, Index
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from evdms.core.database import Base


class CentralInventoryPart(Base):
    """
    Central Inventory Part

    One row per distinct part in the central warehouse. ``stock_quantity`` is
    physical units on hand; ``allocated`` is units promised to open parts
    issue requests and not yet shipped.
    """
    __tablename__ = "central_inventory_parts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    part_name = Column(String(200), nullable=False, doc="Part name")
    part_number = Column(String(60), nullable=True, doc="Manufacturer / catalogue number")
    category = Column(String(60), default="", doc="Part category")

    # Pricing copied to service center stock on first receipt
    unit_price = Column(Numeric(12, 2), default=0, doc="Selling price")
    cost_price = Column(Numeric(12, 2), default=0, doc="Cost price")
    gst_rate = Column(Numeric(5, 2), default=0, doc="GST rate percentage")
    min_stock_level = Column(Integer, default=0, nullable=False, doc="Reorder threshold")

    # Ledger quantities
    stock_quantity = Column(Integer, default=0, nullable=False, doc="Units on hand")
    allocated = Column(Integer, default=0, nullable=False, doc="Units promised, not yet shipped")

    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp())
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp())

    issue_items = relationship("PartsIssueItem", back_populates="central_inventory_part")

    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="stock_non_negative"),
        CheckConstraint("allocated >= 0", name="allocated_non_negative"),
        CheckConstraint("allocated <= stock_quantity", name="allocated_within_stock"),
        Index("idx_central_part_number", "part_number"),
        Index("idx_central_part_name", "part_name"),
    )

    @property
    def available(self) -> int:
        return (self.stock_quantity or 0) - (self.allocated or 0)

    def __repr__(self):
        return f"<CentralInventoryPart {self.id} {self.part_name!r} stock={self.stock_quantity} allocated={self.allocated}>"


class ServiceCenterInventory(Base):
    """Stock held at one service center; same shape as the central ledger without allocation"""
    __tablename__ = "service_center_inventory"

    id = Column(Integer, primary_key=True, autoincrement=True)
    service_center_id = Column(Integer, ForeignKey("service_centers.id", ondelete="RESTRICT"), nullable=False, index=True)
    part_name = Column(String(200), nullable=False)
    part_number = Column(String(60), nullable=True)
    category = Column(String(60), default="")
    unit_price = Column(Numeric(12, 2), default=0)
    cost_price = Column(Numeric(12, 2), default=0)
    gst_rate = Column(Numeric(5, 2), default=0)
    stock_quantity = Column(Integer, default=0, nullable=False)
    min_stock_level = Column(Integer, default=0, nullable=False)
    max_stock_level = Column(Integer, default=0, nullable=False)
    location = Column(String(60), nullable=True, doc="Bin / shelf")

    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp())
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp())

    service_center = relationship("ServiceCenter", back_populates="inventory")

    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="sc_stock_non_negative"),
        Index("idx_sc_inventory_part", "service_center_id", "part_number"),
    )
