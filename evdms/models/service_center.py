"""
Service Center Model
Tenant record; only the fields the parts flow reads are mapped here
"""
from sqlalchemy import Column, String, Integer, Boolean, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from evdms.core.database import Base


class ServiceCenter(Base):
    """EV service center receiving parts from the central warehouse"""
    __tablename__ = "service_centers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(20), unique=True, nullable=False, doc="Short code used in sub-order numbers")
    name = Column(String(120), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp())

    inventory = relationship("ServiceCenterInventory", back_populates="service_center")
    parts_issues = relationship("PartsIssue", back_populates="to_service_center")
