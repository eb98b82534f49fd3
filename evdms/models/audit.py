"""
Audit Trail Model
"""
from sqlalchemy import Column, String, Integer, JSON, TIMESTAMP
from datetime import datetime, timezone

from evdms.core.database import Base


class AuditLog(Base):
    """Audit trail for every parts and inventory mutation"""
    __tablename__ = "audit_log"

    audit_id = Column(Integer, primary_key=True, autoincrement=True)
    audit_timestamp = Column(TIMESTAMP(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)
    audit_user = Column(String(64), nullable=False, index=True)
    audit_action = Column(String(40), nullable=False, index=True)  # CREATE_PARTS_ISSUE, DISPATCH_PARTS_ISSUE, ...
    audit_table = Column(String(50), index=True)
    audit_key = Column(String(100))
    audit_old_values = Column(JSON)
    audit_new_values = Column(JSON)
    audit_module = Column(String(10))  # PARTS, INVENTORY
