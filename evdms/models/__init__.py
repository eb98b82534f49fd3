"""
EVDMS SQLAlchemy Models
Database models for the central parts and service center flow
"""

# Import all models to ensure they are registered with SQLAlchemy
from .service_center import ServiceCenter
from .inventory import CentralInventoryPart, ServiceCenterInventory
from .purchase_order import PurchaseOrder, PurchaseOrderItem
from .parts_issue import (
    PartsIssue, PartsIssueItem, PartsIssueDispatch,
    PartsIssueStatus, IssuePriority, quantities_match
)
from .audit import AuditLog

__all__ = [
    "ServiceCenter",
    "CentralInventoryPart",
    "ServiceCenterInventory",
    "PurchaseOrder",
    "PurchaseOrderItem",
    "PartsIssue",
    "PartsIssueItem",
    "PartsIssueDispatch",
    "PartsIssueStatus",
    "IssuePriority",
    "quantities_match",
    "AuditLog",
]
