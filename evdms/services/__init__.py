"""
EVDMS Business Services
Central inventory, purchase order reconciliation and the parts issue workflow
"""

from .document_numbers import generate_document_number, parse_sequence
from .inventory import CentralInventoryLedger, CentralInventoryService, ServiceCenterInventoryLedger
from .purchase_orders import PurchaseOrderReconciler
from .parts_issue import PartsIssueService, PartsIssueStateMachine

__all__ = [
    "generate_document_number",
    "parse_sequence",
    "CentralInventoryLedger",
    "CentralInventoryService",
    "ServiceCenterInventoryLedger",
    "PurchaseOrderReconciler",
    "PartsIssueService",
    "PartsIssueStateMachine",
]
