"""Purchase order linkage for parts issues"""

from .reconciliation import PurchaseOrderReconciler

__all__ = ["PurchaseOrderReconciler"]
