"""Central warehouse ledger, part lookup and service center stock"""

from .central_ledger import CentralInventoryLedger
from .central_inventory_service import CentralInventoryService
from .part_resolver import PartReference, resolve_part
from .service_center_inventory import ServiceCenterInventoryLedger

__all__ = [
    "CentralInventoryLedger",
    "CentralInventoryService",
    "PartReference",
    "resolve_part",
    "ServiceCenterInventoryLedger",
]
