"""Parts issue workflow: state machine, dispatch ledger and the request service"""

from .state_machine import PartsIssueStateMachine
from .dispatch_ledger import DispatchLedger, build_sub_po_number
from .parts_issue_service import PartsIssueService

__all__ = [
    "PartsIssueStateMachine",
    "DispatchLedger",
    "build_sub_po_number",
    "PartsIssueService",
]
