"""
Parts issue request state machine

Encodes which statuses each workflow action may start from and where it
leads. Ledger side effects live in the service; this module only decides
what is allowed.
"""
from typing import Dict, FrozenSet, Optional, Set, Tuple

from evdms.core.exceptions import StateConflictError
from evdms.models.parts_issue import PartsIssueStatus


class PartsIssueStateMachine:
    """
    PENDING_APPROVAL -> CIM_APPROVED -> ADMIN_APPROVED -> DISPATCHED -> COMPLETED

    CIM review may be skipped, a pending request may be rejected, and a
    dispatched request may be dispatched again for further partial shipments.
    """

    PENDING_APPROVAL = PartsIssueStatus.PENDING_APPROVAL.value
    CIM_APPROVED = PartsIssueStatus.CIM_APPROVED.value
    ADMIN_APPROVED = PartsIssueStatus.ADMIN_APPROVED.value
    DISPATCHED = PartsIssueStatus.DISPATCHED.value
    COMPLETED = PartsIssueStatus.COMPLETED.value
    REJECTED = PartsIssueStatus.REJECTED.value

    INITIAL_STATE = PENDING_APPROVAL

    # action -> (statuses it may start from, resulting status; None keeps the status)
    ACTIONS: Dict[str, Tuple[FrozenSet[str], Optional[str]]] = {
        "reject": (frozenset({PENDING_APPROVAL}), REJECTED),
        "approve_by_cim": (frozenset({PENDING_APPROVAL}), CIM_APPROVED),
        "approve_by_admin": (frozenset({PENDING_APPROVAL, CIM_APPROVED}), ADMIN_APPROVED),
        "dispatch": (frozenset({ADMIN_APPROVED, DISPATCHED}), DISPATCHED),
        "receive": (frozenset({DISPATCHED}), COMPLETED),
        "update_transport_details": (frozenset({ADMIN_APPROVED, DISPATCHED}), None),
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """True when some action moves a request from ``from_status`` to ``to_status``"""
        return any(
            from_status in allowed_from and (target or from_status) == to_status
            for allowed_from, target in cls.ACTIONS.values()
        )

    @classmethod
    def validate_action(cls, action: str, current_status: str) -> str:
        """
        Check that ``action`` may run from ``current_status``.

        Returns:
            The status the request ends in once the action succeeds

        Raises:
            StateConflictError: naming the current and the required statuses
        """
        if action not in cls.ACTIONS:
            raise ValueError(f"Unknown parts issue action: {action}")

        allowed_from, target = cls.ACTIONS[action]
        if current_status not in allowed_from:
            raise StateConflictError(action, current_status, allowed_from)
        return target or current_status

    @classmethod
    def get_allowed_actions(cls, current_status: str) -> Set[str]:
        """Actions a client may offer for a request in ``current_status``"""
        return {
            action for action, (allowed_from, _) in cls.ACTIONS.items()
            if current_status in allowed_from
        }
