"""
Custom Application Exceptions
"""
from typing import Any, Dict, Iterable, List, Optional


class EVDMSException(Exception):
    """Base exception for the EVDMS application"""

    code = "evdms_error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context


class NotFoundError(EVDMSException):
    """Raised when a request, line, part or purchase order does not exist"""

    code = "not_found"

    def __init__(self, entity: str, key: Any):
        super().__init__(f"{entity} {key} not found", entity=entity, key=key)


class ValidationError(EVDMSException):
    """Raised when input data is malformed"""

    code = "validation_error"


class UnresolvablePartError(EVDMSException):
    """Raised when no part matches any identifier strategy"""

    code = "unresolvable_part"

    def __init__(self, identifier: str, suggestions: Optional[List[str]] = None):
        suggestions = suggestions or []
        message = f"Part not found for {identifier}"
        if suggestions:
            message += f". Similar parts: {', '.join(suggestions)}"
        super().__init__(message, identifier=identifier, suggestions=suggestions)
        self.identifier = identifier
        self.suggestions = suggestions


class StateConflictError(EVDMSException):
    """Raised when a transition is attempted from a state that does not permit it"""

    code = "state_conflict"

    def __init__(self, action: str, current_status: str, required_statuses: Iterable[str]):
        required = sorted(required_statuses)
        super().__init__(
            f"Cannot {action.replace('_', ' ')} a request in status {current_status}; "
            f"requires {' or '.join(required)}",
            action=action,
            current_status=current_status,
            required_statuses=required,
        )
        self.current_status = current_status
        self.required_statuses = required


class InsufficientStockError(EVDMSException):
    """Raised when a quantity exceeds what is available"""

    code = "insufficient_stock"

    def __init__(self, part_name: str, requested: int, available: int, message: Optional[str] = None):
        shortfall = requested - available
        super().__init__(
            message or (
                f"Insufficient stock for {part_name}: requested {requested}, "
                f"available {available} (short by {shortfall})"
            ),
            part_name=part_name,
            requested=requested,
            available=available,
            shortfall=shortfall,
        )
        self.part_name = part_name
        self.requested = requested
        self.available = available
        self.shortfall = shortfall


class LedgerConflictError(EVDMSException):
    """Raised when a ledger mutation would break 0 <= allocated <= stock"""

    code = "ledger_conflict"


class PermissionDeniedError(EVDMSException):
    """Raised when the caller's role or tenant does not allow the operation"""

    code = "permission_denied"


class ConcurrentUpdateError(EVDMSException):
    """Raised when a competing transaction keeps winning a unique key after all retries"""

    code = "concurrent_update"
