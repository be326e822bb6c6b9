"""Service layer exceptions for the stock ledger.

Exception Hierarchy:
    LedgerError (base)
    ├── ValidationError            rejected before any write; names the field
    │   └── UnknownProductKind
    ├── NotFoundError              missing, or owned by another tenant
    ├── StockWriteViolation        stock fields written outside the reconciler
    └── ConflictError              already handled; carries a machine code
        ├── ShiftAlreadyOpen
        ├── ShiftAlreadyClosed
        ├── AlreadyProcessed
        └── InvalidStatusTransition

Database errors are not wrapped: they propagate as SQLAlchemy exceptions and
the unit of work rolls the whole business event back.
"""


class LedgerError(Exception):
    """Base exception for all stock ledger service errors."""

    pass


class ValidationError(LedgerError):
    """Raised when input is missing or invalid."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class UnknownProductKind(ValidationError):
    """Raised when a product carries a kind the resolver does not handle."""

    def __init__(self, kind):
        self.kind = kind
        super().__init__("kind", f"Unknown product kind: {kind!r}")


class NotFoundError(LedgerError):
    def __init__(self, entity: str, identifier):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} {identifier} not found")


class StockWriteViolation(LedgerError):
    """Raised when stock fields change outside the stock reconciler."""

    pass


class ConflictError(LedgerError):
    """Raised when the request was already handled or conflicts with state.

    `code` lets callers recognise idempotent repeats and treat them as success.
    """

    code = "CONFLICT"

    def __init__(self, message: str, code: str = None):
        if code is not None:
            self.code = code
        self.message = message
        super().__init__(message)


class ShiftAlreadyOpen(ConflictError):
    code = "SHIFT_ALREADY_OPEN"

    def __init__(self, tenant_id: int, user_id: int):
        self.tenant_id = tenant_id
        self.user_id = user_id
        super().__init__(
            "There is already an open shift for this user in this business. "
            "Close the current shift before starting a new one."
        )


class ShiftAlreadyClosed(ConflictError):
    code = "SHIFT_ALREADY_CLOSED"

    def __init__(self, shift_id: int):
        self.shift_id = shift_id
        super().__init__(f"Shift {shift_id} is already closed")


class AlreadyProcessed(ConflictError):
    code = "ALREADY_PROCESSED"

    def __init__(self, what: str):
        super().__init__(f"{what} has already been processed")


class InvalidStatusTransition(ConflictError):
    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, entity: str, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move {entity} from {_value(current)} to {_value(target)}")


def _value(status):
    return getattr(status, "value", status)
