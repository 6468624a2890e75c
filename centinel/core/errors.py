"""Error taxonomy for the Centinel ledger service.

Services raise these exceptions; the API layer turns them into structured
``{"success": false, "error": {...}}`` responses. None of them is fatal to the
process. ``kind`` is the stable machine-readable name sent to the caller.
"""


class LedgerError(Exception):
    """Base class for every failure reported to the caller."""

    kind = "InternalError"
    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: str | None = None) -> None:
        """Initialize the error with an optional caller-facing message."""
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Return the error payload sent to the caller."""
        return {"kind": self.kind, "message": self.message}


class Unauthorized(LedgerError):
    """No caller identity, or an unusable one."""

    kind = "Unauthorized"
    status_code = 401
    default_message = "Unauthorized"


class NotFound(LedgerError):
    """The entity is absent or owned by another account."""

    kind = "NotFound"
    status_code = 404
    default_message = "Not found"


class ValidationFailed(LedgerError):
    """A schema or constraint violation in caller input."""

    kind = "ValidationError"
    status_code = 422
    default_message = "Validation failed"

    def __init__(self, message: str | None = None, errors: list[dict] | None = None) -> None:
        """Initialize with a message and optional per-field error details."""
        super().__init__(message)
        self.errors = errors or []

    def to_dict(self) -> dict:
        """Return the error payload, including field details when present."""
        payload = super().to_dict()
        if self.errors:
            payload["errors"] = self.errors
        return payload


class InvalidAmount(ValidationFailed):
    """A transfer amount that is not strictly positive."""

    kind = "InvalidAmount"
    default_message = "Amount must be a positive number"


class InsufficientBalance(LedgerError):
    """The account balance cannot cover a pot deposit."""

    kind = "InsufficientBalance"
    status_code = 409
    default_message = "Insufficient balance"


class InsufficientPotBalance(LedgerError):
    """The pot total cannot cover a withdrawal."""

    kind = "InsufficientPotBalance"
    status_code = 409
    default_message = "Insufficient pot balance"


class DuplicateCategoryOrTheme(LedgerError):
    """A budget category, or a budget or pot theme, is already in use by the account."""

    kind = "DuplicateCategoryOrTheme"
    status_code = 409
    default_message = "Category or theme already in use"
