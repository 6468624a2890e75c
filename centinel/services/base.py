"""Base class for services that operate on one caller's ledger."""

from sqlalchemy.orm import Session

from centinel.core.settings import Settings, get_settings


class TenantService:
    """Service bound to a tenant-scoped session.

    Public methods of subclasses are the transaction boundaries: each one opens exactly one
    ``session.begin()`` block. Helpers that run inside an open transaction never begin one.
    """

    def __init__(self, session: Session, settings: Settings | None = None) -> None:
        """Initialize the service with a tenant-scoped session and settings."""
        self.session = session
        self.settings = settings or get_settings()
        self.account_id: str = session.info["account_id"]
