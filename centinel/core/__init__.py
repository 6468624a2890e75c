"""Core package: provides models, database helpers, errors, settings, and shared utilities."""

from .db import SessionLocal, init_db, tenant_session  # noqa: F401
from .errors import LedgerError  # noqa: F401
from .settings import Settings, get_settings  # noqa: F401
from .utils import get_logger  # noqa: F401
