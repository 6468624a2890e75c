"""API package: provides FastAPI dependencies, error handlers, and route definitions for the application."""

from .dependencies import get_caller, get_session, get_settings  # noqa: F401
from .handlers import register_error_handlers  # noqa: F401
from .routes import router  # noqa: F401
