"""Main entrypoint and application factory for the Centinel ledger API.

This module initializes the FastAPI application, configures logging, creates the ledger tables on startup, registers the structured error handlers, and exposes the Scalar API reference endpoint for interactive OpenAPI documentation. It also includes the main entrypoint for running the app with Uvicorn.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.responses import HTMLResponse
from scalar_fastapi import get_scalar_api_reference
from sqlalchemy.exc import SQLAlchemyError

from centinel.api.handlers import register_error_handlers
from centinel.api.routes import router
from centinel.core.db import init_db
from centinel.core.settings import get_settings
from centinel.core.utils import ensure_dir, get_logger


# --- Logging Setup ---
def setup_logging() -> None:
    """Configure console logging for all ``centinel.*`` loggers, plus a plain file log when configured."""
    settings = get_settings()
    logger = get_logger("centinel")
    logger.setLevel(settings.log_level.upper())
    # centinel.* loggers do not propagate, so each one gets the shared file handler
    if settings.log_file and not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        ensure_dir(Path(settings.log_file).parent)
        file_handler = logging.FileHandler(settings.log_file)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        for name in ("centinel", *sorted(n for n in logging.root.manager.loggerDict if n.startswith("centinel."))):
            logging.getLogger(name).addHandler(file_handler)


setup_logging()
logger = get_logger("centinel.main")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan event handler creating the ledger tables before the first request."""
    _ = app  # Silence unused argument warning
    try:
        init_db()
    except SQLAlchemyError:
        logger.exception("Failed to create ledger tables")
        raise
    logger.info("Ledger tables ready")
    yield


app = FastAPI(
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    title="Centinel Ledger API",
    description="""
    The Centinel Ledger API keeps a personal finance tracker's balance, savings pots, budgets and recurring bills consistent.

    **Endpoints:**
    - `POST /account`, `GET /account`: open and read the caller's account.
    - `/transactions`: list, create, update and delete transactions; the balance follows every change.
    - `/budgets`: category budgets with this month's spend.
    - `/pots`: savings pots; `POST /pots/{{pot_id}}/deposit` and `/withdraw` move money atomically.
    - `GET /overview`, `GET /balance`: dashboard views.
    - `GET /recurring-bills`: bills inferred from recurring expenses.
    - `GET /health`: Health check endpoint.
    - `GET /scalar`: Interactive Scalar OpenAPI documentation.

    Every request except `/health` must carry the caller identity header (`x-user-id` by default).
    """,
    version="1.0.0",
)
app.include_router(router)
register_error_handlers(app)


@app.get("/scalar", include_in_schema=False)
async def scalar_docs() -> HTMLResponse:
    """Return Scalar API reference."""
    return get_scalar_api_reference(openapi_url=app.openapi_url, title=app.title)


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run("main:app", host=settings.server_host, port=settings.server_port, reload=True)
