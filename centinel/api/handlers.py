"""Exception handlers turning failures into structured error envelopes."""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from centinel.core.errors import LedgerError, ValidationFailed
from centinel.core.utils import get_logger

logger = get_logger("centinel.api")


def error_response(exc: LedgerError) -> JSONResponse:
    """Render a ledger error as ``{"success": false, "error": {...}}``."""
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.to_dict()})


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    """Report a business or authorization failure."""
    logger.info(f"{request.method} {request.url.path} failed: {exc.kind}: {exc.message}")
    return error_response(exc)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request input as a ValidationError."""
    errors = [{"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]} for err in exc.errors()]
    logger.info(f"{request.method} {request.url.path} rejected: {len(errors)} validation error(s)")
    return error_response(ValidationFailed("Invalid request", errors=errors))


async def store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Report a storage failure as a generic internal error without leaking details."""
    logger.exception(f"{request.method} {request.url.path} hit a storage error", exc_info=exc)
    return error_response(LedgerError())


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Report any other failure as a generic internal error without leaking details."""
    logger.exception(f"{request.method} {request.url.path} failed unexpectedly", exc_info=exc)
    return error_response(LedgerError())


def register_error_handlers(app: FastAPI) -> None:
    """Attach the error handlers to the application."""
    app.add_exception_handler(LedgerError, ledger_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, store_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
