"""Map domain exceptions onto HTTP responses."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import (
    ExpectedVersionError,
    InvalidOperationError,
    ObjectNotFoundError,
    ValidationError,
)

from ordering.exceptions import ConflictError
from ordering.utils.logging import get_logger

logger = get_logger(__name__)


def _message(exc) -> str:
    return exc.args[0] if exc.args else str(exc)


async def _validation_error(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"error": type(exc).__name__, "detail": exc.messages})


async def _not_found(request: Request, exc: ObjectNotFoundError):
    return JSONResponse(status_code=404, content={"error": type(exc).__name__, "detail": _message(exc)})


async def _conflict(request: Request, exc: Exception):
    logger.info("order_write_conflict", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=409, content={"error": "ConflictError", "detail": _message(exc)})


async def _invalid_operation(request: Request, exc: InvalidOperationError):
    if isinstance(exc, ConflictError):
        return await _conflict(request, exc)
    return JSONResponse(status_code=422, content={"error": type(exc).__name__, "detail": _message(exc)})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationError, _validation_error)
    app.add_exception_handler(ObjectNotFoundError, _not_found)
    app.add_exception_handler(InvalidOperationError, _invalid_operation)
    app.add_exception_handler(ExpectedVersionError, _conflict)
