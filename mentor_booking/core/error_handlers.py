"""
FastAPI exception handlers. Booking operations return ErrorResult for expected
failures; these handlers cover what escapes a route (request validation,
identity checks, driver errors, bugs) with the envelope
{"error", "message", "details", "path"}.
"""

import json
import logging
import traceback
from typing import Union

from asyncpg.exceptions import (
    ConnectionDoesNotExistError,
    ConnectionFailureError,
    PostgresError,
    TooManyConnectionsError,
)
from fastapi import Request, HTTPException, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import (
    SQLAlchemyError,
    IntegrityError,
    OperationalError,
    DisconnectionError,
)
from tenacity import RetryError

from mentor_booking.core.config import DEBUG
from mentor_booking.core.exceptions import (
    BaseAppException,
    ConflictError,
    DatabaseConnectionError,
    ExternalServiceError,
    TransientStoreError,
)
from mentor_booking.core.logging_utils import error_tracker

logger = logging.getLogger(__name__)


def _envelope(request: Request, status_code: int, error: str, message: str, details=None):
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": message,
            "details": details or {},
            "path": request.url.path,
        },
    )


def _where(request: Request, **fields) -> dict:
    return {"path": request.url.path, "method": request.method, **fields}


async def app_exception_handler(request: Request, exc: BaseAppException) -> JSONResponse:
    logger.log(
        logging.WARNING if exc.status_code < 500 else logging.ERROR,
        f"{exc.error_code}: {exc.message}",
        extra=_where(request, error_code=exc.error_code, status_code=exc.status_code),
    )
    return _envelope(request, exc.status_code, exc.error_code, exc.message, exc.details)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    logger.warning(f"HTTP {exc.status_code}: {exc.detail}", extra=_where(request))
    return _envelope(request, exc.status_code, "HTTP_ERROR", str(exc.detail))


def _json_safe(value):
    try:
        json.dumps(value)
        return value
    except (TypeError, ValueError):
        return str(value)


async def validation_exception_handler(
    request: Request, exc: Union[RequestValidationError, PydanticValidationError]
) -> JSONResponse:
    fields = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ())),
            "message": error.get("msg", "Invalid value"),
            "type": error.get("type", "value_error"),
            "input": _json_safe(error.get("input")),
        }
        for error in exc.errors()
    ]

    logger.warning(
        f"Request rejected: {len(fields)} invalid field(s)",
        extra=_where(request, fields=[item["field"] for item in fields]),
    )
    return _envelope(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "VALIDATION_ERROR",
        f"Validation failed for {len(fields)} field(s)",
        {"fields": fields},
    )


async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    if isinstance(exc, IntegrityError):
        app_exc = ConflictError("Conflicting write rejected by the database", "INTEGRITY_CONFLICT")
    elif isinstance(exc, (OperationalError, DisconnectionError)):
        app_exc = DatabaseConnectionError("Database connection lost")
    else:
        app_exc = TransientStoreError()

    logger.error(
        f"Store failure escaped a route: {type(exc).__name__}",
        extra=_where(request, traceback=traceback.format_exc()),
    )
    error_tracker.track_error("STORE_ERROR", str(exc), _where(request))
    return await app_exception_handler(request, app_exc)


async def postgres_exception_handler(request: Request, exc: PostgresError) -> JSONResponse:
    """asyncpg errors raised outside SQLAlchemy's wrapping (startup checks, raw connections)"""
    if isinstance(exc, (ConnectionFailureError, ConnectionDoesNotExistError)):
        app_exc = DatabaseConnectionError("PostgreSQL connection failed")
    elif isinstance(exc, TooManyConnectionsError):
        app_exc = DatabaseConnectionError("Too many database connections")
    else:
        app_exc = TransientStoreError(details={"sqlstate": getattr(exc, "sqlstate", None)})

    error_tracker.track_error("STORE_ERROR", str(exc), _where(request))
    return await app_exception_handler(request, app_exc)


async def retry_exception_handler(request: Request, exc: RetryError) -> JSONResponse:
    """Gateway retries exhausted"""
    logger.error(f"Gateway retries exhausted: {exc}", extra=_where(request))
    return await app_exception_handler(
        request, ExternalServiceError("razorpay", "Payment gateway is temporarily unavailable")
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled {type(exc).__name__}: {exc}",
        extra=_where(request, traceback=traceback.format_exc()),
    )

    details = {}
    if DEBUG:
        details = {"exception_type": type(exc).__name__, "traceback": traceback.format_exc()}

    return _envelope(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_SERVER_ERROR",
        "An unexpected error occurred",
        details,
    )


def setup_exception_handlers(app):
    app.add_exception_handler(BaseAppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(PydanticValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
    app.add_exception_handler(PostgresError, postgres_exception_handler)
    app.add_exception_handler(RetryError, retry_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info("Exception handlers registered")
