import logging
import time
import uuid
from typing import Callable, Iterable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from mentor_booking.core.limits import get_client_ip
from mentor_booking.core.logging_utils import error_tracker

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDED_PATHS = ("/health", "/docs", "/openapi.json", "/redoc")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs each request with a short id (taken from X-Request-ID when the
    caller sends one) and echoes the id back. Requests slower than
    ``slow_request_threshold`` seconds are logged as warnings.
    """

    def __init__(
        self,
        app: ASGIApp,
        exclude_paths: Optional[Iterable[str]] = None,
        slow_request_threshold: float = 1.0,
    ):
        super().__init__(app)
        self.exclude_paths = frozenset(exclude_paths or DEFAULT_EXCLUDED_PATHS)
        self.slow_request_threshold = slow_request_threshold

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.exclude_paths:
            return await call_next(request)

        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:8]
        request.state.request_id = request_id
        context = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
        }
        logger.info(
            f"{request.method} {request.url.path} started",
            extra={
                **context,
                "client_ip": get_client_ip(request),
                "user_id": request.headers.get("x-user-id"),
            },
        )

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"{request.method} {request.url.path} failed",
                extra={**context, "duration_ms": _elapsed_ms(started), "error_type": type(e).__name__},
            )
            raise

        duration_ms = _elapsed_ms(started)
        level = logging.INFO
        if duration_ms > self.slow_request_threshold * 1000:
            level = logging.WARNING
            context["category"] = "performance"
        logger.log(
            level,
            f"{request.method} {request.url.path} -> {response.status_code} in {duration_ms}ms",
            extra={**context, "status_code": response.status_code, "duration_ms": duration_ms},
        )

        response.headers["X-Request-ID"] = request_id
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Static security headers; payment responses are never cached"""

    HEADERS = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "strict-origin-when-cross-origin",
    }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        response.headers.update(self.HEADERS)
        if "/payments" in request.url.path:
            response.headers["Cache-Control"] = "no-store"
        return response


class ErrorTrackingMiddleware(BaseHTTPMiddleware):
    """Feeds 5xx responses and unhandled exceptions into the error tracker"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        where = {"method": request.method, "path": request.url.path}
        try:
            response = await call_next(request)
        except Exception as e:
            error_tracker.track_error(f"UNHANDLED_{type(e).__name__}", str(e), where)
            raise

        if response.status_code >= 500:
            error_tracker.track_error(
                f"HTTP_{response.status_code}", f"{request.method} {request.url.path}", where
            )
        return response


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


def setup_middleware(app, config: dict = None):
    """
    Register the middleware stack. Starlette runs middleware in reverse
    order of registration, so request logging (added last) wraps the rest.
    """
    config = config or {}

    app.add_middleware(ErrorTrackingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RequestLoggingMiddleware,
        exclude_paths=config.get("exclude_paths"),
        slow_request_threshold=config.get("slow_request_threshold", 1.0),
    )

    logger.info("Middleware configured")
