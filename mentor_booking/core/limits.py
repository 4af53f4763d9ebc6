import logging

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse

from mentor_booking.core.config import RATE_LIMIT_DEFAULT, RATE_LIMIT_ENABLED

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """Client address, honouring X-Forwarded-For behind a proxy"""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


limiter = Limiter(
    key_func=get_client_ip,
    enabled=RATE_LIMIT_ENABLED,
    default_limits=[RATE_LIMIT_DEFAULT],
)


def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning(f"Rate limit exceeded: {get_client_ip(request)} on {request.url.path}")
    return JSONResponse(
        status_code=429,
        content={
            "error": "RATE_LIMIT_EXCEEDED",
            "message": f"Too many requests: {exc.detail}",
            "details": {},
            "path": request.url.path,
        },
        headers={"Retry-After": "60"},
    )
