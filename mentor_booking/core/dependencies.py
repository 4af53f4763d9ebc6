"""
Request dependencies: identity forwarded by the auth gateway, the payment
gateway client and the maintenance token check
"""
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from mentor_booking.core.config import CLEANUP_API_SECRET
from mentor_booking.core.database import get_session
from mentor_booking.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
)
from mentor_booking.booking.crud.users import get_user_by_id
from mentor_booking.booking.models import User, UserRole
from mentor_booking.booking.services.payment_gateway import RazorpayGateway, signatures_match


async def get_current_user(
    x_user_id: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_session),
) -> User:
    """
    Resolve the caller from the X-User-Id header set by the upstream
    auth gateway. The identity is trusted as given.
    """
    if not x_user_id or not x_user_id.strip():
        raise AuthenticationError("X-User-Id header is required")
    try:
        user_id = int(x_user_id)
    except ValueError:
        raise AuthenticationError("X-User-Id must be an integer")

    user = await get_user_by_id(db, user_id)
    if not user:
        raise AuthenticationError("Unknown user")
    return user


async def get_current_mentor(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != UserRole.mentor:
        raise AuthorizationError("Only mentors can manage availability")
    return current_user


@lru_cache
def get_payment_gateway() -> RazorpayGateway:
    return RazorpayGateway()


def verify_cleanup_token(authorization: Optional[str] = Header(None)) -> bool:
    """
    Bearer check for the maintenance endpoint

    Raises:
        ConfigurationError: CLEANUP_API_SECRET is not set
        AuthenticationError: Header missing or token wrong
    """
    if not CLEANUP_API_SECRET:
        raise ConfigurationError("CLEANUP_API_SECRET", "Cleanup secret not configured on server")
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationError("Bearer token is required")

    token = authorization[len("Bearer "):].strip()
    if not signatures_match(CLEANUP_API_SECRET, token):
        raise AuthenticationError("Invalid cleanup token")
    return True
