"""
Application exceptions, translated into JSON error envelopes at the API edge
"""

from datetime import datetime
from typing import Optional, Dict, Any, List


class BaseAppException(Exception):
    """Base application exception"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


# === Identity ===
class AuthenticationError(BaseAppException):
    """Request carries no resolvable identity"""

    def __init__(
        self,
        message: str = "Authentication failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, 401, "AUTHENTICATION_ERROR", details)


class AuthorizationError(BaseAppException):
    """Identity is known but may not perform the action"""

    def __init__(
        self, message: str = "Access denied", details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, 403, "AUTHORIZATION_ERROR", details)


# === Validation ===
class ValidationError(BaseAppException):
    """Malformed request data"""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        field_errors: Optional[Dict[str, List[str]]] = None,
    ):
        details = dict(details or {})
        if field_errors:
            details["fields"] = field_errors
        self.field_errors = field_errors or {}
        super().__init__(message, 400, "VALIDATION_ERROR", details)


# === Resources ===
class NotFoundError(BaseAppException):
    """Resource not found"""

    def __init__(self, resource: str, identifier: str = None):
        if identifier:
            message = f"{resource} with identifier '{identifier}' not found"
            details = {"resource": resource, "identifier": identifier}
        else:
            message = f"{resource} not found"
            details = {"resource": resource}
        super().__init__(message, 404, "NOT_FOUND", details)


# === Conflicts ===
class ConflictError(BaseAppException):
    """The requested transition collides with the current state"""

    def __init__(
        self,
        message: str,
        error_code: str = "CONFLICT",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, 409, error_code, details)


class SlotUnavailableError(ConflictError):
    """Interval is booked, or held by another mentee"""

    def __init__(self, reason: str, expires_at: Optional[datetime] = None):
        details = {"reason": reason}
        if expires_at is not None:
            details["expires_at"] = expires_at.isoformat()
        if reason == "temporarily reserved":
            message = "This time slot is temporarily reserved, please try again in a few minutes"
        else:
            message = "This time slot is already booked, please try a different time"
        self.reason = reason
        self.expires_at = expires_at
        super().__init__(message, "SLOT_UNAVAILABLE", details)


class ReservationExpiredError(ConflictError):
    """The hold lapsed and the reservation was reaped"""

    def __init__(self, session_id: int):
        super().__init__(
            "This reservation expired, please rebook",
            "RESERVATION_EXPIRED",
            {"session_id": session_id},
        )


class InvalidStateError(ConflictError):
    """Session is not in the state the transition requires"""

    def __init__(self, session_id: int, current: str, expected: str):
        super().__init__(
            f"Session {session_id} is {current}, expected {expected}",
            "INVALID_STATE",
            {"session_id": session_id, "current": current, "expected": expected},
        )


class PaymentExistsError(ConflictError):
    """A payment is already attached to the session"""

    def __init__(self, session_id: int):
        super().__init__(
            "Payment already exists for this session",
            "PAYMENT_EXISTS",
            {"session_id": session_id},
        )


class AvailabilityOverlapError(ConflictError):
    """New weekly window overlaps an existing one on the same day"""

    def __init__(self, day_of_week: int, start_time: str, end_time: str):
        super().__init__(
            "Time slot overlaps with an existing slot",
            "AVAILABILITY_OVERLAP",
            {"day_of_week": day_of_week, "start_time": start_time, "end_time": end_time},
        )


# === Integrity ===
class IntegrityCheckError(BaseAppException):
    """Signature mismatch on a gateway callback or webhook"""

    def __init__(self, message: str = "Signature verification failed"):
        super().__init__(message, 401, "INTEGRITY_ERROR")


# === Store ===
class TransientStoreError(BaseAppException):
    """Unexpected persistence failure; never retried inside the core"""

    def __init__(
        self,
        message: str = "Database operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, 500, "STORE_ERROR", details)


class DatabaseConnectionError(TransientStoreError):
    """Database is unreachable"""

    def __init__(self, message: str = "Database connection failed"):
        super().__init__(message)
        self.status_code = 503
        self.error_code = "DATABASE_CONNECTION_ERROR"


# === External services ===
class ExternalServiceError(BaseAppException):
    """External service error"""

    def __init__(self, service: str, message: str = None):
        message = message or f"External service '{service}' error"
        details = {"service": service}
        super().__init__(message, 502, "EXTERNAL_SERVICE_ERROR", details)


# === Configuration ===
class ConfigurationError(BaseAppException):
    """Configuration error"""

    def __init__(self, parameter: str, message: str = None):
        message = (
            message or f"Configuration parameter '{parameter}' is invalid or missing"
        )
        details = {"parameter": parameter}
        super().__init__(message, 500, "CONFIGURATION_ERROR", details)
