import json
import logging
import time
from collections import Counter, deque
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

# Attributes every LogRecord carries; anything else came in through ``extra``
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))) | {
    "message",
    "asctime",
}

_QUIET_LOGGERS = ("sqlalchemy.engine", "uvicorn.access", "httpx", "httpcore")


def setup_logging(log_level: str = "INFO", log_format: str = "text"):
    """
    Configure the root logger with a single console handler

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR
        log_format: text for development, json for log shippers
    """
    if log_format.lower() == "json":
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info(f"Logging configured: level={log_level}, format={log_format}")


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line. Fields passed through ``extra`` (request_id,
    session_id, event, ...) become top-level keys; values json cannot encode
    are stringified.
    """

    def format(self, record):
        entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        for key, value in vars(record).items():
            if key in _STANDARD_ATTRS or key.startswith("_"):
                continue
            try:
                json.dumps(value)
            except (TypeError, ValueError):
                value = str(value)
            entry[key] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class ErrorTracker:
    """
    Process-local counters of notable failures (bad signatures, orphaned
    payments, reaper and store errors) plus the most recent occurrences.
    """

    def __init__(self, max_history: int = 100):
        self.max_history = max_history
        self.error_counts: Counter = Counter()
        self.last_errors: deque = deque(maxlen=max_history)

    def track_error(
        self,
        error_type: str,
        error_message: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.error_counts[error_type] += 1
        self.last_errors.append(
            {
                "timestamp": time.time(),
                "type": error_type,
                "message": error_message,
                "context": context or {},
            }
        )

        logger.warning(
            f"Error tracked: {error_type} (#{self.error_counts[error_type]})",
            extra={"error_type": error_type, "error_message": error_message, "context": context},
        )

    def get_stats(self) -> Dict[str, Any]:
        return {
            "error_counts": dict(self.error_counts),
            "total_errors": sum(self.error_counts.values()),
            "unique_error_types": len(self.error_counts),
            "last_errors": list(self.last_errors)[-10:],
        }

    def reset_stats(self):
        self.error_counts.clear()
        self.last_errors.clear()
        logger.info("Error tracking stats reset")


error_tracker = ErrorTracker()


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_business_event(
    event: str, entity_type: str, entity_id: Any, details: Dict[str, Any] = None
):
    """
    Log a booking domain event (session_reserved, session_confirmed,
    reservations_expired, payment_recorded, ...)

    Args:
        event: Event name
        entity_type: session, payment, availability or system
        entity_id: Identifier of the entity
        details: Extra structured fields
    """
    logger.info(
        f"{entity_type}:{entity_id} {event}",
        extra={
            "event": event,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "details": details or {},
            "category": "business_event",
        },
    )
