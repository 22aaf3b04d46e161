"""
Structured Logging
==================

JSON logs for the incident service.

- One JSON object per line on stdout
- The request's correlation id is attached to every record logged while
  that request is being handled, including records from services and the
  inference client
- Credentials (passwords, bearer tokens, API keys) never reach the output

Usage:
    from src.shared.infrastructure.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Incident created", extra={"incident_id": "..."})
"""

import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

from pythonjsonlogger import jsonlogger

REDACTED = "***REDACTED***"

# Substrings of field names whose values are replaced before output
SENSITIVE_FIELDS = ("password", "token", "secret", "api_key", "authorization")

_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def bind_correlation_id(correlation_id: Optional[str]):
    """Set the correlation id for the current task. Returns a reset token."""
    return _correlation_id.set(correlation_id)


def reset_correlation_id(token) -> None:
    _correlation_id.reset(token)


def current_correlation_id() -> Optional[str]:
    return _correlation_id.get()


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in SENSITIVE_FIELDS)


def redact(value: Any) -> Any:
    """Copy of `value` with sensitive keys masked at any depth."""
    if isinstance(value, dict):
        return {
            k: REDACTED if _is_sensitive(str(k)) and v is not None else redact(v)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [redact(v) for v in value]
    return value


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Adds timestamp, environment and correlation id; masks credentials."""

    def __init__(self, *args: Any, environment: str = "unknown", **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._environment = environment

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        log_record["environment"] = self._environment

        correlation_id = getattr(record, "correlation_id", None) or current_correlation_id()
        if correlation_id:
            log_record["correlation_id"] = correlation_id

        for key in list(log_record):
            value = log_record[key]
            if _is_sensitive(key) and value is not None:
                log_record[key] = REDACTED
            elif isinstance(value, (dict, list)):
                log_record[key] = redact(value)


def setup_logging(level: str = "INFO", environment: str = "development") -> None:
    """
    Route all logging through a single stdout JSON handler.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        environment: Added to every record
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomJsonFormatter(
        fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        environment=environment,
    ))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)

    # Per-request access lines come from LoggingMiddleware
    for noisy in ("uvicorn.access", "sqlalchemy.engine", "httpx", "multipart"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


@contextmanager
def log_latency(logger: logging.Logger, operation: str, **extra_context: Any) -> Iterator[None]:
    """
    Log how long the wrapped block took and whether it raised.

    Usage:
        with log_latency(logger, "feature_extraction", model=model):
            response = await client.post(url, json=payload)

    Failures are logged at WARNING with `outcome="error"` and re-raised.
    """
    start = time.perf_counter()
    outcome = "ok"
    try:
        yield
    except Exception:
        outcome = "error"
        raise
    finally:
        latency_ms = round((time.perf_counter() - start) * 1000, 2)
        log = logger.info if outcome == "ok" else logger.warning
        log(
            f"{operation} {'completed' if outcome == 'ok' else 'failed'}",
            extra={"operation": operation, "latency_ms": latency_ms, "outcome": outcome, **extra_context},
        )
