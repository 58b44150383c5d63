"""Logging helpers that keep secrets and bulky payloads out of the logs."""

from __future__ import annotations

import logging
import os
import secrets
import string
from typing import Any, Dict, Mapping

REDACTED = "[REDACTED]"
TRUNCATED_SUFFIX = "...[TRUNCATED]"
MAX_LOGGED_STRING = 100
ERROR_ID_LENGTH = 13

_SENSITIVE_MARKERS = ("key", "token")
_ERROR_ID_ALPHABET = string.ascii_lowercase + string.digits


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once, honouring ``LOG_LEVEL``."""

    resolved = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, resolved, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def new_error_id() -> str:
    """Return an opaque identifier used to correlate client errors with logs."""

    return "".join(secrets.choice(_ERROR_ID_ALPHABET) for _ in range(ERROR_ID_LENGTH))


def sanitize(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Redact credential-looking fields and truncate long strings."""

    cleaned: Dict[str, Any] = {}
    for key, value in data.items():
        lowered = str(key).lower()
        if any(marker in lowered for marker in _SENSITIVE_MARKERS):
            cleaned[key] = REDACTED
        elif isinstance(value, str) and len(value) > MAX_LOGGED_STRING:
            cleaned[key] = value[:MAX_LOGGED_STRING] + TRUNCATED_SUFFIX
        else:
            cleaned[key] = value
    return cleaned


def log_error(logger: logging.Logger, context: str, error: BaseException | str, **data: Any) -> str:
    """Log *error* with sanitized context and return the generated error id."""

    error_id = new_error_id()
    exc_info = None
    if isinstance(error, BaseException):
        message = str(error) or error.__class__.__name__
        error_type = error.__class__.__name__
        # Tracebacks only at DEBUG so production logs stay compact.
        if logger.isEnabledFor(logging.DEBUG):
            exc_info = error
    else:
        message = error
        error_type = "str"
    logger.error(
        "[%s] Error %s: %s (%s) %s",
        context,
        error_id,
        message,
        error_type,
        sanitize(data) if data else {},
        exc_info=exc_info,
    )
    return error_id
