"""Structured error telemetry helpers."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Canonical error codes for operational telemetry."""

    FETCH_FAILED = "FETCH_FAILED"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    FALLBACK_USED = "FALLBACK_USED"
    DATE_PROBE_FAILED = "DATE_PROBE_FAILED"
    SERVER_AUTH_FAILED = "SERVER_AUTH_FAILED"
    SERVER_FETCH_FAILED = "SERVER_FETCH_FAILED"
    SIGNAL_SUBSCRIBER_FAILURE = "SIGNAL_SUBSCRIBER_FAILURE"


def emit_structured_error(
    logger: logging.Logger,
    *,
    code: ErrorCode,
    message: str,
    suppressed: bool,
    url: str | None = None,
    phase: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Emit a structured telemetry event via logging."""
    logger.error(
        "adpulse_error",
        extra={
            "error_code": code,
            "error_message": message,
            "suppressed": suppressed,
            "url": url,
            "phase": phase,
            "details": details or {},
        },
    )
