"""Signal type definitions for the extraction event trail."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class SignalType(str, Enum):
    """All signal types emitted during one extraction call."""

    PHASE_TRANSITION = "PHASE_TRANSITION"
    FETCH_ATTEMPT = "FETCH_ATTEMPT"
    RETRY_ATTEMPT = "RETRY_ATTEMPT"
    PROBE_MISS = "PROBE_MISS"
    EXTRACTION_COMPLETE = "EXTRACTION_COMPLETE"
    FALLBACK_USED = "FALLBACK_USED"
    RUN_COMPLETE = "RUN_COMPLETE"


class Signal(BaseModel):
    """An immutable signal emitted during one extraction call.

    Signals are append-only and cannot be modified after emission.
    """

    sequence: int = Field(description="Monotonic sequence number within the call")
    signal_type: SignalType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    call_id: str
    payload: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}
