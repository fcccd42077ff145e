"""Signal emitter — in-memory event trail for a single extraction call.

Nothing is written to disk; subscribers receive each signal as it is emitted.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable

from adpulse.signals.types import Signal, SignalType
from adpulse.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)


class SignalEmitter:
    """Emits and broadcasts signals for a single extraction call.

    Signals are:
    - Immutable once emitted
    - Assigned monotonic sequence numbers
    - Broadcast to subscribers in emission order
    """

    def __init__(self, call_id: str) -> None:
        self._call_id = call_id
        self._sequence = 0
        self._subscribers: list[Callable[[Signal], Any]] = []
        self._signals: list[Signal] = []
        self._lock = asyncio.Lock()

    @property
    def call_id(self) -> str:
        return self._call_id

    @property
    def signals(self) -> list[Signal]:
        """Return all emitted signals (read-only copy)."""
        return list(self._signals)

    def subscribe(self, callback: Callable[[Signal], Any]) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[Signal], Any]) -> None:
        self._subscribers = [s for s in self._subscribers if s is not callback]

    async def emit(self, signal_type: SignalType, payload: dict[str, Any] | None = None) -> Signal:
        """Emit a signal. This is the only way to create signals."""
        async with self._lock:
            self._sequence += 1
            signal = Signal(
                sequence=self._sequence,
                signal_type=signal_type,
                timestamp=datetime.now(timezone.utc),
                call_id=self._call_id,
                payload=payload or {},
            )
            self._signals.append(signal)

        await self._broadcast(signal)
        return signal

    async def _broadcast(self, signal: Signal) -> None:
        for subscriber in self._subscribers:
            try:
                result = subscriber(signal)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                # Subscribers must not break extraction
                emit_structured_error(
                    logger,
                    code=ErrorCode.SIGNAL_SUBSCRIBER_FAILURE,
                    message=str(exc),
                    suppressed=True,
                    details={"signal_type": signal.signal_type.value},
                )

    async def emit_phase_transition(
        self, from_phase: str, to_phase: str, context: dict[str, Any] | None = None
    ) -> Signal:
        """Convenience: emit a PHASE_TRANSITION signal."""
        return await self.emit(
            SignalType.PHASE_TRANSITION,
            {"from_phase": from_phase, "to_phase": to_phase, **(context or {})},
        )

    async def emit_run_complete(self, method: str, confidence: str, duration_s: float) -> Signal:
        """Convenience: emit a RUN_COMPLETE signal."""
        return await self.emit(
            SignalType.RUN_COMPLETE,
            {"method": method, "confidence": confidence, "duration_s": duration_s},
        )
