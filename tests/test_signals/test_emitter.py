"""Tests for the per-call signal emitter."""

import asyncio
import logging

import pytest

from adpulse.signals.emitter import SignalEmitter
from adpulse.signals.types import SignalType


@pytest.fixture
def emitter():
    return SignalEmitter(call_id="snapshot_001")


class TestSignalEmitter:
    """Test signal emission and broadcasting."""

    @pytest.mark.asyncio
    async def test_emit_creates_signal(self, emitter):
        signal = await emitter.emit(SignalType.FETCH_ATTEMPT, {"url": "https://x.example", "attempt": 1})
        assert signal.sequence == 1
        assert signal.signal_type == SignalType.FETCH_ATTEMPT
        assert signal.call_id == "snapshot_001"
        assert signal.payload["attempt"] == 1

    @pytest.mark.asyncio
    async def test_monotonic_sequence(self, emitter):
        s1 = await emitter.emit(SignalType.FETCH_ATTEMPT)
        s2 = await emitter.emit(SignalType.EXTRACTION_COMPLETE)
        s3 = await emitter.emit(SignalType.RUN_COMPLETE)
        assert [s1.sequence, s2.sequence, s3.sequence] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_concurrent_emits_keep_unique_sequence(self, emitter):
        await asyncio.gather(*(emitter.emit(SignalType.PROBE_MISS) for _ in range(20)))
        assert sorted(s.sequence for s in emitter.signals) == list(range(1, 21))

    @pytest.mark.asyncio
    async def test_signals_are_immutable(self, emitter):
        signal = await emitter.emit(SignalType.PHASE_TRANSITION, {"key": "value"})
        with pytest.raises(Exception):
            signal.payload = {"modified": True}

    @pytest.mark.asyncio
    async def test_emitters_are_independent(self):
        first = SignalEmitter(call_id="a")
        second = SignalEmitter(call_id="b")
        await first.emit(SignalType.FETCH_ATTEMPT)
        signal = await second.emit(SignalType.FETCH_ATTEMPT)
        assert signal.sequence == 1
        assert len(first.signals) == 1

    @pytest.mark.asyncio
    async def test_subscriber_receives_signals(self, emitter):
        received = []
        emitter.subscribe(received.append)
        await emitter.emit(SignalType.FETCH_ATTEMPT)
        await emitter.emit(SignalType.RETRY_ATTEMPT)
        assert [s.signal_type for s in received] == [SignalType.FETCH_ATTEMPT, SignalType.RETRY_ATTEMPT]

    @pytest.mark.asyncio
    async def test_async_subscriber_is_awaited(self, emitter):
        received = []

        async def on_signal(signal):
            received.append(signal.sequence)

        emitter.subscribe(on_signal)
        await emitter.emit(SignalType.FALLBACK_USED)
        assert received == [1]

    @pytest.mark.asyncio
    async def test_unsubscribe(self, emitter):
        received = []

        def on_signal(signal):
            received.append(signal)

        emitter.subscribe(on_signal)
        await emitter.emit(SignalType.FETCH_ATTEMPT)

        emitter.unsubscribe(on_signal)
        await emitter.emit(SignalType.FETCH_ATTEMPT)

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_subscriber_error_does_not_break_emission(self, emitter, caplog):
        def bad_subscriber(signal):
            raise RuntimeError("Subscriber failure")

        emitter.subscribe(bad_subscriber)

        with caplog.at_level(logging.ERROR):
            signal = await emitter.emit(SignalType.PHASE_TRANSITION)

        assert signal.sequence == 1
        assert any(getattr(r, "error_code", None) == "SIGNAL_SUBSCRIBER_FAILURE" for r in caplog.records)

    @pytest.mark.asyncio
    async def test_signals_property_returns_copy(self, emitter):
        await emitter.emit(SignalType.PHASE_TRANSITION)
        signals = emitter.signals
        signals.clear()
        assert len(emitter.signals) == 1  # Original not affected

    @pytest.mark.asyncio
    async def test_emit_phase_transition_convenience(self, emitter):
        signal = await emitter.emit_phase_transition("INIT", "PROBE_URL", {"probe": "query:Date"})
        assert signal.signal_type == SignalType.PHASE_TRANSITION
        assert signal.payload == {"from_phase": "INIT", "to_phase": "PROBE_URL", "probe": "query:Date"}

    @pytest.mark.asyncio
    async def test_emit_run_complete_convenience(self, emitter):
        signal = await emitter.emit_run_complete("comprehensive_tableau_extraction", "medium", 1.25)
        assert signal.signal_type == SignalType.RUN_COMPLETE
        assert signal.payload["method"] == "comprehensive_tableau_extraction"
        assert signal.payload["duration_s"] == 1.25
