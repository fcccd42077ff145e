"""Metrics engine — composes fetch, extraction, classification and scoring.

The engine holds configuration and collaborators only. Every call allocates
its own evidence bundle, signal emitter and snapshot, so concurrent calls on
one engine never share mutable state.

Responsibilities:
- Produce a fresh snapshot, falling back to fixed figures on any failure
- Produce a snapshot scoped to one day, or None when that day has no data
- Try the authenticated server path when the public view yields nothing

MUST NOT:
- Raise to the caller of the general path
- Cache snapshots, sessions or tokens between calls
"""

from __future__ import annotations

import logging
import time
import uuid

import httpx

from adpulse.config.settings import AdPulseConfig
from adpulse.engine.dated import DateScopedExtractor, available_dates
from adpulse.fetch.fetcher import Fetcher, FetchError, build_fetcher
from adpulse.fetch.server_api import ServerAuthError, ServerError, authenticate, fetch_view_data, sign_out
from adpulse.pipeline.classifier import CompositeClassifier, MetricClassifier
from adpulse.pipeline.confidence import score_confidence
from adpulse.pipeline.fallback import FALLBACK_METHOD, build_fallback_snapshot
from adpulse.pipeline.models import ComprehensiveSnapshot, DatedSnapshot, RevenueFunnel
from adpulse.pipeline.snapshot import snapshot_from_classification, snapshot_from_server_funnel
from adpulse.pipeline.sources import extract_bundle
from adpulse.signals.emitter import SignalEmitter
from adpulse.signals.types import Signal, SignalType
from adpulse.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)


def log_signal(signal: Signal) -> None:
    """Subscriber that writes each signal of a call to the debug log."""
    logger.debug(
        "Signal emitted",
        extra={
            "call_id": signal.call_id,
            "sequence": signal.sequence,
            "signal_type": signal.signal_type.value,
            "payload": signal.payload,
        },
    )


class MetricsEngine:
    """Public entry points of the extraction engine."""

    def __init__(
        self,
        config: AdPulseConfig | None = None,
        fetcher: Fetcher | None = None,
        classifier: MetricClassifier | None = None,
        server_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or AdPulseConfig()
        self._fetcher = fetcher or build_fetcher(self._config)
        self._classifier = classifier or CompositeClassifier()
        self._server_transport = server_transport

    @property
    def config(self) -> AdPulseConfig:
        return self._config

    @staticmethod
    def new_signals(prefix: str) -> SignalEmitter:
        signals = SignalEmitter(call_id=f"{prefix}_{uuid.uuid4().hex[:12]}")
        signals.subscribe(log_signal)
        return signals

    # --- General path ---

    async def fresh_snapshot(self, signals: SignalEmitter | None = None) -> ComprehensiveSnapshot:
        """Fetch, extract, classify and score the dashboard view.

        Never raises: a fetch failure, an empty evidence pool or an
        unexpected extraction error all produce the fallback snapshot.
        """
        signals = signals or self.new_signals("snapshot")
        start = time.monotonic()
        url = self._config.dashboard_url

        try:
            document = await self._fetcher.fetch(url, signals)
        except FetchError as exc:
            return await self._fallback(signals, start, reason="fetch_failed", error=str(exc))

        try:
            bundle = extract_bundle(document)
            data_points = bundle.data_points()
            confidence = score_confidence(bundle)
            await signals.emit(
                SignalType.EXTRACTION_COMPLETE,
                {"url": url, "data_points": data_points, "confidence": confidence, "dom_hash": document.dom_hash},
            )

            if bundle.is_empty():
                return await self._fallback(signals, start, reason="empty_evidence")
            if confidence == "low" and self._config.fallback_on_low_confidence:
                return await self._fallback(signals, start, reason="low_confidence")

            snapshot = snapshot_from_classification(
                self._classifier.classify(bundle),
                confidence=confidence,
                data_points=data_points,
                next_update_hour=self._config.next_update_hour,
            )
        except Exception as exc:
            emit_structured_error(
                logger,
                code=ErrorCode.EXTRACTION_FAILED,
                message=str(exc),
                suppressed=True,
                url=url,
            )
            return await self._fallback(signals, start, reason="extraction_failed", error=str(exc))

        duration = round(time.monotonic() - start, 2)
        await signals.emit_run_complete(snapshot.extraction_info.method, confidence, duration)
        logger.info(
            "Snapshot extracted",
            extra={"url": url, "data_points": data_points, "confidence": confidence, "duration_s": duration},
        )
        return snapshot

    async def _fallback(
        self, signals: SignalEmitter, start: float, reason: str, error: str | None = None
    ) -> ComprehensiveSnapshot:
        emit_structured_error(
            logger,
            code=ErrorCode.FALLBACK_USED,
            message=error or reason,
            suppressed=True,
            url=self._config.dashboard_url,
            details={"reason": reason},
        )
        await signals.emit(SignalType.FALLBACK_USED, {"reason": reason})
        snapshot = build_fallback_snapshot(next_update_hour=self._config.next_update_hour)
        await signals.emit_run_complete(FALLBACK_METHOD, "low", round(time.monotonic() - start, 2))
        return snapshot

    # --- Date-scoped path ---

    async def snapshot_for_date(
        self, target_date: str, signals: SignalEmitter | None = None
    ) -> DatedSnapshot | None:
        """One day's snapshot, or None when that day has no data."""
        extractor = DateScopedExtractor(
            self._fetcher,
            self._config.dashboard_url,
            classifier=self._classifier,
            retry=self._config.retry,
        )
        return await extractor.extract(target_date, signals or self.new_signals("date"))

    async def available_dates(self) -> list[str]:
        return await available_dates(self._fetcher, self._config.dashboard_url)

    # --- Integration layer ---

    async def comprehensive_platform_data(self, signals: SignalEmitter | None = None) -> ComprehensiveSnapshot:
        """Live snapshot, replaced by server data when the live path fell back.

        The server is only consulted when credentials are configured; any
        server failure keeps the fallback snapshot.
        """
        snapshot = await self.fresh_snapshot(signals)
        if snapshot.extraction_info.method != FALLBACK_METHOD or not self._config.server.is_configured:
            return snapshot

        server = self._config.server
        try:
            async with httpx.AsyncClient(
                timeout=self._config.timeouts.server_timeout_s, transport=self._server_transport
            ) as client:
                session = await authenticate(server, client)
                try:
                    funnel = await fetch_view_data(session, server.workbook, server.view, client)
                finally:
                    await sign_out(session, client)
        except ServerError as exc:
            code = ErrorCode.SERVER_AUTH_FAILED if isinstance(exc, ServerAuthError) else ErrorCode.SERVER_FETCH_FAILED
            emit_structured_error(
                logger,
                code=code,
                message=str(exc),
                suppressed=True,
                url=server.server_url,
                details={"workbook": server.workbook, "view": server.view},
            )
            return snapshot

        logger.info("Using server view data", extra={"workbook": server.workbook, "view": server.view})
        return snapshot_from_server_funnel(funnel, next_update_hour=self._config.next_update_hour)

    async def funnel_data(self) -> RevenueFunnel:
        snapshot = await self.comprehensive_platform_data()
        return snapshot.revenue_funnel
