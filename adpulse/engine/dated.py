"""Date-scoped extraction — searches a small hypothesis space of request shapes.

The dashboard has no documented way to select a day, so each hypothesis is a
(request builder, validator) pair tried in order until one validates. Every
step goes through a guarded phase transition and emits a signal.

Responsibilities:
- Try each URL hypothesis with a single fetch, stopping on the first match
- Fall back to the un-dated main view and the historical extractor
- Retry the whole sequence only when the main view cannot be fetched
- Report "no data" as None, never as an exception

MUST NOT:
- Retry on a validation miss (a miss is control flow, not a failure)
- Substitute sample data for a missing day
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable
from urllib.parse import urlsplit, urlunsplit

from bs4 import BeautifulSoup

from adpulse.config.settings import RetryConfig
from adpulse.engine.phases import VALID_TRANSITIONS, ProbePhase
from adpulse.fetch.fetcher import Fetcher, FetchError
from adpulse.pipeline.classifier import CompositeClassifier, MetricClassifier
from adpulse.pipeline.models import (
    DatedComparison,
    DatedLabels,
    DatedPlatformBlock,
    DatedSnapshot,
    ExtractionBundle,
    PlatformMetrics,
)
from adpulse.pipeline.snapshot import FACEBOOK, GOOGLE, counters_from, platform_metrics
from adpulse.pipeline.sources import PARSER, extract_bundle, iter_text_nodes
from adpulse.signals.emitter import SignalEmitter
from adpulse.signals.types import SignalType
from adpulse.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)

STRONG_ROAS = 3.0

# Date shapes seen in dashboard text, with the format each one parses with
DATE_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\b\d{4}-\d{2}-\d{2}\b"), "%Y-%m-%d"),
    (re.compile(r"\b\d{1,2}/\d{1,2}/\d{4}\b"), "%m/%d/%Y"),
    (re.compile(r"\b\d{1,2}-\d{1,2}-\d{4}\b"), "%m-%d-%Y"),
)


class DateProbeError(Exception):
    """Raised on an invalid date-probe phase transition."""


def validate_date_data(data: DatedSnapshot | None, target_date: str) -> bool:
    """True only when ``data`` is tagged with exactly ``target_date``."""
    return data is not None and data.date == target_date


@dataclass(frozen=True)
class DateProbe:
    """One request-shape hypothesis."""

    name: str
    build_url: Callable[[str, str], str]
    validate: Callable[[DatedSnapshot | None, str], bool] = validate_date_data


def query_probe(param: str) -> DateProbe:
    def build(base_url: str, target_date: str) -> str:
        parts = urlsplit(base_url)
        pair = f"{param}={target_date}"
        query = f"{parts.query}&{pair}" if parts.query else pair
        return urlunsplit(parts._replace(query=query))

    return DateProbe(name=f"query:{param}", build_url=build)


def path_probe(segment: str) -> DateProbe:
    def build(base_url: str, target_date: str) -> str:
        parts = urlsplit(base_url)
        path = f"{parts.path.rstrip('/')}/{segment}/{target_date}"
        return urlunsplit(parts._replace(path=path))

    return DateProbe(name=f"path:{segment}", build_url=build)


def fragment_probe(key: str) -> DateProbe:
    def build(base_url: str, target_date: str) -> str:
        return urlunsplit(urlsplit(base_url)._replace(fragment=f"{key}={target_date}"))

    return DateProbe(name=f"fragment:{key}", build_url=build)


DEFAULT_PROBES: tuple[DateProbe, ...] = (
    query_probe("Date"),
    query_probe("date"),
    query_probe("filter_date"),
    query_probe("selected_date"),
    path_probe("date"),
    fragment_probe("date"),
)


def _dated_block(daily: PlatformMetrics) -> DatedPlatformBlock:
    return DatedPlatformBlock(
        daily=daily,
        labels=DatedLabels(
            status="Profitable" if daily.gross_profit > 0 else "Needs Optimization",
            recommendation="Performing Well" if daily.roas > STRONG_ROAS else "Optimize Campaigns",
        ),
    )


def build_dated_structure(
    bundle: ExtractionBundle, target_date: str, classifier: MetricClassifier
) -> DatedSnapshot | None:
    """Build the day-tagged structure from one document's evidence.

    Google counters come from the classifier; Facebook counters only from
    explicit fb_* labels. Roles nobody filled are 0, never sample values.
    Returns None when the Google side has neither revenue nor impressions.
    """
    classification = classifier.classify(bundle)
    google = platform_metrics(GOOGLE, target_date, counters_from(GOOGLE, classification))
    facebook = platform_metrics(FACEBOOK, target_date, counters_from(FACEBOOK, classification))

    if google.revenue == 0 and google.impressions == 0:
        return None

    google_wins = google.revenue > facebook.revenue
    winner = "Google" if google_wins else "Facebook"
    return DatedSnapshot(
        date=target_date,
        google=_dated_block(google),
        facebook=_dated_block(facebook),
        comparison=DatedComparison(
            winning_platform="google" if google_wins else "facebook",
            revenue_advantage=round(abs(google.revenue - facebook.revenue), 2),
            recommendations=[f"Data for {target_date} - {winner} performed better"],
        ),
    )


def extract_historical_for_date(bundle: ExtractionBundle, target_date: str) -> DatedSnapshot | None:
    """Look for the requested day inside the un-dated main view.

    No historical layout is known for the public view, so this always
    reports no data.
    """
    logger.debug(
        "No historical pattern for date",
        extra={"target_date": target_date, "data_points": bundle.data_points()},
    )
    return None


def standardize_date(raw: str, fmt: str) -> str | None:
    try:
        return datetime.strptime(raw, fmt).date().isoformat()
    except ValueError:
        return None


def find_dates(html: str) -> list[str]:
    """Every calendar date visible in ``html`` as ISO strings, newest first."""
    dates: set[str] = set()
    for text, _parent in iter_text_nodes(BeautifulSoup(html, PARSER)):
        for pattern, fmt in DATE_PATTERNS:
            for match in pattern.findall(text):
                standard = standardize_date(match, fmt)
                if standard:
                    dates.add(standard)
    return sorted(dates, reverse=True)


async def available_dates(fetcher: Fetcher, url: str) -> list[str]:
    """Dates the main view mentions; empty when none are found or the fetch fails."""
    try:
        document = await fetcher.fetch(url)
    except FetchError as exc:
        emit_structured_error(
            logger,
            code=ErrorCode.FETCH_FAILED,
            message=str(exc),
            suppressed=True,
            url=url,
            details={"operation": "available_dates"},
        )
        return []
    dates = find_dates(document.html)
    logger.info("Found available dates", extra={"url": url, "count": len(dates)})
    return dates


class _ProbeRun:
    """Mutable state of a single date-scoped extraction call."""

    def __init__(self, target_date: str, signals: SignalEmitter) -> None:
        self.target_date = target_date
        self.signals = signals
        self.phase = ProbePhase.INIT

    async def transition(self, to_phase: ProbePhase, context: dict[str, Any] | None = None) -> None:
        """Every phase change goes through here."""
        if to_phase not in VALID_TRANSITIONS.get(self.phase, set()):
            raise DateProbeError(f"Invalid transition: {self.phase.value} -> {to_phase.value}")

        from_phase = self.phase
        self.phase = to_phase
        await self.signals.emit_phase_transition(
            from_phase=from_phase.value,
            to_phase=to_phase.value,
            context={"target_date": self.target_date, **(context or {})},
        )

    async def miss(self, probe: DateProbe, reason: str, detail: str = "") -> None:
        logger.debug(
            "Date probe missed",
            extra={"probe": probe.name, "reason": reason, "detail": detail, "target_date": self.target_date},
        )
        await self.signals.emit(
            SignalType.PROBE_MISS,
            {"probe": probe.name, "reason": reason, "target_date": self.target_date},
        )


class DateScopedExtractor:
    """Retrieves one day's snapshot, or None when the day cannot be found."""

    def __init__(
        self,
        fetcher: Fetcher,
        base_url: str,
        classifier: MetricClassifier | None = None,
        probes: tuple[DateProbe, ...] | list[DateProbe] | None = None,
        retry: RetryConfig | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._base_url = base_url
        self._classifier = classifier or CompositeClassifier()
        self._probes = tuple(DEFAULT_PROBES if probes is None else probes)
        self._retry = retry or RetryConfig()

    async def extract(self, target_date: str, signals: SignalEmitter | None = None) -> DatedSnapshot | None:
        run = _ProbeRun(target_date, signals or SignalEmitter(call_id=f"date_{uuid.uuid4().hex[:12]}"))
        max_attempts = self._retry.max_attempts

        for attempt in range(1, max_attempts + 1):
            try:
                return await self._run_sequence(run)
            except FetchError as exc:
                logger.warning(
                    "Main view fetch failed",
                    extra={"target_date": target_date, "attempt": attempt, "error": str(exc)},
                )
                if attempt == max_attempts:
                    emit_structured_error(
                        logger,
                        code=ErrorCode.DATE_PROBE_FAILED,
                        message=str(exc),
                        suppressed=True,
                        url=self._base_url,
                        phase=run.phase.value,
                        details={"target_date": target_date, "attempts": max_attempts},
                    )
                    await run.transition(ProbePhase.NOT_FOUND, {"reason": "main_view_unreachable"})
                    return None
                await run.signals.emit(
                    SignalType.RETRY_ATTEMPT,
                    {"attempt_number": attempt, "max_attempts": max_attempts, "reason": str(exc)},
                )
                await asyncio.sleep(self._retry.delay_s)
        return None

    async def _run_sequence(self, run: _ProbeRun) -> DatedSnapshot | None:
        """One pass over every hypothesis, then the main view.

        Raises FetchError only when the main view itself cannot be fetched.
        """
        for probe in self._probes:
            url = probe.build_url(self._base_url, run.target_date)
            await run.transition(ProbePhase.PROBE_URL, {"probe": probe.name, "url": url})
            try:
                document = await self._fetcher.fetch_once(url)
            except FetchError as exc:
                await run.miss(probe, "fetch_failed", str(exc))
                continue

            await run.transition(ProbePhase.PARSE, {"probe": probe.name})
            data = build_dated_structure(extract_bundle(document), run.target_date, self._classifier)
            if data is None:
                await run.miss(probe, "no_data")
                continue

            await run.transition(ProbePhase.VALIDATE, {"probe": probe.name})
            if probe.validate(data, run.target_date):
                await run.transition(ProbePhase.FOUND, {"probe": probe.name})
                logger.info("Found dated snapshot", extra={"target_date": run.target_date, "probe": probe.name})
                return data
            await run.miss(probe, "date_mismatch")

        await run.transition(ProbePhase.MAIN_VIEW, {"url": self._base_url})
        document = await self._fetcher.fetch_once(self._base_url)

        await run.transition(ProbePhase.HISTORICAL)
        data = extract_historical_for_date(extract_bundle(document), run.target_date)
        if validate_date_data(data, run.target_date):
            await run.transition(ProbePhase.FOUND, {"probe": "historical"})
            return data

        await run.transition(ProbePhase.NOT_FOUND, {"reason": "no_data_for_date"})
        logger.info("No data for date", extra={"target_date": run.target_date})
        return None
