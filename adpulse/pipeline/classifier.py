"""Token classification — assigns ambiguous numeric tokens to metric roles.

Classification cascade (CompositeClassifier, the default):
1. Label match: script keys and visible context text naming a metric
2. Magnitude bands: remaining count and currency candidates by size

The magnitude heuristic is best-effort. It is wrong whenever the dashboard's
figures violate its range assumptions, and the largest currency token is
taken as revenue without checking that it exceeds ad spend.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from adpulse.pipeline.models import Candidate, CandidateKind, ExtractionBundle

logger = logging.getLogger(__name__)


class MetricRole(str, Enum):
    IMPRESSIONS = "impressions"
    CLICKS = "clicks"
    LEADS = "leads"
    REVENUE = "revenue"
    AD_SPEND = "ad_spend"
    TOTAL_LEADS = "total_leads"
    TOTAL_REVENUE = "total_revenue"
    FB_IMPRESSIONS = "fb_impressions"
    FB_CLICKS = "fb_clicks"
    FB_LEADS = "fb_leads"
    FB_REVENUE = "fb_revenue"
    FB_SPEND = "fb_spend"
    QUALITY_SCORE = "quality_score"
    AVG_POSITION = "avg_position"
    SEARCH_IMPRESSION_SHARE = "search_impression_share"
    RELEVANCE_SCORE = "relevance_score"
    FREQUENCY = "frequency"
    REACH = "reach"


# Script keys accepted for each role, compared case-insensitively
SCRIPT_KEY_ALIASES: dict[MetricRole, tuple[str, ...]] = {
    MetricRole.IMPRESSIONS: ("impressions",),
    MetricRole.CLICKS: ("clicks",),
    MetricRole.LEADS: ("leads",),
    MetricRole.REVENUE: ("revenue",),
    MetricRole.AD_SPEND: ("spend", "cost", "adspend", "ad_spend"),
    MetricRole.TOTAL_LEADS: ("total_leads", "totalleads"),
    MetricRole.TOTAL_REVENUE: ("total_revenue", "totalrevenue"),
    MetricRole.FB_IMPRESSIONS: ("fb_impressions",),
    MetricRole.FB_CLICKS: ("fb_clicks",),
    MetricRole.FB_LEADS: ("fb_leads",),
    MetricRole.FB_REVENUE: ("fb_revenue",),
    MetricRole.FB_SPEND: ("fb_spend", "fb_cost"),
    MetricRole.QUALITY_SCORE: ("quality", "quality_score", "qualityscore"),
    MetricRole.AVG_POSITION: ("position", "avg_position", "avgposition"),
    MetricRole.SEARCH_IMPRESSION_SHARE: ("impression_share", "search_impression_share"),
    MetricRole.RELEVANCE_SCORE: ("relevance", "relevance_score", "relevancescore"),
    MetricRole.FREQUENCY: ("frequency",),
    MetricRole.REACH: ("reach",),
}

# Visible-context keywords, only for base counters
CONTEXT_KEYWORDS: dict[MetricRole, re.Pattern[str]] = {
    MetricRole.IMPRESSIONS: re.compile(r"\bimpressions?\b", re.IGNORECASE),
    MetricRole.CLICKS: re.compile(r"\bclicks?\b", re.IGNORECASE),
    MetricRole.LEADS: re.compile(r"\bleads?\b", re.IGNORECASE),
    MetricRole.REVENUE: re.compile(r"\brevenue\b", re.IGNORECASE),
    MetricRole.AD_SPEND: re.compile(r"\b(?:ad\s*)?(?:spend|cost)\b", re.IGNORECASE),
}

COUNT_ROLES = {MetricRole.IMPRESSIONS, MetricRole.CLICKS, MetricRole.LEADS}
CURRENCY_ROLES = {MetricRole.REVENUE, MetricRole.AD_SPEND}

# Magnitude bands, lower bound inclusive
IMPRESSIONS_FLOOR = 100_000
CLICKS_BAND = (1_000, 100_000)
LEADS_BAND = (10, 1_000)


@dataclass
class Classification:
    """Role assignments for one bundle.

    ``consumed`` holds the ids of candidates already assigned, so no
    candidate is used for more than one role.
    """

    values: dict[MetricRole, float] = field(default_factory=dict)
    consumed: set[int] = field(default_factory=set)

    def get(self, role: MetricRole, default: float | None = None) -> float | None:
        return self.values.get(role, default)

    def has(self, role: MetricRole) -> bool:
        return role in self.values

    def assign(self, role: MetricRole, value: float, candidate: Candidate | None = None) -> None:
        self.values[role] = value
        if candidate is not None:
            self.consumed.add(id(candidate))

    def is_free(self, candidate: Candidate) -> bool:
        return id(candidate) not in self.consumed


class MetricClassifier(Protocol):
    """Classify ambiguous numeric tokens into metric roles."""

    def classify(
        self, bundle: ExtractionBundle, prior: Classification | None = None
    ) -> Classification: ...


class LabelClassifier:
    """Assign roles from contextual labels: script keys and visible context."""

    def classify(
        self, bundle: ExtractionBundle, prior: Classification | None = None
    ) -> Classification:
        result = prior or Classification()
        self._match_script_keys(bundle, result)
        self._match_visible_context(bundle, result)
        return result

    @staticmethod
    def _match_script_keys(bundle: ExtractionBundle, result: Classification) -> None:
        keyed: list[tuple[str, object]] = []
        for datum in bundle.script:
            if datum.shape == "assignment":
                keyed.append((datum.key, datum.value))
            elif datum.shape == "object":
                keyed.extend(datum.value.items())

        for key, value in keyed:
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                continue
            normalized = str(key).lower()
            for role, aliases in SCRIPT_KEY_ALIASES.items():
                if normalized in aliases and not result.has(role):
                    result.assign(role, float(value))
                    break

    @staticmethod
    def _match_visible_context(bundle: ExtractionBundle, result: Classification) -> None:
        pools = (
            (bundle.visible.metrics, COUNT_ROLES),
            (bundle.visible.currencies, CURRENCY_ROLES),
        )
        for candidates, allowed in pools:
            for candidate in candidates:
                if not result.is_free(candidate):
                    continue
                named = [r for r, pattern in CONTEXT_KEYWORDS.items() if pattern.search(candidate.context_text)]
                # Ambiguous when the context names more than one metric
                if len(named) != 1 or named[0] not in allowed or result.has(named[0]):
                    continue
                result.assign(named[0], candidate.value, candidate)


class MagnitudeClassifier:
    """Assign base counters by magnitude band, first match wins."""

    def classify(
        self, bundle: ExtractionBundle, prior: Classification | None = None
    ) -> Classification:
        result = prior or Classification()
        self._assign_counts(bundle.visible.metrics, result)
        self._assign_currencies(bundle.visible.currencies, result)
        return result

    @staticmethod
    def _assign_counts(candidates: list[Candidate], result: Classification) -> None:
        free = [c for c in candidates if c.kind == CandidateKind.COUNT and result.is_free(c)]
        for candidate in sorted(free, key=lambda c: c.value, reverse=True):
            value = candidate.value
            if value > IMPRESSIONS_FLOOR and not result.has(MetricRole.IMPRESSIONS):
                role = MetricRole.IMPRESSIONS
            elif CLICKS_BAND[0] <= value < CLICKS_BAND[1] and not result.has(MetricRole.CLICKS):
                role = MetricRole.CLICKS
            elif LEADS_BAND[0] <= value < LEADS_BAND[1] and not result.has(MetricRole.LEADS):
                role = MetricRole.LEADS
            else:
                continue
            result.assign(role, value, candidate)
            logger.debug("Assigned by magnitude", extra={"role": role.value, "value": value})

    @staticmethod
    def _assign_currencies(candidates: list[Candidate], result: Classification) -> None:
        free = [c for c in candidates if c.kind == CandidateKind.CURRENCY and result.is_free(c)]
        ordered = sorted(free, key=lambda c: c.value, reverse=True)
        for role in (MetricRole.REVENUE, MetricRole.AD_SPEND):
            if result.has(role) or not ordered:
                continue
            candidate = ordered.pop(0)
            result.assign(role, candidate.value, candidate)


class CompositeClassifier:
    """Label match first, then magnitude bands fill whatever is left."""

    def __init__(self, stages: list[MetricClassifier] | None = None) -> None:
        self._stages = stages or [LabelClassifier(), MagnitudeClassifier()]

    def classify(
        self, bundle: ExtractionBundle, prior: Classification | None = None
    ) -> Classification:
        result = prior or Classification()
        for stage in self._stages:
            result = stage.classify(bundle, result)
        return result
