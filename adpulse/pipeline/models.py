"""Extraction data models — candidates, evidence bundles and snapshots.

Derived ratios on PlatformMetrics are computed fields: they are always
recomputed from the base counters and cannot be set independently.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from adpulse.pipeline import metrics as calc

Confidence = Literal["high", "medium", "low"]


class CamelModel(BaseModel):
    """Serialises with camelCase keys, accepts either spelling on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Evidence ---


class CandidateKind(str, Enum):
    CURRENCY = "currency"
    PERCENTAGE = "percentage"
    COUNT = "count"


class ElementRef(BaseModel):
    """Where in the document a token was found."""

    tag: str = ""
    css_class: str = ""
    id: str = ""


class Candidate(BaseModel):
    """A numeric token not yet assigned a semantic role."""

    value: float
    kind: CandidateKind
    raw_text: str
    context_text: str
    origin: ElementRef = Field(default_factory=ElementRef)


class TextCapture(BaseModel):
    """A short non-numeric string captured as a label or header."""

    text: str
    origin: ElementRef = Field(default_factory=ElementRef)


class ScriptDatum(BaseModel):
    """One payload parsed out of an inline script."""

    key: str
    shape: Literal["object", "array", "assignment"]
    value: Any


class VisibleData(BaseModel):
    currencies: list[Candidate] = Field(default_factory=list)
    percentages: list[Candidate] = Field(default_factory=list)
    metrics: list[Candidate] = Field(default_factory=list)
    labels: list[TextCapture] = Field(default_factory=list)
    headers: list[TextCapture] = Field(default_factory=list)


class TableCapture(BaseModel):
    headers: list[str] = Field(default_factory=list)
    rows: list[list[str]] = Field(default_factory=list)


class ChartCapture(BaseModel):
    attributes: dict[str, str] = Field(default_factory=dict)
    text_elements: list[str] = Field(default_factory=list)
    paths: list[str] = Field(default_factory=list)


class ExtractionBundle(BaseModel):
    """The evidence pool of one fetch, keyed by extraction source."""

    script: list[ScriptDatum] = Field(default_factory=list)
    visible: VisibleData = Field(default_factory=VisibleData)
    tables: list[TableCapture] = Field(default_factory=list)
    charts: list[ChartCapture] = Field(default_factory=list)

    def data_points(self) -> int:
        """Distinct data points across all four sources."""
        numeric = {
            (c.kind, c.value)
            for c in (
                *self.visible.currencies,
                *self.visible.percentages,
                *self.visible.metrics,
            )
        }
        texts = {t.text for t in (*self.visible.labels, *self.visible.headers)}
        return len(self.script) + len(numeric) + len(texts) + len(self.tables) + len(self.charts)

    def is_empty(self) -> bool:
        return self.data_points() == 0


# --- Snapshot ---


class PlatformMetrics(CamelModel):
    """Canonical per-platform record of base counters plus derived ratios."""

    date: str
    impressions: int = 0
    clicks: int = 0
    leads: int = 0
    prospects: int = 0
    qualified: int = 0
    proposals: int = 0
    closed: int = 0
    revenue: float = 0.0
    ad_spend: float = 0.0
    extras: dict[str, float] = Field(default_factory=dict)

    @computed_field(alias="grossProfit")
    @property
    def gross_profit(self) -> float:
        return calc.gross_profit(self.revenue, self.ad_spend)

    @computed_field(alias="netProfit")
    @property
    def net_profit(self) -> float:
        return calc.gross_profit(self.revenue, self.ad_spend)

    @computed_field
    @property
    def ctr(self) -> float:
        return calc.ctr(self.clicks, self.impressions)

    @computed_field
    @property
    def cpc(self) -> float:
        return calc.cpc(self.ad_spend, self.clicks)

    @computed_field
    @property
    def cpm(self) -> float:
        return calc.cpm(self.ad_spend, self.impressions)

    @computed_field
    @property
    def roas(self) -> float:
        return calc.roas(self.revenue, self.ad_spend)

    @computed_field(alias="conversionRate")
    @property
    def conversion_rate(self) -> float:
        return calc.conversion_rate(self.leads, self.clicks)

    @computed_field(alias="costPerLead")
    @property
    def cost_per_lead(self) -> float:
        return calc.cost_per_lead(self.ad_spend, self.leads)


class PlatformLabels(CamelModel):
    platform: str
    status: str
    performance: str
    recommendation: str
    last_optimized: str


class PlatformBlock(CamelModel):
    daily: PlatformMetrics
    labels: PlatformLabels


class RevenueFunnel(CamelModel):
    leads: int
    prospects: int
    qualified: int
    proposals: int
    closed: int
    revenue: float
    labels: dict[str, str] = Field(default_factory=dict)

    @computed_field(alias="conversionRates")
    @property
    def conversion_rates(self) -> dict[str, float]:
        return {
            "leadToProspect": calc.percentage(self.prospects, self.leads, places=1),
            "prospectToQualified": calc.percentage(self.qualified, self.prospects, places=1),
            "qualifiedToProposal": calc.percentage(self.proposals, self.qualified, places=1),
            "proposalToClosed": calc.percentage(self.closed, self.proposals, places=1),
        }


class ComparisonMetrics(CamelModel):
    revenue_advantage: float
    profit_advantage: float
    efficiency_advantage: float
    volume_advantage: int


class PlatformComparison(CamelModel):
    winner: str
    metrics: ComparisonMetrics
    recommendations: list[str] = Field(default_factory=list)


class Scorecard(CamelModel):
    customer_satisfaction: int
    team_efficiency: int
    goal_completion: int
    quality_score: int
    source: str
    last_updated: datetime


class ExtractionInfo(CamelModel):
    """Provenance and trust metadata attached to a snapshot."""

    method: str
    data_points: int = 0
    confidence: Confidence = "low"
    next_update: datetime
    source: str


class ComprehensiveSnapshot(CamelModel):
    """The only entity returned by the general extraction path."""

    extraction_date: str
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    google: PlatformBlock
    facebook: PlatformBlock
    revenue_funnel: RevenueFunnel
    platform_comparison: PlatformComparison
    scorecard: Scorecard
    data_labels: dict[str, str] = Field(default_factory=dict)
    extraction_info: ExtractionInfo


class DatedLabels(CamelModel):
    status: str
    recommendation: str


class DatedPlatformBlock(CamelModel):
    daily: PlatformMetrics
    labels: DatedLabels


class DatedComparison(CamelModel):
    winning_platform: Literal["google", "facebook"]
    revenue_advantage: float
    recommendations: list[str] = Field(default_factory=list)


class DatedSnapshot(CamelModel):
    """Snapshot scoped to a single requested day."""

    date: str
    google: DatedPlatformBlock
    facebook: DatedPlatformBlock
    comparison: DatedComparison
