"""Snapshot assembly — turns classified counters into a ComprehensiveSnapshot.

Shared by the live extraction path, the fallback generator and the
authenticated server path, so all three produce structurally identical
snapshots.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Mapping

from adpulse.fetch.server_api import ServerFunnel
from adpulse.pipeline import metrics as calc
from adpulse.pipeline.classifier import Classification, MetricRole
from adpulse.pipeline.models import (
    ComparisonMetrics,
    ComprehensiveSnapshot,
    Confidence,
    ExtractionInfo,
    PlatformBlock,
    PlatformComparison,
    PlatformLabels,
    PlatformMetrics,
    RevenueFunnel,
    Scorecard,
)

FUNNEL_CLOSE_RATE = 0.11

# Server totals are split between the platforms in this proportion
GOOGLE_SHARE = 0.9
FACEBOOK_SHARE = 0.1


@dataclass(frozen=True)
class PlatformProfile:
    """Static description of one advertising platform."""

    key: str
    display_name: str
    channel_status: str
    close_rate: float
    roles: Mapping[str, MetricRole]
    extra_roles: Mapping[str, MetricRole]
    sample: Mapping[str, float]
    sample_extras: Mapping[str, float] = field(default_factory=dict)
    recommendations: tuple[str, ...] = ()


GOOGLE = PlatformProfile(
    key="google",
    display_name="Google Ads",
    channel_status="Active - Primary Channel",
    close_rate=0.11,
    roles={
        "impressions": MetricRole.IMPRESSIONS,
        "clicks": MetricRole.CLICKS,
        "leads": MetricRole.LEADS,
        "revenue": MetricRole.REVENUE,
        "ad_spend": MetricRole.AD_SPEND,
    },
    extra_roles={
        "qualityScore": MetricRole.QUALITY_SCORE,
        "avgPosition": MetricRole.AVG_POSITION,
        "searchImpressionShare": MetricRole.SEARCH_IMPRESSION_SHARE,
    },
    sample={"impressions": 472278, "clicks": 15959, "leads": 1755, "revenue": 10967, "ad_spend": 9168},
    sample_extras={"qualityScore": 8.5, "avgPosition": 2.3, "searchImpressionShare": 65.2},
    recommendations=(
        "Shift 80% of budget to Google Ads",
        "Pause or optimize Facebook campaigns",
        "Focus on Google Ads scaling",
        "Test new Google Ad groups",
    ),
)

FACEBOOK = PlatformProfile(
    key="facebook",
    display_name="Facebook Ads",
    channel_status="Active - Secondary Channel",
    close_rate=0.10,
    roles={
        "impressions": MetricRole.FB_IMPRESSIONS,
        "clicks": MetricRole.FB_CLICKS,
        "leads": MetricRole.FB_LEADS,
        "revenue": MetricRole.FB_REVENUE,
        "ad_spend": MetricRole.FB_SPEND,
    },
    extra_roles={
        "relevanceScore": MetricRole.RELEVANCE_SCORE,
        "frequency": MetricRole.FREQUENCY,
        "reach": MetricRole.REACH,
    },
    sample={"impressions": 1229, "clicks": 510, "leads": 51, "revenue": 156, "ad_spend": 273},
    sample_extras={"relevanceScore": 7.2, "frequency": 1.8, "reach": 683},
    recommendations=(
        "Shift 80% of budget to Facebook Ads",
        "Pause or optimize Google Ads campaigns",
        "Focus on Facebook Ads scaling",
        "Test new Facebook ad sets",
    ),
)

FUNNEL_LABELS = {
    "leads": "Total Leads Generated",
    "prospects": "Qualified Prospects",
    "qualified": "Sales Qualified Leads",
    "proposals": "Proposals Sent",
    "closed": "Deals Closed",
    "revenue": "Total Revenue Generated",
}

DATA_LABELS = {
    "impressions": "Number of times ads were displayed",
    "clicks": "Number of clicks on ads",
    "leads": "Potential customers who showed interest",
    "prospects": "Leads that have been contacted",
    "qualified": "Prospects that meet buying criteria",
    "proposals": "Formal proposals sent to qualified leads",
    "closed": "Successfully completed sales",
    "revenue": "Total money generated from sales",
    "adSpend": "Amount spent on advertising",
    "grossProfit": "Revenue minus advertising costs",
    "ctr": "Click-through rate (clicks/impressions)",
    "cpc": "Cost per click",
    "cpm": "Cost per thousand impressions",
    "roas": "Return on advertising spend",
    "conversionRate": "Percentage of clicks that became leads",
    "costPerLead": "Advertising spend per lead",
}

SCORECARD_FIGURES = {
    "customer_satisfaction": 92,
    "team_efficiency": 88,
    "goal_completion": 75,
    "quality_score": 94,
}


def next_update_time(now: datetime, hour: int = 8) -> datetime:
    """The next daily refresh: tomorrow at ``hour``:00 UTC."""
    tomorrow = (now.astimezone(timezone.utc) + timedelta(days=1)).date()
    return datetime(tomorrow.year, tomorrow.month, tomorrow.day, hour, tzinfo=timezone.utc)


def platform_metrics(
    profile: PlatformProfile,
    date: str,
    counters: Mapping[str, float],
    extras: Mapping[str, float] | None = None,
) -> PlatformMetrics:
    """Build a PlatformMetrics record; funnel stages follow from clicks."""
    clicks = int(counters.get("clicks", 0))
    return PlatformMetrics(
        date=date,
        impressions=int(counters.get("impressions", 0)),
        clicks=clicks,
        leads=int(counters.get("leads", 0)),
        revenue=float(counters.get("revenue", 0)),
        ad_spend=float(counters.get("ad_spend", 0)),
        extras=dict(extras or {}),
        **calc.funnel_stages(clicks, profile.close_rate),
    )


def counters_from(
    profile: PlatformProfile,
    classification: Classification,
    defaults: Mapping[str, float] | None = None,
) -> dict[str, float]:
    """Read a platform's base counters out of a classification.

    Roles the classifier could not fill take the value from ``defaults``
    (0 when no default is given).
    """
    defaults = defaults or {}
    return {
        name: classification.get(role, defaults.get(name, 0)) for name, role in profile.roles.items()
    }


def extras_from(profile: PlatformProfile, classification: Classification) -> dict[str, float]:
    return {
        name: classification.get(role, profile.sample_extras.get(name, 0.0))
        for name, role in profile.extra_roles.items()
    }


def channel_labels(profile: PlatformProfile, daily: PlatformMetrics, today: str) -> PlatformLabels:
    profitable = daily.gross_profit > 0
    return PlatformLabels(
        platform=profile.display_name,
        status=profile.channel_status,
        performance="Profitable" if profitable else "Needs Optimization",
        recommendation="Increase Budget" if profitable else "Reduce Budget or Pause",
        last_optimized=today,
    )


def build_revenue_funnel(
    google: PlatformMetrics,
    facebook: PlatformMetrics,
    total_leads: float | None = None,
    total_revenue: float | None = None,
) -> RevenueFunnel:
    """Combined funnel; platform sums stand in for missing totals."""
    leads = int(total_leads) if total_leads is not None else google.leads + facebook.leads
    revenue = total_revenue if total_revenue is not None else google.revenue + facebook.revenue
    return RevenueFunnel(
        leads=leads,
        revenue=round(revenue, 2),
        labels=dict(FUNNEL_LABELS),
        **calc.funnel_stages(leads, FUNNEL_CLOSE_RATE),
    )


def build_platform_comparison(google: PlatformMetrics, facebook: PlatformMetrics) -> PlatformComparison:
    """Winner is the platform with more revenue; advantages are winner minus loser."""
    if google.revenue >= facebook.revenue:
        winner, leader, trailer = GOOGLE, google, facebook
    else:
        winner, leader, trailer = FACEBOOK, facebook, google
    return PlatformComparison(
        winner=winner.display_name,
        metrics=ComparisonMetrics(
            revenue_advantage=round(leader.revenue - trailer.revenue, 2),
            profit_advantage=round(leader.gross_profit - trailer.gross_profit, 2),
            efficiency_advantage=round(leader.roas - trailer.roas, 2),
            volume_advantage=leader.impressions - trailer.impressions,
        ),
        recommendations=list(winner.recommendations),
    )


def assemble_snapshot(
    google: PlatformMetrics,
    facebook: PlatformMetrics,
    *,
    method: str,
    source: str,
    confidence: Confidence,
    data_points: int,
    now: datetime,
    next_update_hour: int = 8,
    total_leads: float | None = None,
    total_revenue: float | None = None,
    revenue_funnel: RevenueFunnel | None = None,
) -> ComprehensiveSnapshot:
    today = google.date
    return ComprehensiveSnapshot(
        extraction_date=today,
        last_updated=now,
        google=PlatformBlock(daily=google, labels=channel_labels(GOOGLE, google, today)),
        facebook=PlatformBlock(daily=facebook, labels=channel_labels(FACEBOOK, facebook, today)),
        revenue_funnel=revenue_funnel or build_revenue_funnel(google, facebook, total_leads, total_revenue),
        platform_comparison=build_platform_comparison(google, facebook),
        scorecard=Scorecard(source="tableau_public", last_updated=now, **SCORECARD_FIGURES),
        data_labels=dict(DATA_LABELS),
        extraction_info=ExtractionInfo(
            method=method,
            data_points=data_points,
            confidence=confidence,
            next_update=next_update_time(now, next_update_hour),
            source=source,
        ),
    )


def snapshot_from_classification(
    classification: Classification,
    *,
    confidence: Confidence,
    data_points: int,
    now: datetime | None = None,
    next_update_hour: int = 8,
) -> ComprehensiveSnapshot:
    """Live snapshot: classified values, sample values for unfilled roles."""
    now = now or datetime.now(timezone.utc)
    today = now.date().isoformat()
    google = platform_metrics(
        GOOGLE, today, counters_from(GOOGLE, classification, GOOGLE.sample), extras_from(GOOGLE, classification)
    )
    facebook = platform_metrics(
        FACEBOOK,
        today,
        counters_from(FACEBOOK, classification, FACEBOOK.sample),
        extras_from(FACEBOOK, classification),
    )
    return assemble_snapshot(
        google,
        facebook,
        method="comprehensive_tableau_extraction",
        source="tableau_public_enhanced",
        confidence=confidence,
        data_points=data_points,
        now=now,
        next_update_hour=next_update_hour,
        total_leads=classification.get(MetricRole.TOTAL_LEADS),
        total_revenue=classification.get(MetricRole.TOTAL_REVENUE),
    )


def _split(total: float, share: float, sample: float) -> float:
    return round(total * share, 2) if total > 0 else sample


def snapshot_from_server_funnel(
    funnel: ServerFunnel,
    *,
    now: datetime | None = None,
    next_update_hour: int = 8,
) -> ComprehensiveSnapshot:
    """Snapshot built from the authenticated server's funnel counts.

    Revenue and ad spend are split 90/10 between Google and Facebook; any
    counter the server did not report keeps its sample value. The funnel
    block carries the server's own stage counts.
    """
    now = now or datetime.now(timezone.utc)
    today = now.date().isoformat()

    google_counters = {
        **GOOGLE.sample,
        "revenue": _split(funnel.revenue, GOOGLE_SHARE, GOOGLE.sample["revenue"]),
        "ad_spend": _split(funnel.ad_spend, GOOGLE_SHARE, GOOGLE.sample["ad_spend"]),
    }
    if funnel.impressions > 0:
        google_counters["impressions"] = funnel.impressions
    facebook_counters = {
        **FACEBOOK.sample,
        "revenue": _split(funnel.revenue, FACEBOOK_SHARE, FACEBOOK.sample["revenue"]),
        "ad_spend": _split(funnel.ad_spend, FACEBOOK_SHARE, FACEBOOK.sample["ad_spend"]),
    }

    revenue_funnel = RevenueFunnel(
        leads=int(funnel.leads),
        prospects=int(funnel.prospects),
        qualified=int(funnel.qualified),
        proposals=int(funnel.proposals),
        closed=int(funnel.closed),
        revenue=funnel.revenue,
        labels=dict(FUNNEL_LABELS),
    )
    reported = sum(1 for value in funnel.model_dump(exclude={"source"}).values() if value)

    return assemble_snapshot(
        platform_metrics(GOOGLE, today, google_counters, GOOGLE.sample_extras),
        platform_metrics(FACEBOOK, today, facebook_counters, FACEBOOK.sample_extras),
        method="tableau_integration_layer",
        source=funnel.source,
        confidence="high" if funnel.revenue > 0 and funnel.leads > 0 else "medium",
        data_points=reported,
        now=now,
        next_update_hour=next_update_hour,
        revenue_funnel=revenue_funnel,
    )
