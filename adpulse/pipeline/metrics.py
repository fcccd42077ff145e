"""Metric synthesis — derived advertising ratios from base counters.

Every ratio guards its denominator: a zero denominator yields 0, never
NaN or infinity. Results are rounded to two decimal places.
"""

from __future__ import annotations

import math

# Funnel stage ratios applied to the top-of-funnel volume
PROSPECT_RATIO = 0.6
QUALIFIED_RATIO = 0.3
PROPOSAL_RATIO = 0.15


def _ratio(numerator: float, denominator: float, scale: float = 1.0, places: int = 2) -> float:
    if denominator <= 0:
        return 0.0
    return round((numerator / denominator) * scale, places)


def cpm(ad_spend: float, impressions: int) -> float:
    return _ratio(ad_spend, impressions, scale=1000)


def roas(revenue: float, ad_spend: float) -> float:
    return _ratio(revenue, ad_spend)


def ctr(clicks: int, impressions: int) -> float:
    return _ratio(clicks, impressions, scale=100)


def cpc(ad_spend: float, clicks: int) -> float:
    return _ratio(ad_spend, clicks)


def conversion_rate(leads: int, clicks: int) -> float:
    return _ratio(leads, clicks, scale=100)


def cost_per_lead(ad_spend: float, leads: int) -> float:
    return _ratio(ad_spend, leads)


def percentage(part: float, whole: float, places: int = 2) -> float:
    return _ratio(part, whole, scale=100, places=places)


def gross_profit(revenue: float, ad_spend: float) -> float:
    return round(revenue - ad_spend, 2)


def funnel_stages(volume: int, close_rate: float) -> dict[str, int]:
    """Prospect/qualified/proposal/closed counts implied by a top-of-funnel volume."""
    return {
        "prospects": math.floor(volume * PROSPECT_RATIO),
        "qualified": math.floor(volume * QUALIFIED_RATIO),
        "proposals": math.floor(volume * PROPOSAL_RATIO),
        "closed": math.floor(volume * close_rate),
    }
