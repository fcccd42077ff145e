"""Fallback generator — the unconditional safety net.

Produces a complete snapshot from fixed figures. Derived ratios go through
the same formulas as live data, so the result is structurally identical to a
genuine low-confidence snapshot; only ``extraction_info.method`` and
``extraction_info.source`` reveal its provenance.
"""

from __future__ import annotations

from datetime import datetime, timezone

from adpulse.pipeline.models import ComprehensiveSnapshot
from adpulse.pipeline.snapshot import FACEBOOK, GOOGLE, assemble_snapshot, platform_metrics

FALLBACK_METHOD = "comprehensive_fallback_data"
FALLBACK_SOURCE = "fallback_complete_dataset"


def build_fallback_snapshot(
    now: datetime | None = None, next_update_hour: int = 8
) -> ComprehensiveSnapshot:
    now = now or datetime.now(timezone.utc)
    today = now.date().isoformat()
    return assemble_snapshot(
        platform_metrics(GOOGLE, today, GOOGLE.sample, GOOGLE.sample_extras),
        platform_metrics(FACEBOOK, today, FACEBOOK.sample, FACEBOOK.sample_extras),
        method=FALLBACK_METHOD,
        source=FALLBACK_SOURCE,
        confidence="low",
        data_points=0,
        now=now,
        next_update_hour=next_update_hour,
    )
