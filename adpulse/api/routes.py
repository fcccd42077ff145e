"""REST API routes for AdPulse.

Provides endpoints for:
- The current comprehensive snapshot
- A snapshot scoped to one day
- The combined revenue funnel
- Dates the dashboard mentions

Each request builds its own engine; nothing is cached between requests.
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from fastapi import Path as PathParam
from pydantic import BaseModel, Field

from adpulse.config.settings import AdPulseConfig
from adpulse.engine.orchestrator import MetricsEngine
from adpulse.pipeline.models import ComprehensiveSnapshot, DatedSnapshot, RevenueFunnel

router = APIRouter()

ISO_DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


def get_engine() -> MetricsEngine:
    """Engine dependency. Configuration is re-read from the environment per request."""
    return MetricsEngine(AdPulseConfig())


# --- Response Models ---


class DatesResponse(BaseModel):
    dates: list[str] = Field(default_factory=list)


# --- Endpoints ---


@router.get("/snapshot", response_model=ComprehensiveSnapshot)
async def get_snapshot(engine: MetricsEngine = Depends(get_engine)) -> ComprehensiveSnapshot:
    """Current snapshot. Always answers; check extractionInfo.method for provenance."""
    return await engine.comprehensive_platform_data()


@router.get("/snapshot/{target_date}", response_model=DatedSnapshot)
async def get_dated_snapshot(
    target_date: str = PathParam(..., pattern=ISO_DATE_PATTERN),
    engine: MetricsEngine = Depends(get_engine),
) -> DatedSnapshot:
    try:
        date.fromisoformat(target_date)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Invalid date: {target_date}")

    snapshot = await engine.snapshot_for_date(target_date)
    if snapshot is None:
        raise HTTPException(status_code=404, detail=f"No data for {target_date}")
    return snapshot


@router.get("/funnel", response_model=RevenueFunnel)
async def get_funnel(engine: MetricsEngine = Depends(get_engine)) -> RevenueFunnel:
    return await engine.funnel_data()


@router.get("/dates", response_model=DatesResponse)
async def get_available_dates(engine: MetricsEngine = Depends(get_engine)) -> DatesResponse:
    return DatesResponse(dates=await engine.available_dates())
