"""FastAPI application entry point for AdPulse."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from adpulse.api.routes import router
from adpulse.config.settings import AdPulseConfig

SERVICE_VERSION = "1.0.0"


def create_app(config: AdPulseConfig | None = None) -> FastAPI:
    """Factory function for creating the FastAPI application."""
    config = config or AdPulseConfig()
    logging.getLogger("adpulse").setLevel(config.log_level.upper())

    app = FastAPI(
        title="AdPulse",
        description="Marketing dashboard metrics extraction",
        version=SERVICE_VERSION,
    )

    # Read-only surface: GET only, never cookies or auth headers
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.allowed_origins,
        allow_credentials=False,
        allow_methods=["GET"],
    )

    app.include_router(router, prefix="/api/v1")

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy", "service": "adpulse", "version": SERVICE_VERSION}

    return app


app = create_app()
