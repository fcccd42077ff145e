"""Shared fixtures: canned dashboard markup and an in-memory fetcher."""

from __future__ import annotations

from typing import Callable

import pytest

from adpulse.config.settings import RetryConfig
from adpulse.fetch.fetcher import Fetcher, NetworkError, RawDocument

# Unlabelled KPI tiles, as the public view renders them
DASHBOARD_HTML = """
<html>
  <head>
    <title>Funnel Analysis</title>
    <script>var config = {"theme": "dark"};</script>
  </head>
  <body>
    <div class="kpi"><span class="value">$10,967</span></div>
    <div class="kpi"><span class="value">$9,168</span></div>
    <div class="kpi"><span class="value">472,278</span></div>
    <div class="kpi"><span class="value">15,959</span></div>
  </body>
</html>
"""


class StaticFetcher(Fetcher):
    """Serves canned HTML; a responder returning None means HTTP 503."""

    def __init__(self, responder: Callable[[str], str | None], max_attempts: int = 3) -> None:
        super().__init__(retry=RetryConfig(max_attempts=max_attempts, delay_s=0))
        self._responder = responder
        self.requested: list[str] = []

    async def _get(self, url: str) -> RawDocument:
        self.requested.append(url)
        html = self._responder(url)
        if html is None:
            raise NetworkError(f"HTTP 503 from {url}")
        return RawDocument(html=html, url=url, status_code=200)


@pytest.fixture
def dashboard_html() -> str:
    return DASHBOARD_HTML


@pytest.fixture
def static_fetcher() -> type[StaticFetcher]:
    return StaticFetcher


@pytest.fixture
def sleeps(monkeypatch) -> list[float]:
    """Record asyncio.sleep delays instead of waiting."""
    recorded: list[float] = []

    async def fake_sleep(delay: float) -> None:
        recorded.append(delay)

    monkeypatch.setattr("asyncio.sleep", fake_sleep)
    return recorded
