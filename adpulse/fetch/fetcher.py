"""Dashboard fetcher — retrieves raw HTML for a dashboard view with bounded retry.

The fetcher has no decision-making authority. It performs GETs and returns
the document; it never substitutes fallback data for a failed fetch.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone

import httpx
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from adpulse.config.settings import AdPulseConfig, BrowserConfig, RetryConfig, TimeoutConfig
from adpulse.signals.emitter import SignalEmitter
from adpulse.signals.types import SignalType
from adpulse.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """Raised when a dashboard view cannot be retrieved."""


class NetworkError(FetchError):
    """Connection failure or non-success HTTP status."""


class FetchTimeout(FetchError):
    """The per-attempt timeout elapsed."""


@dataclass
class RawDocument:
    """HTML of one dashboard view plus fetch metadata."""

    html: str
    url: str
    status_code: int
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def dom_hash(self) -> str:
        return hashlib.sha256(self.html.encode()).hexdigest()[:16]


class Fetcher(ABC):
    """Fixed-delay retry loop shared by every transport.

    Contract:
    - At most ``retry.max_attempts`` attempts, ``retry.delay_s`` apart
    - The delay is constant, never exponential
    - The last error propagates once attempts are exhausted
    """

    def __init__(
        self,
        retry: RetryConfig | None = None,
        timeouts: TimeoutConfig | None = None,
        browser: BrowserConfig | None = None,
    ) -> None:
        self._retry = retry or RetryConfig()
        self._timeouts = timeouts or TimeoutConfig()
        self._browser = browser or BrowserConfig()

    @abstractmethod
    async def _get(self, url: str) -> RawDocument:
        """Perform one GET attempt."""

    async def fetch_once(self, url: str) -> RawDocument:
        """Single attempt, no retry."""
        return await self._get(url)

    async def fetch(self, url: str, signals: SignalEmitter | None = None) -> RawDocument:
        """Fetch ``url``, retrying on FetchError with a fixed delay."""
        max_attempts = self._retry.max_attempts
        last_error: FetchError | None = None

        for attempt in range(1, max_attempts + 1):
            if signals:
                await signals.emit(SignalType.FETCH_ATTEMPT, {"url": url, "attempt": attempt})
            try:
                document = await self._get(url)
                logger.info(
                    "Fetched dashboard view",
                    extra={"url": url, "attempt": attempt, "status_code": document.status_code},
                )
                return document
            except FetchError as exc:
                last_error = exc
                logger.warning(
                    "Fetch attempt failed",
                    extra={"url": url, "attempt": attempt, "error": str(exc)},
                )
                if attempt < max_attempts:
                    if signals:
                        await signals.emit(
                            SignalType.RETRY_ATTEMPT,
                            {
                                "attempt_number": attempt,
                                "max_attempts": max_attempts,
                                "reason": str(exc),
                            },
                        )
                    await asyncio.sleep(self._retry.delay_s)

        emit_structured_error(
            logger,
            code=ErrorCode.FETCH_FAILED,
            message=str(last_error),
            suppressed=False,
            url=url,
            details={"attempts": max_attempts},
        )
        assert last_error is not None
        raise last_error


class HttpFetcher(Fetcher):
    """Plain HTTP transport. A fresh client is opened for every attempt."""

    def __init__(self, *args, transport: httpx.AsyncBaseTransport | None = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._transport = transport

    async def _get(self, url: str) -> RawDocument:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeouts.fetch_timeout_s,
                follow_redirects=True,
                headers=self._browser.request_headers(),
                transport=self._transport,
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise FetchTimeout(f"Timed out fetching {url}") from exc
        except httpx.HTTPStatusError as exc:
            raise NetworkError(f"HTTP {exc.response.status_code} from {url}") from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"Request to {url} failed: {exc}") from exc

        return RawDocument(html=response.text, url=str(response.url), status_code=response.status_code)


class BrowserFetcher(Fetcher):
    """Headless Chromium transport for views that render client-side.

    A browser is launched and torn down per attempt; nothing is shared
    between calls.
    """

    async def _get(self, url: str) -> RawDocument:
        timeout_ms = self._timeouts.fetch_timeout_s * 1000
        try:
            async with async_playwright() as playwright:
                browser = await playwright.chromium.launch(headless=self._browser.headless)
                try:
                    context = await browser.new_context(
                        user_agent=self._browser.user_agent,
                        locale=self._browser.locale,
                        extra_http_headers={"Accept-Language": self._browser.accept_language},
                    )
                    page = await context.new_page()
                    response = await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
                    html = await page.content()
                finally:
                    await browser.close()
        except PlaywrightTimeoutError as exc:
            raise FetchTimeout(f"Timed out rendering {url}") from exc
        except PlaywrightError as exc:
            raise NetworkError(f"Browser failed to load {url}: {exc}") from exc

        status = response.status if response else 200
        if status >= 400:
            raise NetworkError(f"HTTP {status} from {url}")
        return RawDocument(html=html, url=url, status_code=status)


def build_fetcher(config: AdPulseConfig) -> Fetcher:
    """Pick the transport configured for this deployment."""
    fetcher_cls = BrowserFetcher if config.browser.render_js else HttpFetcher
    return fetcher_cls(retry=config.retry, timeouts=config.timeouts, browser=config.browser)
