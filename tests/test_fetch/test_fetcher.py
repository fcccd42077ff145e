"""Tests for the dashboard fetcher retry contract."""

import httpx
import pytest

from adpulse.config.settings import AdPulseConfig, BrowserConfig, RetryConfig
from adpulse.fetch.fetcher import (
    BrowserFetcher,
    FetchTimeout,
    HttpFetcher,
    NetworkError,
    RawDocument,
    build_fetcher,
)
from adpulse.signals.emitter import SignalEmitter
from adpulse.signals.types import SignalType

URL = "https://public.tableau.example/views/FunnelAnalysis"


def _fetcher(handler, **retry) -> HttpFetcher:
    return HttpFetcher(retry=RetryConfig(**retry), transport=httpx.MockTransport(handler))


class TestRetryBound:
    @pytest.mark.asyncio
    async def test_three_attempts_five_seconds_apart(self, sleeps):
        calls = []

        def handler(request):
            calls.append(request.url)
            return httpx.Response(503)

        with pytest.raises(NetworkError):
            await _fetcher(handler).fetch(URL)

        assert len(calls) == 3
        assert sleeps == [5.0, 5.0]

    @pytest.mark.asyncio
    async def test_success_after_transient_failure(self, sleeps):
        responses = iter([httpx.Response(500), httpx.Response(200, text="<html>ok</html>")])

        document = await _fetcher(lambda request: next(responses)).fetch(URL)

        assert document.html == "<html>ok</html>"
        assert document.status_code == 200
        assert sleeps == [5.0]

    @pytest.mark.asyncio
    async def test_no_sleep_after_first_success(self, sleeps):
        await _fetcher(lambda request: httpx.Response(200, text="ok")).fetch(URL)
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_configured_attempts(self, sleeps):
        calls = []

        def handler(request):
            calls.append(1)
            return httpx.Response(404)

        with pytest.raises(NetworkError):
            await _fetcher(handler, max_attempts=1).fetch(URL)
        assert len(calls) == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_timeout_is_retried(self, sleeps):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(FetchTimeout):
            await _fetcher(handler).fetch(URL)
        assert len(sleeps) == 2

    @pytest.mark.asyncio
    async def test_connection_error_maps_to_network_error(self, sleeps):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(NetworkError):
            await _fetcher(handler, max_attempts=1).fetch(URL)

    @pytest.mark.asyncio
    async def test_signals_for_each_attempt(self, sleeps):
        signals = SignalEmitter(call_id="test_fetch")
        with pytest.raises(NetworkError):
            await _fetcher(lambda request: httpx.Response(503)).fetch(URL, signals)

        types = [s.signal_type for s in signals.signals]
        assert types.count(SignalType.FETCH_ATTEMPT) == 3
        assert types.count(SignalType.RETRY_ATTEMPT) == 2


class TestHttpFetcher:
    @pytest.mark.asyncio
    async def test_sends_browser_headers(self):
        seen = {}

        def handler(request):
            seen.update(request.headers)
            return httpx.Response(200, text="ok")

        await _fetcher(handler).fetch_once(URL)
        assert "Chrome/120" in seen["user-agent"]
        assert seen["accept-language"] == "en-US,en;q=0.5"

    @pytest.mark.asyncio
    async def test_fetch_once_does_not_retry(self, sleeps):
        with pytest.raises(NetworkError):
            await _fetcher(lambda request: httpx.Response(502)).fetch_once(URL)
        assert sleeps == []


class TestRawDocument:
    def test_dom_hash_is_stable(self):
        a = RawDocument(html="<p>x</p>", url=URL, status_code=200)
        b = RawDocument(html="<p>x</p>", url=URL, status_code=200)
        assert a.dom_hash == b.dom_hash
        assert len(a.dom_hash) == 16


class TestBuildFetcher:
    def test_http_by_default(self):
        config = AdPulseConfig(browser=BrowserConfig(render_js=False))
        assert isinstance(build_fetcher(config), HttpFetcher)

    def test_browser_when_rendering(self):
        config = AdPulseConfig(browser=BrowserConfig(render_js=True))
        assert isinstance(build_fetcher(config), BrowserFetcher)
