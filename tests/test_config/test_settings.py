"""Tests for configuration defaults, environment lookup and validation."""

import pytest

from adpulse.config.settings import (
    DEFAULT_DASHBOARD_URL,
    AdPulseConfig,
    ApiConfig,
    BrowserConfig,
    RetryConfig,
    ServerConfig,
)


def test_retry_defaults():
    cfg = RetryConfig()
    assert cfg.max_attempts == 3
    assert cfg.delay_s == 5.0


def test_retry_rejects_zero_attempts():
    with pytest.raises(ValueError):
        RetryConfig(max_attempts=0)


def test_retry_rejects_negative_delay():
    with pytest.raises(ValueError):
        RetryConfig(delay_s=-1)


def test_dashboard_url_default(monkeypatch):
    monkeypatch.delenv("TABLEAU_DASHBOARD_URL", raising=False)
    assert AdPulseConfig().dashboard_url == DEFAULT_DASHBOARD_URL


def test_dashboard_url_from_environment(monkeypatch):
    monkeypatch.setenv("TABLEAU_DASHBOARD_URL", "https://tableau.example.com/views/Other")
    assert AdPulseConfig().dashboard_url == "https://tableau.example.com/views/Other"


def test_dashboard_url_rejects_non_http():
    with pytest.raises(ValueError):
        AdPulseConfig(dashboard_url="ftp://tableau.example.com/view")


def test_next_update_hour_range():
    with pytest.raises(ValueError):
        AdPulseConfig(next_update_hour=24)


def test_server_credentials_from_environment(monkeypatch):
    monkeypatch.setenv("TABLEAU_SERVER_URL", "https://tableau.example.com")
    monkeypatch.setenv("TABLEAU_USERNAME", "analyst")
    monkeypatch.setenv("TABLEAU_PASSWORD", "secret")
    monkeypatch.delenv("TABLEAU_SITE_ID", raising=False)

    cfg = ServerConfig()

    assert cfg.is_configured
    assert cfg.site_id == "default"


def test_server_unconfigured_without_password(monkeypatch):
    monkeypatch.delenv("TABLEAU_PASSWORD", raising=False)
    cfg = ServerConfig(server_url="https://tableau.example.com", username="analyst")
    assert not cfg.is_configured


def test_render_js_from_environment(monkeypatch):
    monkeypatch.setenv("ADPULSE_RENDER_JS", "true")
    assert BrowserConfig().render_js is True
    monkeypatch.setenv("ADPULSE_RENDER_JS", "no")
    assert BrowserConfig().render_js is False


def test_request_headers_identify_as_browser():
    headers = BrowserConfig().request_headers()
    assert "Mozilla/5.0" in headers["User-Agent"]
    assert headers["Accept-Language"] == "en-US,en;q=0.5"


def test_allowed_origins_from_environment(monkeypatch):
    monkeypatch.setenv("ADPULSE_ALLOWED_ORIGINS", "https://a.example, https://b.example")
    assert ApiConfig().allowed_origins == ["https://a.example", "https://b.example"]


def test_allowed_origins_default_to_any(monkeypatch):
    monkeypatch.delenv("ADPULSE_ALLOWED_ORIGINS", raising=False)
    assert ApiConfig().allowed_origins == ["*"]


def test_allowed_origins_reject_paths_and_bare_hosts():
    with pytest.raises(ValueError):
        ApiConfig(allowed_origins=["https://a.example/reports"])
    with pytest.raises(ValueError):
        ApiConfig(allowed_origins=["localhost:3000"])


def test_wildcard_origin_stands_alone():
    with pytest.raises(ValueError):
        ApiConfig(allowed_origins=["*", "https://a.example"])
