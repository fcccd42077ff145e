"""Authenticated Tableau Server REST API client.

The sign-in token lives only in the ServerSession value returned by
``authenticate``; every later call takes that session explicitly and nothing
is cached between calls.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import BaseModel

from adpulse.config.settings import ServerConfig

logger = logging.getLogger(__name__)

AUTH_HEADER = "X-Tableau-Auth"
JSON_HEADERS = {"Accept": "application/json", "Content-Type": "application/json"}


class ServerError(Exception):
    """Base class for Tableau Server API failures."""


class ServerAuthError(ServerError):
    """Credentials are missing or were rejected."""


class ServerDataError(ServerError):
    """The workbook or view could not be read."""


class ServerSession(BaseModel):
    """A signed-in session. Immutable; pass it to every call that needs it."""

    server_url: str
    api_version: str
    token: str
    site_id: str

    model_config = {"frozen": True}

    @property
    def api_root(self) -> str:
        return f"{self.server_url.rstrip('/')}/api/{self.api_version}"

    @property
    def headers(self) -> dict[str, str]:
        return {AUTH_HEADER: self.token, "Accept": "application/json"}


class ServerFunnel(BaseModel):
    """Funnel counts as reported by the server view."""

    leads: float = 0
    prospects: float = 0
    qualified: float = 0
    proposals: float = 0
    closed: float = 0
    revenue: float = 0
    ad_spend: float = 0
    impressions: float = 0
    source: str = "tableau_server"

    model_config = {"allow_inf_nan": False}


async def authenticate(config: ServerConfig, client: httpx.AsyncClient) -> ServerSession:
    """Sign in and return the session.

    Raises:
        ServerAuthError: Credentials are not configured, the server refused
            them, or the response carried no token.
    """
    if not config.is_configured:
        raise ServerAuthError("Tableau Server credentials not configured")

    api_root = f"{config.server_url.rstrip('/')}/api/{config.api_version}"
    payload = {
        "credentials": {
            "name": config.username,
            "password": config.password,
            "site": {"contentUrl": config.site_id},
        }
    }
    try:
        response = await client.post(f"{api_root}/auth/signin", json=payload, headers=JSON_HEADERS)
        response.raise_for_status()
        credentials = response.json()["credentials"]
        session = ServerSession(
            server_url=config.server_url,
            api_version=config.api_version,
            token=credentials["token"],
            site_id=credentials["site"]["id"],
        )
    except httpx.HTTPError as exc:
        raise ServerAuthError(f"Sign-in request failed: {exc}") from exc
    except (KeyError, TypeError, ValueError) as exc:
        raise ServerAuthError("Sign-in response carried no credentials") from exc

    logger.info("Signed in to Tableau Server", extra={"server_url": config.server_url})
    return session


async def _get_json(client: httpx.AsyncClient, url: str, session: ServerSession) -> Any:
    try:
        response = await client.get(url, headers=session.headers)
        response.raise_for_status()
        return response.json()
    except httpx.HTTPError as exc:
        raise ServerDataError(f"Request to {url} failed: {exc}") from exc
    except ValueError as exc:
        raise ServerDataError(f"Non-JSON response from {url}") from exc


def parse_view_data(data: Any) -> ServerFunnel:
    """Read funnel counts out of a view-data payload; absent keys are 0."""
    if not isinstance(data, dict):
        raise ServerDataError("View data is not an object")
    fields = {
        name: data.get(key) or 0
        for name, key in (
            ("leads", "leads"),
            ("prospects", "prospects"),
            ("qualified", "qualified"),
            ("proposals", "proposals"),
            ("closed", "closed"),
            ("revenue", "revenue"),
            ("ad_spend", "adSpend"),
            ("impressions", "impressions"),
        )
    }
    try:
        return ServerFunnel(**fields)
    except ValueError as exc:
        raise ServerDataError(f"Invalid view data: {exc}") from exc


async def fetch_view_data(
    session: ServerSession, workbook: str, view: str, client: httpx.AsyncClient
) -> ServerFunnel:
    """Locate ``workbook`` on the session's site and read ``view``'s data."""
    site_root = f"{session.api_root}/sites/{session.site_id}"
    listing = await _get_json(client, f"{site_root}/workbooks", session)

    try:
        workbooks = listing["workbooks"]["workbook"]
    except (KeyError, TypeError) as exc:
        raise ServerDataError("Workbook listing has no workbooks") from exc

    match = next((wb for wb in workbooks if wb.get("name") == workbook), None)
    if match is None:
        raise ServerDataError(f'Workbook "{workbook}" not found')

    data = await _get_json(client, f"{site_root}/workbooks/{match['id']}/views/{view}/data", session)
    logger.info("Fetched server view data", extra={"workbook": workbook, "view": view})
    return parse_view_data(data)


async def sign_out(session: ServerSession, client: httpx.AsyncClient) -> None:
    """End the session. Failures are logged, the token simply expires."""
    try:
        response = await client.post(f"{session.api_root}/auth/signout", headers=session.headers)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.warning("Sign-out failed", extra={"error": str(exc)})
        return
    logger.info("Signed out of Tableau Server")
