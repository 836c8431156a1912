"""Remote metadata fetcher: one request to the plugin's update server."""

from __future__ import annotations

import logging
from typing import Any, Optional, Union

import httpx

from upkeep.types import FetchFailure, RawRemotePayload
from upkeep.updater.sanitize import absint, sanitize_deep, sanitize_text
from upkeep.updater.session import UpdateSession
from upkeep.version import __version__

logger = logging.getLogger(__name__)

ACTION_UPDATE_CHECK = "update_check"
ACTION_PLUGIN_INFORMATION = "plugin_information"


def _user_agent(site_url: str) -> str:
    return f"upkeep/{__version__}; {site_url.rstrip('/')}/"


def build_request_body(
    session: UpdateSession,
    action: str = ACTION_UPDATE_CHECK,
    slug: Optional[str] = None,
) -> dict[str, Any]:
    """Request body for the update server. Every value is sanitized."""
    profile = session.profile
    body: dict[str, Any] = {
        "type": "plugins",
        "name": session.plugin_id,
        "license_key": sanitize_text(profile.license_key),
        "product_id": absint(profile.product_id),
        "args": sanitize_deep(dict(profile.extra_args)),
    }
    if action == ACTION_PLUGIN_INFORMATION:
        body["action"] = ACTION_PLUGIN_INFORMATION
        body["slug"] = sanitize_text(slug or session.slug)
    return body


class RemoteMetadataFetcher:
    """Fetch the raw update payload for a session's plugin.

    Args:
        timeout: Request timeout in seconds. Defaults to ``config.request_timeout``.
        transport: Optional httpx transport (tests, proxies).

    ``fetch()`` never raises: every failure is returned as :class:`FetchFailure`.
    The update server must not be this same site; a warning is logged when the
    hostnames match but the request is still sent.
    """

    def __init__(self, timeout: Optional[float] = None, transport: Optional[httpx.BaseTransport] = None) -> None:
        if timeout is None:
            from upkeep.config import config
            timeout = config.request_timeout
        self._timeout = timeout
        self._transport = transport

    def fetch(
        self,
        session: UpdateSession,
        action: str = ACTION_UPDATE_CHECK,
        slug: Optional[str] = None,
    ) -> Union[RawRemotePayload, FetchFailure]:
        url = session.update_server_uri
        if not url:
            logger.warning("'%s' has no usable Update URI; skipping remote fetch.", session.plugin_id)
            return FetchFailure(reason="no_update_uri", message="Plugin has no Update URI header.")

        if session.client_hostname and session.client_hostname == session.update_server_hostname:
            logger.warning(
                "Update server host '%s' is this site. Serving and requesting updates "
                "from the same host can deadlock single-worker servers.",
                session.update_server_hostname,
            )

        body = build_request_body(session, action, slug)
        headers = {
            "Accept": "application/json",
            "User-Agent": _user_agent(session.site_url),
        }

        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.post(url, json=body, headers=headers)
        except httpx.TimeoutException:
            logger.warning("Update server %s timed out after %.1fs", url, self._timeout)
            return FetchFailure(reason="timeout", message=f"Timed out after {self._timeout}s")
        except httpx.HTTPError as exc:
            logger.warning("Update server %s request failed: %s", url, exc)
            return FetchFailure(reason="transport", message=str(exc))

        if response.status_code != 200:
            logger.warning("Update server %s answered HTTP %s", url, response.status_code)
            return FetchFailure(
                reason="http_status",
                status_code=response.status_code,
                message=f"HTTP {response.status_code}",
            )

        try:
            payload = response.json()
        except ValueError as exc:
            logger.warning("Update server %s returned invalid JSON: %s", url, exc)
            return FetchFailure(reason="invalid_json", status_code=200, message=str(exc))

        if not isinstance(payload, dict):
            logger.warning("Update server %s returned %s, expected an object", url, type(payload).__name__)
            return FetchFailure(reason="invalid_json", status_code=200, message="Payload is not an object")

        logger.debug("Fetched %s for '%s' (%d keys)", action, session.plugin_id, len(payload))
        return payload
