"""
IQ Server REST client.

Thin wrapper over the ``/api/v2`` endpoints needed to locate each application's
latest evaluation report and download its policy violations. Every failure is
raised as ``RemoteFetchError``; nothing is retried.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote, urlparse

import requests

from iqfetch.client.types import Application, Organization, ReportInfo, ViolationReport
from iqfetch.errors import RemoteFetchError

DEFAULT_TIMEOUT_SECONDS = 30.0
_BODY_SNIPPET_LIMIT = 500


def normalize_base_url(server_url: str) -> str:
    """Return ``server_url`` with exactly one trailing slash.

    The URL is expected to already include the ``/api/v2`` prefix.
    """
    stripped = server_url.strip()
    parsed = urlparse(stripped)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"invalid server URL: {server_url!r}")
    return stripped.rstrip("/") + "/"


class IQClient:
    """Fetch applications, organizations and reports from IQ Server."""

    def __init__(
        self,
        server_url: str,
        username: str,
        password: str,
        *,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        logger: logging.Logger | None = None,
    ) -> None:
        if not server_url or not server_url.strip():
            raise ValueError("server_url is required")
        if not username:
            raise ValueError("username is required")
        if not password:
            raise ValueError("password is required")

        self.base_url = normalize_base_url(server_url)
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)
        self.session = session or requests.Session()
        self.session.auth = (username, password)
        self.session.headers.update({"Accept": "application/json"})
        self.logger.info("Initialized IQ Server API client", extra={"base_url": self.base_url})

    # Public API -----------------------------------------------------------------

    def get_applications(self, org_id: str | None = None) -> list[Application]:
        """List applications, optionally only those owned by ``org_id``."""
        if org_id:
            endpoint = f"applications/organization/{quote(org_id, safe='')}"
        else:
            endpoint = "applications"
        self.logger.debug("Fetching applications", extra={"org_id": org_id or "all"})

        payload = self._get_json(endpoint)
        return [Application.from_dict(item) for item in _envelope_items(payload, "applications")]

    def get_organizations(self) -> list[Organization]:
        self.logger.debug("Fetching organizations")
        payload = self._get_json("organizations")
        organizations = [Organization.from_dict(item) for item in _envelope_items(payload, "organizations")]
        self.logger.debug("Retrieved organizations", extra={"count": len(organizations)})
        return organizations

    def get_latest_report_info(self, app_id: str) -> ReportInfo | None:
        """Return the most recent report for an application, or ``None`` if it has none."""
        payload = self._get_json(f"reports/applications/{quote(app_id, safe='')}")
        reports = [item for item in payload if isinstance(item, dict)] if isinstance(payload, list) else []
        if not reports:
            self.logger.debug("No reports found", extra={"app_id": app_id})
            return None

        self.logger.debug("Found reports", extra={"app_id": app_id, "count": len(reports)})
        return ReportInfo.from_dict(reports[0])

    def get_policy_violations(self, public_id: str, report_id: str) -> ViolationReport:
        self.logger.debug(
            "Fetching policy violations",
            extra={"public_id": public_id, "report_id": report_id},
        )
        endpoint = f"applications/{quote(public_id, safe='')}/reports/{quote(report_id, safe='')}/policy"
        payload = self._get_json(endpoint, params={"includeViolationTimes": "true"})
        if not isinstance(payload, dict):
            raise RemoteFetchError(f"GET {endpoint}: expected JSON object in policy report response")
        return ViolationReport.from_dict(payload)

    # Internal helpers -----------------------------------------------------------

    def _get_json(self, endpoint: str, params: dict[str, str] | None = None) -> Any:
        url = f"{self.base_url}{endpoint}"
        self.logger.debug("Executing request", extra={"method": "GET", "url": url, "params": params or {}})
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            self.logger.error("Request failed", extra={"url": url, "error": str(exc)})
            raise RemoteFetchError(f"GET {endpoint}: request failed: {exc}") from exc

        self.logger.debug("Request completed", extra={"url": url, "status": response.status_code})
        if not response.ok:
            snippet = (response.text or "").strip()[:_BODY_SNIPPET_LIMIT]
            self.logger.error(
                "IQ Server returned an error status",
                extra={"url": url, "status": response.status_code, "body": snippet},
            )
            raise RemoteFetchError(
                f"GET {endpoint}: HTTP {response.status_code}: {snippet}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise RemoteFetchError(
                f"GET {endpoint}: invalid JSON response: {exc}",
                status_code=response.status_code,
            ) from exc


def _envelope_items(payload: Any, key: str) -> list[dict[str, Any]]:
    if not isinstance(payload, dict):
        return []
    items = payload.get(key)
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]
