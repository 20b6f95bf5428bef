"""
External links resolution.

Turns the external link descriptors of a template into URLs of matching
Grafana dashboards, searched by name.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from chartlayer.core.errors import BackendUnavailableError
from chartlayer.dashboards.models import ExternalLink
from chartlayer.templates.models import ExternalLinkSpec

logger = structlog.get_logger()

DEFAULT_USER_AGENT = "chartlayer-grafana/0.1.0"
GRAFANA_LINK_TYPE = "grafana"


class GrafanaLinkError(BackendUnavailableError):
    """Raised when Grafana cannot be searched."""


class GrafanaLinkResolver:
    """Resolve ``grafana`` external links by searching Grafana dashboards."""

    def __init__(
        self,
        url: str | None,
        token: str | None = None,
        *,
        in_cluster_url: str | None = None,
        enabled: bool = True,
        timeout: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._url = (url or "").rstrip("/")
        # API calls may go through an in-cluster address while links use the external one
        self._api_url = (in_cluster_url or url or "").rstrip("/")
        self._token = token
        self._enabled = enabled
        self._timeout = timeout
        self._user_agent = user_agent

    async def resolve(self, specs: list[ExternalLinkSpec]) -> list[ExternalLink]:
        """
        Resolve link descriptors into links.

        Returns an empty list when Grafana is disabled, not configured, or no
        descriptor is of the ``grafana`` type.

        Raises:
            GrafanaLinkError: If Grafana cannot be searched
        """
        grafana_specs = [s for s in specs if s.type == GRAFANA_LINK_TYPE]
        if not self._enabled or not grafana_specs:
            return []
        if not self._url:
            logger.warning("grafana_url_missing", links=len(grafana_specs))
            return []

        links: list[ExternalLink] = []
        for spec in grafana_specs:
            path = await self._search_dashboard(spec.name)
            if path:
                links.append(
                    ExternalLink(
                        url=f"{self._url}{path}",
                        name=spec.name,
                        variables=spec.variables.to_dict(),
                    )
                )
        return links

    async def _search_dashboard(self, name: str) -> str | None:
        hits = await self._request("GET", "/api/search", params={"query": name})
        if not isinstance(hits, list) or not hits:
            logger.info("grafana_dashboard_not_found", dashboard=name)
            return None
        return hits[0].get("url")

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self._api_url}{path}"
        headers = kwargs.pop("headers", {}) or {}
        if self._token:
            headers.setdefault("Authorization", f"Bearer {self._token}")
        headers.setdefault("User-Agent", self._user_agent)

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.request(method, url, headers=headers, **kwargs)
                resp.raise_for_status()
                return resp.json() if resp.content else None
        except httpx.HTTPError as exc:
            raise GrafanaLinkError(str(exc)) from exc
        except ValueError as exc:
            raise GrafanaLinkError(f"invalid Grafana response: {exc}") from exc
