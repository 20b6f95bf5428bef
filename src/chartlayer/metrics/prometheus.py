"""
Prometheus client for dashboard queries.

Builds the PromQL behind each chart data kind and runs range queries
against Prometheus/VictoriaMetrics HTTP APIs.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import structlog

from chartlayer.core.errors import BackendUnavailableError
from chartlayer.metrics.models import Histogram, RangeQuery, SampleStream

logger = structlog.get_logger()

DEFAULT_USER_AGENT = "chartlayer-prometheus/0.1.0"

# Series API lookback used to list metric names
SERIES_LOOKBACK = timedelta(minutes=1)


class PrometheusClientError(BackendUnavailableError):
    """Raised when Prometheus cannot be reached or rejects a query."""


def round_significant(query: str, precision: float = 0.001) -> str:
    """Round values while keeping series whose values are all below precision."""
    return f"round({query}, {precision:g}) > {precision:g} or {query}"


def build_range_query(metric_name: str, labels: str, grouping: str, aggregator: str) -> str:
    # Example: sum(my_gauge{foo="bar"}) by (baz)
    query = f"{metric_name}{labels}"
    if grouping and aggregator:
        query = f"{aggregator}({query}) by ({grouping})"
    return round_significant(query)


def build_rate_query(metric_name: str, labels: str, grouping: str, rate_func: str, rate_interval: str) -> str:
    # Example: sum(rate(my_counter{foo="bar"}[5m])) by (baz)
    query = f"sum({rate_func}({metric_name}{labels}[{rate_interval}]))"
    if grouping:
        query = f"{query} by ({grouping})"
    return round_significant(query)


def build_histogram_queries(
    metric_name: str,
    labels: str,
    grouping: str,
    rate_interval: str,
    avg: bool,
    quantiles: list[str],
) -> dict[str, str]:
    """Queries for each histogram statistic, keyed by statistic name."""
    queries: dict[str, str] = {}
    if avg:
        by = f" by ({grouping})" if grouping else ""
        # Example: sum(rate(h_sum{foo="bar"}[5m])) by (baz) / sum(rate(h_count{foo="bar"}[5m])) by (baz)
        query = (
            f"sum(rate({metric_name}_sum{labels}[{rate_interval}])){by}"
            f" / sum(rate({metric_name}_count{labels}[{rate_interval}])){by}"
        )
        queries["avg"] = round_significant(query)

    extra = f",{grouping}" if grouping else ""
    for quantile in quantiles:
        # Example: histogram_quantile(0.5, sum(rate(h_bucket{foo="bar"}[5m])) by (le,baz))
        query = (
            f"histogram_quantile({quantile}, "
            f"sum(rate({metric_name}_bucket{labels}[{rate_interval}])) by (le{extra}))"
        )
        queries[quantile] = round_significant(query)
    return queries


class PrometheusClient:
    """Prometheus metrics backend."""

    def __init__(
        self,
        url: str,
        *,
        username: str | None = None,
        password: str | None = None,
        bearer_token: str | None = None,
        timeout: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        try:
            parsed = httpx.URL(url)
        except httpx.InvalidURL as exc:
            raise PrometheusClientError(f"invalid Prometheus URL {url!r}: {exc}") from exc
        if parsed.scheme not in ("http", "https") or not parsed.host:
            raise PrometheusClientError(f"invalid Prometheus URL {url!r}")

        self._base_url = url.rstrip("/")
        self._auth = httpx.BasicAuth(username, password) if username and password else None
        self._bearer_token = bearer_token
        self._timeout = timeout
        self._user_agent = user_agent

    async def fetch_range(
        self,
        metric_name: str,
        labels: str,
        grouping: str,
        aggregator: str,
        query: RangeQuery,
    ) -> list[SampleStream]:
        """Raw values, aggregated by the grouping labels."""
        promql = build_range_query(metric_name, labels, grouping, aggregator)
        return await self.query_range(promql, query)

    async def fetch_rate_range(
        self,
        metric_name: str,
        labels: str,
        grouping: str,
        query: RangeQuery,
    ) -> list[SampleStream]:
        """Per-second rate of a counter, summed by the grouping labels."""
        promql = build_rate_query(metric_name, labels, grouping, query.rate_func, query.rate_interval)
        return await self.query_range(promql, query)

    async def fetch_histogram_range(
        self,
        metric_name: str,
        labels: str,
        grouping: str,
        query: RangeQuery,
    ) -> Histogram:
        """
        One series set per histogram statistic.

        Statistic queries run sequentially; parallelism happens per chart at
        the caller's level.
        """
        queries = build_histogram_queries(
            metric_name, labels, grouping, query.rate_interval, query.avg, query.quantiles
        )
        histogram: Histogram = {}
        for stat, promql in queries.items():
            histogram[stat] = await self.query_range(promql, query)
        return histogram

    async def get_metrics_for_labels(self, selectors: list[str]) -> list[str]:
        """Distinct metric names having series matching the selectors over the last minute."""
        end = datetime.now(timezone.utc)
        start = end - SERIES_LOOKBACK
        result = await self._request(
            "GET",
            "/api/v1/series",
            params={"match[]": selectors, "start": start.timestamp(), "end": end.timestamp()},
        )

        names: list[str] = []
        seen: set[str] = set()
        for series in result.get("data") or []:
            name = series.get("__name__")
            if name and name not in seen:
                seen.add(name)
                names.append(name)
        return names

    async def query_range(self, promql: str, query: RangeQuery) -> list[SampleStream]:
        """
        Execute a range query.

        Args:
            promql: PromQL query string
            query: Time range and step

        Returns:
            Matrix result as sample streams
        """
        start, end = query.bounds()
        params = {
            "query": promql,
            "start": start.timestamp(),
            "end": end.timestamp(),
            "step": query.step,
        }
        result = await self._request("GET", "/api/v1/query_range", params=params)

        data = result.get("data", {})
        if data.get("resultType", "matrix") != "matrix":
            raise PrometheusClientError(f"unexpected result type: {data.get('resultType')}")
        return [SampleStream.from_dict(s) for s in data.get("result", [])]

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Execute HTTP request to Prometheus."""
        url = f"{self._base_url}{path}"
        headers = kwargs.pop("headers", {}) or {}
        headers.setdefault("User-Agent", self._user_agent)
        if self._bearer_token:
            headers.setdefault("Authorization", f"Bearer {self._bearer_token}")

        try:
            async with httpx.AsyncClient(timeout=self._timeout, auth=self._auth) as client:
                resp = await client.request(
                    method,
                    url,
                    headers=headers,
                    params=params,
                    **kwargs,
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as exc:
            raise PrometheusClientError(str(exc)) from exc
        except ValueError as exc:
            raise PrometheusClientError(f"invalid Prometheus response: {exc}") from exc

        # Check Prometheus API status
        if data.get("status") != "success":
            error = data.get("error", "Unknown error")
            raise PrometheusClientError(f"Prometheus API error: {error}")

        return data
