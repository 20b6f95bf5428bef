"""
Metrics aggregator.

Fills every chart of a resolved template with series fetched from the
metrics backend. Charts are filled concurrently, each into its own slot, and
external links are resolved alongside them.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Protocol

import structlog

from chartlayer.core.errors import BackendUnavailableError
from chartlayer.dashboards.models import (
    Chart,
    ConversionParams,
    DashboardQuery,
    ExternalLink,
    FilledDashboard,
    convert_aggregations,
)
from chartlayer.metrics.labels import build_labels
from chartlayer.metrics.models import Histogram, RangeQuery, SampleStream
from chartlayer.templates.models import (
    DataType,
    ExternalLinkSpec,
    MetricRef,
    Template,
    TemplateChart,
)

logger = structlog.get_logger()


class MetricsBackend(Protocol):
    """Range queries needed to fill charts."""

    async def fetch_range(
        self, metric_name: str, labels: str, grouping: str, aggregator: str, query: RangeQuery
    ) -> list[SampleStream]:
        ...

    async def fetch_rate_range(
        self, metric_name: str, labels: str, grouping: str, query: RangeQuery
    ) -> list[SampleStream]:
        ...

    async def fetch_histogram_range(
        self, metric_name: str, labels: str, grouping: str, query: RangeQuery
    ) -> Histogram:
        ...


class LinkResolver(Protocol):
    async def resolve(self, specs: list[ExternalLinkSpec]) -> list[ExternalLink]:
        ...


def build_grouping(chart: TemplateChart, by_labels: list[str]) -> tuple[str, ConversionParams]:
    """
    Grouping labels and conversion parameters of a chart.

    Grouping is the chart's group labels followed by the requested ones. The
    sort label is added when missing, and then stripped from the converted
    series since it was not asked for.
    """
    labels = list(chart.group_labels) + list(by_labels)
    remove_sort_label = False
    if chart.sort_label and chart.sort_label not in labels:
        labels.append(chart.sort_label)
        remove_sort_label = True

    params = ConversionParams(
        scale=chart.unit_scale if chart.unit_scale != 0.0 else 1.0,
        sort_label=chart.sort_label,
        sort_label_parse_as=chart.sort_label_parse_as,
        remove_sort_label=remove_sort_label,
    )
    return ",".join(labels), params


ChartFiller = Callable[[Chart, TemplateChart, MetricRef, str, str, ConversionParams, DashboardQuery], Awaitable[None]]


class MetricsAggregator:
    """Fill resolved templates with metrics."""

    def __init__(
        self,
        backend: MetricsBackend,
        link_resolver: LinkResolver | None = None,
        namespace_label: str | None = None,
    ) -> None:
        self._backend = backend
        self._link_resolver = link_resolver
        self._namespace_label = namespace_label
        self._fillers: dict[DataType, ChartFiller] = {
            DataType.RAW: self._fill_raw,
            DataType.RATE: self._fill_rate,
            DataType.HISTOGRAM: self._fill_histogram,
        }

    async def fill(self, template: Template, query: DashboardQuery) -> FilledDashboard:
        """
        Fill every chart of a resolved template.

        A chart whose queries fail carries an error instead of series; the
        other charts are unaffected. All charts and the links lookup complete
        before the dashboard is assembled.
        """
        labels = build_labels(query.namespace, query.labels_filters, self._namespace_label)
        aggregations = list(query.additional_labels) + convert_aggregations(template)

        charts = template.charts
        filled: list[Chart | None] = [None] * len(charts)
        links: list[ExternalLink] = []

        async def fill_slot(idx: int, chart: TemplateChart) -> None:
            filled[idx] = await self._fill_chart(chart, labels, query)

        async def fetch_links() -> None:
            links.extend(await self._fetch_links(template.external_links))

        tasks = [fill_slot(idx, chart) for idx, chart in enumerate(charts)]
        tasks.append(fetch_links())
        results = await asyncio.gather(*tasks, return_exceptions=True)

        for idx, result in enumerate(results[: len(charts)]):
            if isinstance(result, BaseException):
                logger.error("chart_fill_failed", chart=charts[idx].name, error=str(result))
                chart = Chart.from_template(charts[idx])
                chart.error = f"cannot fill chart: {result}"
                filled[idx] = chart

        return FilledDashboard(
            title=template.title,
            charts=[c for c in filled if c is not None],
            aggregations=aggregations,
            external_links=links,
        )

    async def _fill_chart(self, chart: TemplateChart, labels: str, query: DashboardQuery) -> Chart:
        grouping, params = build_grouping(chart, query.by_labels)
        filler = self._fillers[chart.data_type]

        result = Chart.from_template(chart)
        for ref in chart.get_metrics():
            try:
                await filler(result, chart, ref, labels, grouping, params, query)
            except BackendUnavailableError as e:
                logger.warning(
                    "chart_metric_failed",
                    chart=chart.name,
                    metric=ref.metric_name,
                    error=str(e),
                )
                result.fill_error(ref, e)
                break
        return result

    async def _fill_raw(
        self,
        result: Chart,
        chart: TemplateChart,
        ref: MetricRef,
        labels: str,
        grouping: str,
        params: ConversionParams,
        query: DashboardQuery,
    ) -> None:
        aggregator = chart.aggregator or query.raw_data_aggregator
        streams = await self._backend.fetch_range(
            ref.metric_name, labels, grouping, aggregator, query.metrics_query
        )
        result.fill_metric(ref, streams, params)

    async def _fill_rate(
        self,
        result: Chart,
        chart: TemplateChart,
        ref: MetricRef,
        labels: str,
        grouping: str,
        params: ConversionParams,
        query: DashboardQuery,
    ) -> None:
        streams = await self._backend.fetch_rate_range(ref.metric_name, labels, grouping, query.metrics_query)
        result.fill_metric(ref, streams, params)

    async def _fill_histogram(
        self,
        result: Chart,
        chart: TemplateChart,
        ref: MetricRef,
        labels: str,
        grouping: str,
        params: ConversionParams,
        query: DashboardQuery,
    ) -> None:
        histogram = await self._backend.fetch_histogram_range(
            ref.metric_name, labels, grouping, query.metrics_query
        )
        result.fill_histogram(ref, histogram, params)

    async def _fetch_links(self, specs: list[ExternalLinkSpec]) -> list[ExternalLink]:
        if self._link_resolver is None or not specs:
            return []
        try:
            return await self._link_resolver.resolve(specs)
        except Exception as e:
            logger.error("external_links_failed", error=str(e))
            return []
