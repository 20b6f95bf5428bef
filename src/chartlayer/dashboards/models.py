"""Filled dashboard models.

Query parameters coming in, charts filled with series going out, and the
runtime groupings produced by discovery. ``to_dict`` renders the JSON shapes
consumed by the presentation layer.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass, field
from typing import Any

from chartlayer.metrics.models import Histogram, RangeQuery, SampleStream
from chartlayer.templates.models import MetricRef, Template, TemplateChart


@dataclass(frozen=True)
class Aggregation:
    """Label the user can aggregate a dashboard on."""

    label: str
    display_name: str

    def to_dict(self) -> dict[str, Any]:
        return {"label": self.label, "displayName": self.display_name}


@dataclass
class DashboardQuery:
    """Parameters of a dashboard request."""

    namespace: str
    labels_filters: dict[str, str] = field(default_factory=dict)
    additional_labels: list[Aggregation] = field(default_factory=list)
    by_labels: list[str] = field(default_factory=list)
    raw_data_aggregator: str = "sum"
    metrics_query: RangeQuery = field(default_factory=RangeQuery)


@dataclass(frozen=True)
class ConversionParams:
    """How backend series are turned into chart series."""

    scale: float = 1.0
    sort_label: str = ""
    sort_label_parse_as: str = ""
    remove_sort_label: bool = False


@dataclass
class TimeSeries:
    """Chart series: display name, labels and scaled datapoints."""

    name: str
    labels: dict[str, str] = field(default_factory=dict)
    values: list[tuple[float, float]] = field(default_factory=list)
    stat: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "labelSet": self.labels,
            "values": [[ts, value] for ts, value in self.values],
        }
        if self.stat is not None:
            result["stat"] = self.stat
        return result


def _compare_sort_values(left: str, right: str, parse_as: str) -> int:
    if parse_as == "int":
        try:
            ileft, iright = int(left), int(right)
        except ValueError:
            pass
        else:
            return (ileft > iright) - (ileft < iright)
    return (left > right) - (left < right)


def sort_streams(streams: list[SampleStream], sort_label: str, parse_as: str = "") -> list[SampleStream]:
    """Order series by the value of the sort label (stable)."""

    def compare(a: SampleStream, b: SampleStream) -> int:
        return _compare_sort_values(a.metric.get(sort_label, ""), b.metric.get(sort_label, ""), parse_as)

    return sorted(streams, key=functools.cmp_to_key(compare))


def convert_stream(stream: SampleStream, name: str, params: ConversionParams) -> TimeSeries:
    labels = {
        k: v
        for k, v in stream.metric.items()
        if not (params.remove_sort_label and k == params.sort_label)
    }
    values = [(ts, value * params.scale) for ts, value in stream.values]
    return TimeSeries(name=name, labels=labels, values=values)


def convert_matrix(streams: list[SampleStream], name: str, params: ConversionParams) -> list[TimeSeries]:
    if params.sort_label:
        streams = sort_streams(streams, params.sort_label, params.sort_label_parse_as)
    return [convert_stream(s, name, params) for s in streams]


@dataclass
class Chart:
    """Chart filled with data."""

    name: str
    unit: str = ""
    spans: int = 6
    chart_type: str | None = None
    min: int | None = None
    max: int | None = None
    x_axis: str | None = None
    metrics: list[TimeSeries] = field(default_factory=list)
    histogram: dict[str, list[TimeSeries]] = field(default_factory=dict)
    error: str | None = None

    @classmethod
    def from_template(cls, chart: TemplateChart) -> Chart:
        return cls(
            name=chart.name,
            unit=chart.unit,
            spans=chart.spans,
            chart_type=chart.chart_type,
            min=chart.min,
            max=chart.max,
            x_axis=chart.x_axis,
        )

    def fill_metric(self, ref: MetricRef, streams: list[SampleStream], params: ConversionParams) -> None:
        self.metrics.extend(convert_matrix(streams, ref.display_name, params))

    def fill_histogram(self, ref: MetricRef, histogram: Histogram, params: ConversionParams) -> None:
        for stat in sorted(histogram):
            series = convert_matrix(histogram[stat], ref.display_name, params)
            for s in series:
                s.stat = stat
            self.histogram.setdefault(stat, []).extend(series)

    def fill_error(self, ref: MetricRef, error: Exception) -> None:
        """Drop any data filled so far and keep only the error."""
        self.metrics = []
        self.histogram = {}
        self.error = f"error in metric {ref.metric_name}: {error}"

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "unit": self.unit,
            "spans": self.spans,
        }
        if self.chart_type:
            result["chartType"] = self.chart_type
        if self.min is not None:
            result["min"] = self.min
        if self.max is not None:
            result["max"] = self.max
        if self.x_axis:
            result["xAxis"] = self.x_axis
        if self.histogram:
            result["histogram"] = {
                stat: [s.to_dict() for s in series] for stat, series in self.histogram.items()
            }
        else:
            result["metric"] = [s.to_dict() for s in self.metrics]
        if self.error:
            result["error"] = self.error
        return result


@dataclass(frozen=True)
class ExternalLink:
    """Resolved link to an external dashboard."""

    url: str
    name: str
    variables: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"url": self.url, "name": self.name, "variables": dict(self.variables)}


@dataclass(frozen=True)
class FilledDashboard:
    """Dashboard returned to the caller."""

    title: str
    charts: list[Chart]
    aggregations: list[Aggregation]
    external_links: list[ExternalLink]

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "charts": [c.to_dict() for c in self.charts],
            "aggregations": [a.to_dict() for a in self.aggregations],
            "externalLinks": [link.to_dict() for link in self.external_links],
        }


@dataclass(frozen=True)
class DashboardRef:
    """Pointer to a dashboard template."""

    template: str
    title: str

    def to_dict(self) -> dict[str, Any]:
        return {"template": self.template, "title": self.title}


@dataclass
class Runtime:
    """Dashboards grouped under a runtime name."""

    name: str
    dashboard_refs: list[DashboardRef] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "dashboardRefs": [r.to_dict() for r in self.dashboard_refs]}


def convert_aggregations(template: Template) -> list[Aggregation]:
    """Aggregations declared by the charts, unique by display name and sorted by it."""
    unique: dict[str, Aggregation] = {}
    for chart in template.charts:
        for agg in chart.aggregations:
            unique[agg.display_name] = Aggregation(label=agg.label, display_name=agg.display_name)
    return [unique[k] for k in sorted(unique)]
