"""
Dashboard template models.

Typed Python models for the MonitoringDashboard custom resource:

    apiVersion: monitoring.chartlayer.io/v1alpha1
    kind: MonitoringDashboard
    metadata:
      name: vertx-server
    spec:
      title: Vert.x Server Metrics
      runtime: Vert.x
      discoverOn: vertx_http_server_connections
      items:
      - include: microprofile-1.1
      - chart:
          name: Server response time
          unit: seconds
          metricName: vertx_http_server_responseTime_seconds
          dataType: histogram
      externalLinks:
      - type: grafana
        name: Vert.x Server
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class DataType(str, Enum):
    """Kind of data a chart displays; selects the query shape."""

    RAW = "raw"
    RATE = "rate"
    HISTOGRAM = "histogram"

    @classmethod
    def parse(cls, value: str | None) -> DataType:
        """Missing kinds are raw; any kind other than raw or rate is a histogram."""
        if not value:
            return cls.RAW
        try:
            return cls(value)
        except ValueError:
            return cls.HISTOGRAM


@dataclass(frozen=True)
class MetricRef:
    """Reference to a backend metric displayed in a chart."""

    metric_name: str
    display_name: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MetricRef:
        return cls(
            metric_name=data.get("metricName") or "",
            display_name=data.get("displayName") or "",
        )


@dataclass(frozen=True)
class ChartAggregation:
    """Label a chart can be aggregated on, as offered to the user."""

    label: str
    display_name: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChartAggregation:
        return cls(label=data.get("label") or "", display_name=data.get("displayName") or "")


@dataclass
class TemplateChart:
    """Inline chart definition."""

    name: str
    data_type: DataType = DataType.RAW
    unit: str = ""
    spans: int = 6
    chart_type: str | None = None
    min: int | None = None
    max: int | None = None
    x_axis: str | None = None
    metric_name: str = ""
    metrics: list[MetricRef] = field(default_factory=list)
    aggregator: str = ""
    aggregations: list[ChartAggregation] = field(default_factory=list)
    group_labels: list[str] = field(default_factory=list)
    sort_label: str = ""
    sort_label_parse_as: str = ""
    unit_scale: float = 0.0

    def get_metrics(self) -> list[MetricRef]:
        """Metric references of the chart.

        The ``metricName`` shorthand takes precedence and is displayed under
        the chart name.
        """
        if self.metric_name:
            return [MetricRef(metric_name=self.metric_name, display_name=self.name)]
        return list(self.metrics)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TemplateChart:
        return cls(
            name=data.get("name") or "",
            data_type=DataType.parse(data.get("dataType")),
            unit=data.get("unit") or "",
            spans=data.get("spans") or 6,
            chart_type=data.get("chartType"),
            min=data.get("min"),
            max=data.get("max"),
            x_axis=data.get("xAxis"),
            metric_name=data.get("metricName") or "",
            metrics=[MetricRef.from_dict(m) for m in data.get("metrics") or []],
            aggregator=data.get("aggregator") or "",
            aggregations=[ChartAggregation.from_dict(a) for a in data.get("aggregations") or []],
            group_labels=list(data.get("groupLabels") or []),
            sort_label=data.get("sortLabel") or "",
            sort_label_parse_as=data.get("sortLabelParseAs") or "",
            unit_scale=float(data.get("unitScale") or 0.0),
        )


@dataclass
class TemplateItem:
    """Either an include reference or an inline chart."""

    include: str = ""
    chart: TemplateChart | None = None

    @property
    def is_include(self) -> bool:
        return bool(self.include.strip())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TemplateItem:
        chart = data.get("chart")
        return cls(
            include=data.get("include") or "",
            chart=TemplateChart.from_dict(chart) if chart else None,
        )


@dataclass(frozen=True)
class ExternalLinkVariables:
    """Dashboard variable names to bind when following an external link."""

    namespace: str = ""
    app: str = ""
    version: str = ""
    service: str = ""
    workload: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExternalLinkVariables:
        return cls(
            namespace=data.get("namespace") or "",
            app=data.get("app") or "",
            version=data.get("version") or "",
            service=data.get("service") or "",
            workload=data.get("workload") or "",
        )

    def to_dict(self) -> dict[str, str]:
        return {
            k: v
            for k, v in {
                "namespace": self.namespace,
                "app": self.app,
                "version": self.version,
                "service": self.service,
                "workload": self.workload,
            }.items()
            if v
        }


@dataclass(frozen=True)
class ExternalLinkSpec:
    """Declared external link (e.g. a Grafana dashboard searched by name)."""

    type: str
    name: str
    variables: ExternalLinkVariables = field(default_factory=ExternalLinkVariables)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExternalLinkSpec:
        return cls(
            type=data.get("type") or "",
            name=data.get("name") or "",
            variables=ExternalLinkVariables.from_dict(data.get("variables") or {}),
        )


@dataclass
class Template:
    """Dashboard template as stored in a namespace."""

    name: str
    title: str = ""
    runtime: str = ""
    discover_on: str = ""
    items: list[TemplateItem] = field(default_factory=list)
    external_links: list[ExternalLinkSpec] = field(default_factory=list)

    @property
    def charts(self) -> list[TemplateChart]:
        """Inline charts, in item order."""
        return [item.chart for item in self.items if item.chart is not None and not item.is_include]

    @classmethod
    def from_resource(cls, resource: dict[str, Any]) -> Template:
        """Build a template from a MonitoringDashboard custom resource dict."""
        metadata = resource.get("metadata") or {}
        spec = resource.get("spec") or {}
        return cls(
            name=metadata.get("name") or "",
            title=spec.get("title") or "",
            runtime=spec.get("runtime") or "",
            discover_on=spec.get("discoverOn") or "",
            items=[TemplateItem.from_dict(i) for i in spec.get("items") or [] if i],
            external_links=[ExternalLinkSpec.from_dict(link) for link in spec.get("externalLinks") or []],
        )
