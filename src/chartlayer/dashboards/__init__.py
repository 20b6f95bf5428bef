"""
Dashboard filling and discovery.

Fills resolved templates with metrics and infers which dashboards apply to
a workload.
"""

from chartlayer.dashboards.aggregator import MetricsAggregator, build_grouping
from chartlayer.dashboards.discovery import (
    add_dashboard_to_runtimes,
    extract_unique_dashboards,
    run_discovery_matcher,
)
from chartlayer.dashboards.links import GrafanaLinkError, GrafanaLinkResolver
from chartlayer.dashboards.models import (
    Aggregation,
    Chart,
    ConversionParams,
    DashboardQuery,
    DashboardRef,
    ExternalLink,
    FilledDashboard,
    Runtime,
    TimeSeries,
    convert_aggregations,
    convert_matrix,
)
from chartlayer.dashboards.service import DashboardsService

__all__ = [
    # Models
    "Aggregation",
    "DashboardQuery",
    "ConversionParams",
    "TimeSeries",
    "Chart",
    "ExternalLink",
    "FilledDashboard",
    "DashboardRef",
    "Runtime",
    "convert_matrix",
    "convert_aggregations",
    # Filling
    "MetricsAggregator",
    "build_grouping",
    "GrafanaLinkResolver",
    "GrafanaLinkError",
    # Discovery
    "run_discovery_matcher",
    "add_dashboard_to_runtimes",
    "extract_unique_dashboards",
    # Service
    "DashboardsService",
]
