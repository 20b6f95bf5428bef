"""
chartlayer command line.

Commands:
    chartlayer get <namespace> <template> -l app=reviews   - Filled dashboard as JSON
    chartlayer discover <namespace> -l app=reviews          - Dashboards matching reported metrics
    chartlayer explicit <namespace> -a chartlayer.io/dashboards=vertx-server
                                                            - Dashboards listed in annotations
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Sequence

from rich.console import Console
from rich.table import Table

from chartlayer.config.settings import get_settings
from chartlayer.core.errors import ConfigurationError, main_with_error_handling
from chartlayer.dashboards.models import DashboardQuery, Runtime
from chartlayer.dashboards.service import DashboardsService
from chartlayer.logging import configure_logging
from chartlayer.metrics.models import RangeQuery

console = Console()


def parse_key_values(pairs: Sequence[str] | None, option: str) -> dict[str, str]:
    """Parse repeated ``key=value`` options into an ordered dict."""
    result: dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ConfigurationError(f"invalid {option} value {pair!r}, expected key=value")
        result[key.strip()] = value.strip()
    return result


def print_runtimes(runtimes: list[Runtime], output_format: str) -> None:
    if output_format == "json":
        console.print_json(json.dumps([r.to_dict() for r in runtimes]))
        return

    if not runtimes:
        console.print("No dashboards found")
        return

    table = Table(title="Dashboards")
    table.add_column("Runtime")
    table.add_column("Template")
    table.add_column("Title")
    for runtime in runtimes:
        for ref in runtime.dashboard_refs:
            table.add_row(runtime.name, ref.template, ref.title)
    console.print(table)


@main_with_error_handling()
def get_command(
    namespace: str,
    template: str,
    labels: Sequence[str] | None = None,
    by_labels: Sequence[str] | None = None,
    aggregator: str = "sum",
    duration: float = 1800.0,
    step: float = 15.0,
    rate_interval: str = "1m",
    quantiles: Sequence[str] | None = None,
    avg: bool = True,
) -> int:
    """Print a filled dashboard as JSON."""
    query = DashboardQuery(
        namespace=namespace,
        labels_filters=parse_key_values(labels, "--label"),
        by_labels=list(by_labels or []),
        raw_data_aggregator=aggregator,
        metrics_query=RangeQuery(
            duration=duration,
            step=step,
            rate_interval=rate_interval,
            quantiles=list(quantiles or []),
            avg=avg,
        ),
    )
    service = DashboardsService(get_settings())
    dashboard = asyncio.run(service.get_dashboard(query, template))
    console.print_json(json.dumps(dashboard.to_dict()))
    return 0


@main_with_error_handling()
def discover_command(namespace: str, labels: Sequence[str] | None = None, output_format: str = "table") -> int:
    """Print dashboards discovered from the metrics reported under the filters."""
    service = DashboardsService(get_settings())
    runtimes = asyncio.run(service.discover_dashboards(namespace, parse_key_values(labels, "--label")))
    print_runtimes(runtimes, output_format)
    return 0


@main_with_error_handling()
def explicit_command(namespace: str, annotations: Sequence[str] | None = None, output_format: str = "table") -> int:
    """Print dashboards listed in workload annotations."""
    workloads = [parse_key_values([a], "--annotation") for a in annotations or []]
    service = DashboardsService(get_settings())
    runtimes = asyncio.run(service.search_explicit_dashboards(namespace, workloads))
    print_runtimes(runtimes, output_format)
    return 0


@main_with_error_handling()
def setup_logging(verbose: bool = False) -> int:
    """Configure logging from the settings, or at debug level when verbose."""
    settings = get_settings()
    configure_logging("DEBUG" if verbose else settings.log_level, settings.log_format)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chartlayer", description="chartlayer CLI")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")

    get_parser = subparsers.add_parser("get", help="Fill a dashboard template with metrics")
    get_parser.add_argument("namespace", help="Workload namespace")
    get_parser.add_argument("template", help="Dashboard template name")
    get_parser.add_argument("-l", "--label", dest="labels", action="append", help="Label filter (key=value)")
    get_parser.add_argument("--by", dest="by_labels", action="append", help="Additional grouping label")
    get_parser.add_argument("--aggregator", default="sum", help="Aggregator for raw data charts")
    get_parser.add_argument("--duration", type=float, default=1800.0, help="Time range in seconds")
    get_parser.add_argument("--step", type=float, default=15.0, help="Query resolution in seconds")
    get_parser.add_argument("--rate-interval", default="1m", help="Rate interval (e.g. 1m, 5m)")
    get_parser.add_argument("--quantile", dest="quantiles", action="append", help="Histogram quantile")
    get_parser.add_argument("--no-avg", dest="avg", action="store_false", help="Skip histogram average")

    discover_parser = subparsers.add_parser("discover", help="Discover dashboards from reported metrics")
    discover_parser.add_argument("namespace", help="Workload namespace")
    discover_parser.add_argument("-l", "--label", dest="labels", action="append", help="Label filter (key=value)")
    discover_parser.add_argument("--output", choices=["table", "json"], default="table", help="Output format")

    explicit_parser = subparsers.add_parser("explicit", help="Dashboards listed in workload annotations")
    explicit_parser.add_argument("namespace", help="Workload namespace")
    explicit_parser.add_argument(
        "-a", "--annotation", dest="annotations", action="append",
        help="Workload annotation (key=value), one per workload",
    )
    explicit_parser.add_argument("--output", choices=["table", "json"], default="table", help="Output format")

    return parser


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    exit_code = setup_logging(args.verbose)
    if exit_code:
        sys.exit(exit_code)

    if args.command == "get":
        sys.exit(get_command(
            args.namespace,
            args.template,
            labels=args.labels,
            by_labels=args.by_labels,
            aggregator=args.aggregator,
            duration=args.duration,
            step=args.step,
            rate_interval=args.rate_interval,
            quantiles=args.quantiles,
            avg=args.avg,
        ))

    if args.command == "discover":
        sys.exit(discover_command(args.namespace, labels=args.labels, output_format=args.output))

    if args.command == "explicit":
        sys.exit(explicit_command(args.namespace, annotations=args.annotations, output_format=args.output))

    parser.print_help()
    sys.exit(1)


if __name__ == "__main__":
    main()
