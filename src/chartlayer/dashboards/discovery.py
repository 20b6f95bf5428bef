"""
Dashboard discovery.

Finds the dashboards that apply to a workload, either from the metrics it
reports (matching each template's ``discoverOn`` metric) or from the
dashboard names listed in its annotations.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from chartlayer.dashboards.models import DashboardRef, Runtime
from chartlayer.templates.models import Template
from chartlayer.templates.resolver import CHART_SEPARATOR


def add_dashboard_to_runtimes(template: Template, runtimes: list[Runtime]) -> list[Runtime]:
    """Append a dashboard ref under the template's runtime, creating the runtime if needed."""
    ref = DashboardRef(template=template.name, title=template.title)
    for runtime in runtimes:
        if runtime.name == template.runtime:
            runtime.dashboard_refs.append(ref)
            return runtimes
    runtimes.append(Runtime(name=template.runtime, dashboard_refs=[ref]))
    return runtimes


def run_discovery_matcher(metric_names: Iterable[str], templates: Mapping[str, Template]) -> list[Runtime]:
    """
    Match templates against the reported metric names.

    Templates included by a matching template are only shown through it,
    even when they match on their own.
    """
    reported = {m.strip() for m in metric_names}
    matched: dict[str, Template] = {}
    suppressed: set[str] = set()

    for name in sorted(templates):
        template = templates[name]
        match_reference = template.discover_on.strip()
        if not match_reference or match_reference not in reported:
            continue

        matched.setdefault(template.name, template)
        for item in template.items:
            reference = item.include.strip()
            if reference:
                suppressed.add(reference.partition(CHART_SEPARATOR)[0])

    runtimes: list[Runtime] = []
    for name, template in matched.items():
        if name not in suppressed:
            add_dashboard_to_runtimes(template, runtimes)
    return sorted(runtimes, key=lambda r: r.name)


def extract_dashboards_from_annotation(annotations: Mapping[str, str], annotation: str) -> list[str]:
    raw = annotations.get(annotation)
    if not raw:
        return []
    return [ref.strip() for ref in raw.split(",")]


def extract_unique_dashboards(
    workload_annotations: Iterable[Mapping[str, str]],
    annotation_keys: Iterable[str],
) -> list[str]:
    """Dashboard names listed in workload annotations, unique, in first-seen order."""
    keys = list(annotation_keys)
    unique: list[str] = []
    for annotations in workload_annotations:
        for key in keys:
            for ref in extract_dashboards_from_annotation(annotations, key):
                if ref and ref not in unique:
                    unique.append(ref)
    return unique
