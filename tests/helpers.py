"""Builders and fakes shared by the test modules."""

from chartlayer.core.errors import BackendUnavailableError
from chartlayer.metrics.models import SampleStream
from chartlayer.templates.models import DataType, Template, TemplateChart, TemplateItem


def chart(name, metric=None, data_type=DataType.RAW, **kwargs):
    """Inline chart item."""
    return TemplateItem(chart=TemplateChart(name=name, metric_name=metric or name, data_type=data_type, **kwargs))


def include(reference):
    """Include item."""
    return TemplateItem(include=reference)


def template(name, *items, title=None, runtime="", discover_on="", external_links=None):
    return Template(
        name=name,
        title=title or name.title(),
        runtime=runtime,
        discover_on=discover_on,
        items=list(items),
        external_links=list(external_links or []),
    )


class FakePrometheus:
    """Records backend calls and returns canned series."""

    def __init__(self, series=None, histograms=None, failing=(), metric_names=None):
        self.series = series or {}
        self.histograms = histograms or {}
        self.failing = set(failing)
        self.metric_names = metric_names or []
        self.calls = []

    def _check(self, metric_name):
        if metric_name in self.failing:
            raise BackendUnavailableError(f"query failed for {metric_name}")

    async def fetch_range(self, metric_name, labels, grouping, aggregator, query):
        self.calls.append(("range", metric_name, labels, grouping, aggregator))
        self._check(metric_name)
        return self.series.get(metric_name, [])

    async def fetch_rate_range(self, metric_name, labels, grouping, query):
        self.calls.append(("rate", metric_name, labels, grouping))
        self._check(metric_name)
        return self.series.get(metric_name, [])

    async def fetch_histogram_range(self, metric_name, labels, grouping, query):
        self.calls.append(("histogram", metric_name, labels, grouping))
        self._check(metric_name)
        return self.histograms.get(metric_name, {})

    async def get_metrics_for_labels(self, selectors):
        self.calls.append(("names", tuple(selectors)))
        if "__names__" in self.failing:
            raise BackendUnavailableError("series API unavailable")
        return list(self.metric_names)


def stream(values=((1609459200.0, 1.0),), **labels):
    return SampleStream(metric=dict(labels), values=list(values))
