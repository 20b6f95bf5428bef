"""Tests for series conversion and dashboard rendering."""

from chartlayer.dashboards.models import (
    Aggregation,
    Chart,
    ConversionParams,
    FilledDashboard,
    TimeSeries,
    convert_aggregations,
    convert_matrix,
    sort_streams,
)
from chartlayer.templates.models import ChartAggregation, MetricRef, TemplateChart

from helpers import chart, include, template, stream


def sort_values(streams, label="pool"):
    return [s.metric[label] for s in streams]


class TestSortStreams:
    """Tests for sort_streams."""

    def test_string_ordering(self):
        streams = [stream(pool="10"), stream(pool="9"), stream(pool="100")]

        assert sort_values(sort_streams(streams, "pool")) == ["10", "100", "9"]

    def test_int_ordering(self):
        streams = [stream(pool="10"), stream(pool="9"), stream(pool="100")]

        assert sort_values(sort_streams(streams, "pool", "int")) == ["9", "10", "100"]

    def test_int_ordering_falls_back_to_string_compare(self):
        """Test pairs that do not both parse are compared as strings."""
        streams = [stream(pool="b"), stream(pool="a"), stream(pool="2")]

        assert sort_values(sort_streams(streams, "pool", "int")) == ["2", "a", "b"]

    def test_missing_label_sorts_first(self):
        streams = [stream(pool="a"), stream(other="x")]

        assert sort_streams(streams, "pool")[0].metric == {"other": "x"}

    def test_stable_for_equal_values(self):
        streams = [stream(pool="1", id="first"), stream(pool="1", id="second")]

        assert sort_values(sort_streams(streams, "pool", "int"), "id") == ["first", "second"]


class TestConvertMatrix:
    """Tests for convert_matrix."""

    def test_scale_applied(self):
        streams = [stream(values=[(1.0, 2.0), (2.0, 3.5)], app="a")]

        series = convert_matrix(streams, "Heap", ConversionParams(scale=1024.0))

        assert series[0].name == "Heap"
        assert series[0].values == [(1.0, 2048.0), (2.0, 3584.0)]
        assert series[0].labels == {"app": "a"}

    def test_sort_label_removed_when_requested(self):
        streams = [stream(pool="2", app="a"), stream(pool="1", app="a")]
        params = ConversionParams(sort_label="pool", sort_label_parse_as="int", remove_sort_label=True)

        series = convert_matrix(streams, "Pool", params)

        assert [s.labels for s in series] == [{"app": "a"}, {"app": "a"}]

    def test_sort_label_kept_when_grouped_on(self):
        streams = [stream(pool="2"), stream(pool="1")]

        series = convert_matrix(streams, "Pool", ConversionParams(sort_label="pool"))

        assert [s.labels["pool"] for s in series] == ["1", "2"]

    def test_source_stream_untouched(self):
        source = stream(pool="1", app="a")

        convert_matrix([source], "Pool", ConversionParams(scale=2.0, sort_label="pool", remove_sort_label=True))

        assert source.metric == {"pool": "1", "app": "a"}
        assert source.values == [(1609459200.0, 1.0)]


class TestChart:
    """Tests for Chart filling and rendering."""

    def test_from_template(self):
        tpl_chart = TemplateChart(name="Heap", unit="bytes", spans=12, chart_type="area", min=0, x_axis="series")

        result = Chart.from_template(tpl_chart)

        assert (result.name, result.unit, result.spans) == ("Heap", "bytes", 12)
        assert result.chart_type == "area"
        assert result.metrics == []
        assert result.error is None

    def test_fill_histogram_tags_stat(self):
        result = Chart(name="Latency")
        histogram = {"0.99": [stream(app="a")], "avg": [stream(app="a")]}

        result.fill_histogram(MetricRef("latency", "Latency"), histogram, ConversionParams())

        assert list(result.histogram) == ["0.99", "avg"]
        assert result.histogram["avg"][0].stat == "avg"
        assert result.histogram["0.99"][0].name == "Latency"

    def test_fill_error_clears_data(self):
        result = Chart(name="Heap")
        result.fill_metric(MetricRef("heap_used", "Used"), [stream()], ConversionParams())

        result.fill_error(MetricRef("heap_max", "Max"), RuntimeError("timeout"))

        assert result.metrics == []
        assert result.error == "error in metric heap_max: timeout"

    def test_to_dict_metrics(self):
        result = Chart(name="Heap", unit="bytes", max=100)
        result.fill_metric(MetricRef("heap", "Heap"), [stream(app="a")], ConversionParams())

        assert result.to_dict() == {
            "name": "Heap",
            "unit": "bytes",
            "spans": 6,
            "max": 100,
            "metric": [{"name": "Heap", "labelSet": {"app": "a"}, "values": [[1609459200.0, 1.0]]}],
        }

    def test_to_dict_histogram_and_error(self):
        result = Chart(name="Latency", error="error in metric latency: boom")
        result.histogram = {"avg": [TimeSeries(name="Latency", stat="avg")]}

        rendered = result.to_dict()

        assert "metric" not in rendered
        assert rendered["histogram"]["avg"][0]["stat"] == "avg"
        assert rendered["error"] == "error in metric latency: boom"


class TestConvertAggregations:
    """Tests for convert_aggregations."""

    def test_unique_by_display_name_and_sorted(self):
        tpl = template(
            "a",
            chart("c1", aggregations=[ChartAggregation("path", "Path"), ChartAggregation("method", "Method")]),
            chart("c2", aggregations=[ChartAggregation("path", "Path")]),
        )

        result = convert_aggregations(tpl)

        assert result == [Aggregation("method", "Method"), Aggregation("path", "Path")]

    def test_include_items_ignored(self):
        tpl = template("a", include("b"), chart("c1"))

        assert convert_aggregations(tpl) == []


def test_filled_dashboard_to_dict():
    dashboard = FilledDashboard(
        title="Vert.x",
        charts=[Chart(name="Heap")],
        aggregations=[Aggregation("path", "Path")],
        external_links=[],
    )

    assert dashboard.to_dict() == {
        "title": "Vert.x",
        "charts": [{"name": "Heap", "unit": "", "spans": 6, "metric": []}],
        "aggregations": [{"label": "path", "displayName": "Path"}],
        "externalLinks": [],
    }
