"""
Metrics backend access: selectors, range queries and the Prometheus client.
"""

from chartlayer.metrics.labels import DEFAULT_NAMESPACE_LABEL, build_labels
from chartlayer.metrics.models import Histogram, RangeQuery, SampleStream
from chartlayer.metrics.prometheus import PrometheusClient, PrometheusClientError

__all__ = [
    "DEFAULT_NAMESPACE_LABEL",
    "build_labels",
    "RangeQuery",
    "SampleStream",
    "Histogram",
    "PrometheusClient",
    "PrometheusClientError",
]
