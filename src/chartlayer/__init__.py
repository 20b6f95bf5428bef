"""
chartlayer: monitoring dashboards assembled from cluster templates and Prometheus metrics.
"""

__version__ = "0.1.0"
