"""
Dashboard templates: models, stores and resolution.
"""

from chartlayer.templates.models import (
    ChartAggregation,
    DataType,
    ExternalLinkSpec,
    ExternalLinkVariables,
    MetricRef,
    Template,
    TemplateChart,
    TemplateItem,
)
from chartlayer.templates.resolver import TemplateResolver
from chartlayer.templates.store import (
    FileTemplateStore,
    InMemoryTemplateStore,
    KubernetesTemplateStore,
    TemplateStore,
    TemplateStoreError,
)

__all__ = [
    # Models
    "DataType",
    "MetricRef",
    "ChartAggregation",
    "TemplateChart",
    "TemplateItem",
    "ExternalLinkVariables",
    "ExternalLinkSpec",
    "Template",
    # Stores
    "TemplateStore",
    "TemplateStoreError",
    "KubernetesTemplateStore",
    "FileTemplateStore",
    "InMemoryTemplateStore",
    # Resolution
    "TemplateResolver",
]
