"""
Prometheus selector construction.
"""

from __future__ import annotations

from collections.abc import Mapping

DEFAULT_NAMESPACE_LABEL = "namespace"


def build_labels(
    namespace: str,
    labels_filters: Mapping[str, str] | None = None,
    namespace_label: str | None = None,
) -> str:
    """
    Build a selector anchored on the namespace label.

    Example:
        build_labels("ns1", {"app": "foo"}) -> '{namespace="ns1",app="foo"}'
    """
    label = namespace_label or DEFAULT_NAMESPACE_LABEL
    parts = [f'{label}="{namespace}"']
    for key, value in (labels_filters or {}).items():
        parts.append(f'{key}="{value}"')
    return "{" + ",".join(parts) + "}"
