"""
Template resolver.

Looks templates up across namespace tiers and flattens the composition
mechanism that lets a template include another one.

Lookup policy:
1. Namespace-specific template (overrides)
2. Global namespace template (defaults), when a global namespace is configured

Include references point either to a whole template (``microprofile-1.0``)
or to one chart of a template (``microprofile-1.0$Thread count``).
"""

from __future__ import annotations

from dataclasses import replace

import structlog

from chartlayer.core.errors import ChartLayerError, CircularDependencyError, TemplateNotFoundError
from chartlayer.templates.models import Template, TemplateItem
from chartlayer.templates.store import TemplateStore

logger = structlog.get_logger()

CHART_SEPARATOR = "$"


class TemplateResolver:
    """Two-tier template lookup and recursive include expansion."""

    def __init__(self, store: TemplateStore, global_namespace: str | None = None):
        self._store = store
        self.global_namespace = global_namespace or None

    def load_raw(self, namespace: str, name: str) -> Template:
        """
        Load a template without resolving its includes.

        The namespace-specific template wins; the global namespace is only
        consulted when the template is not found in the namespace.
        """
        try:
            return self._store.get_template(namespace, name)
        except TemplateNotFoundError:
            if not self.global_namespace or self.global_namespace == namespace:
                raise
            logger.debug(
                "template_global_fallback",
                template=name,
                namespace=namespace,
                global_namespace=self.global_namespace,
            )
        return self._store.get_template(self.global_namespace, name)

    def list_all(self, namespace: str) -> dict[str, Template]:
        """Templates visible from a namespace, namespace entries overriding global ones."""
        templates: dict[str, Template] = {}

        if self.global_namespace:
            for template in self._store.list_templates(self.global_namespace):
                templates[template.name] = template

        if namespace != self.global_namespace:
            for template in self._store.list_templates(namespace):
                templates[template.name] = template

        return templates

    def resolve(self, namespace: str, name: str) -> Template:
        """
        Load a template and expand all of its includes.

        Raises:
            TemplateNotFoundError: A template of the chain exists in no tier
            BackendUnavailableError: The store failed while loading a template of the chain
            CircularDependencyError: An include loops back into the chain
        """
        resolved = self._load_and_resolve(namespace, name, [])
        logger.debug("template_resolved", template=name, namespace=namespace, charts=len(resolved.items))
        return resolved

    def _load_and_resolve(self, namespace: str, name: str, chain: list[str]) -> Template:
        if name in chain:
            raise CircularDependencyError(
                f"cannot load dashboard {name} due to circular dependency detected. "
                f"Already loaded dependencies: {chain}",
                details={"template": name, "chain": list(chain)},
            )

        chain.append(name)
        try:
            template = self.load_raw(namespace, name)
        except ChartLayerError as e:
            raise type(e)(
                e.message,
                details={**e.details, "chain": list(chain)},
            ) from e

        items = self._resolve_items(namespace, template, chain)
        chain.pop()
        return replace(template, items=items)

    def _resolve_items(self, namespace: str, template: Template, chain: list[str]) -> list[TemplateItem]:
        resolved: list[TemplateItem] = []
        for item in template.items:
            reference = item.include.strip()
            if not reference:
                resolved.append(item)
                continue

            ref_name, scoped, chart_name = reference.partition(CHART_SEPARATOR)
            included = self._load_and_resolve(namespace, ref_name, chain)
            if not scoped:
                resolved.extend(included.items)
                continue

            for included_item in included.items:
                if included_item.chart is not None and included_item.chart.name == chart_name:
                    resolved.append(included_item)
                    break
            else:
                logger.warning(
                    "include_chart_not_found",
                    template=template.name,
                    reference=reference,
                )
        return resolved
