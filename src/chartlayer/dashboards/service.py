"""
Dashboards service.

Entry point for dashboard requests: builds filled dashboards from templates
and finds the dashboards that apply to a workload.

Backend clients are created on first use and reused afterwards.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Iterable, Mapping

import structlog

from chartlayer.config.settings import Settings, get_settings
from chartlayer.core.errors import BackendUnavailableError
from chartlayer.dashboards.aggregator import LinkResolver, MetricsAggregator
from chartlayer.dashboards.discovery import (
    add_dashboard_to_runtimes,
    extract_unique_dashboards,
    run_discovery_matcher,
)
from chartlayer.dashboards.links import GrafanaLinkResolver
from chartlayer.dashboards.models import DashboardQuery, FilledDashboard, Runtime
from chartlayer.logging import bind_context
from chartlayer.metrics.labels import build_labels
from chartlayer.metrics.prometheus import PrometheusClient
from chartlayer.templates.resolver import TemplateResolver
from chartlayer.templates.store import FileTemplateStore, KubernetesTemplateStore, TemplateStore

logger = structlog.get_logger()


class DashboardsService:
    """Resolve, fill and discover monitoring dashboards."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        store: TemplateStore | None = None,
        prometheus: PrometheusClient | None = None,
        link_resolver: LinkResolver | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._store_client = store
        self._prom_client = prometheus
        self._link_resolver = link_resolver
        self._lock = threading.Lock()

    def _prom(self) -> PrometheusClient:
        if self._prom_client is None:
            with self._lock:
                if self._prom_client is None:
                    self._prom_client = PrometheusClient(
                        self.settings.prometheus_url,
                        username=self.settings.prometheus_username,
                        password=self.settings.prometheus_password,
                        bearer_token=self.settings.prometheus_bearer_token,
                        timeout=self.settings.http_timeout,
                    )
        return self._prom_client

    def _store(self) -> TemplateStore:
        if self._store_client is None:
            with self._lock:
                if self._store_client is None:
                    if self.settings.templates_dir:
                        self._store_client = FileTemplateStore(self.settings.templates_dir)
                    else:
                        self._store_client = KubernetesTemplateStore(
                            group=self.settings.crd_group,
                            version=self.settings.crd_version,
                            plural=self.settings.crd_plural,
                            kubeconfig=self.settings.kubeconfig,
                            context=self.settings.kube_context,
                            timeout=self.settings.http_timeout,
                        )
        return self._store_client

    def _links(self) -> LinkResolver:
        if self._link_resolver is None:
            with self._lock:
                if self._link_resolver is None:
                    self._link_resolver = GrafanaLinkResolver(
                        self.settings.grafana_url,
                        self.settings.grafana_token,
                        in_cluster_url=self.settings.grafana_in_cluster_url,
                        enabled=self.settings.grafana_enabled,
                        timeout=self.settings.http_timeout,
                    )
        return self._link_resolver

    def resolver(self) -> TemplateResolver:
        return TemplateResolver(self._store(), self.settings.global_namespace)

    async def get_dashboard(self, query: DashboardQuery, template: str) -> FilledDashboard:
        """
        Return a dashboard filled-in with target data.

        Raises:
            BackendUnavailableError: Prometheus client cannot be created
            TemplateNotFoundError: Template (or an included one) not found
            CircularDependencyError: Template includes loop
        """
        log = bind_context(namespace=query.namespace, template=template)
        prom = self._prom()
        resolved = await asyncio.to_thread(self.resolver().resolve, query.namespace, template)

        aggregator = MetricsAggregator(prom, self._links(), self.settings.namespace_label)
        dashboard = await aggregator.fill(resolved, query)
        log.debug("dashboard_filled", charts=len(dashboard.charts))
        return dashboard

    async def search_explicit_dashboards(
        self,
        namespace: str,
        workload_annotations: Iterable[Mapping[str, str]],
    ) -> list[Runtime]:
        """Dashboards listed in workload annotations, grouped by runtime."""
        refs = extract_unique_dashboards(
            workload_annotations,
            [self.settings.runtimes_annotation, self.settings.dashboards_annotation],
        )
        if not refs:
            return []
        logger.debug("explicit_dashboards", namespace=namespace, refs=refs)
        return await self.build_runtimes_list(namespace, refs)

    async def build_runtimes_list(self, namespace: str, template_names: list[str]) -> list[Runtime]:
        """Load templates concurrently and group them by runtime, in the given order."""
        resolver = self.resolver()
        results = await asyncio.gather(
            *(asyncio.to_thread(resolver.load_raw, namespace, name) for name in template_names),
            return_exceptions=True,
        )

        runtimes: list[Runtime] = []
        for name, result in zip(template_names, results, strict=True):
            if isinstance(result, BaseException):
                logger.error(
                    "explicit_dashboard_load_failed",
                    template=name,
                    namespace=namespace,
                    error=str(result),
                )
                continue
            add_dashboard_to_runtimes(result, runtimes)
        return runtimes

    async def fetch_metric_names(self, namespace: str, labels_filters: Mapping[str, str]) -> list[str]:
        """Metric names reported under the namespace and filters; empty on failure."""
        labels = build_labels(namespace, labels_filters, self.settings.namespace_label)
        try:
            return await self._prom().get_metrics_for_labels([labels])
        except BackendUnavailableError as e:
            logger.error("runtimes_discovery_metrics_failed", labels=labels, error=str(e))
            return []

    async def discover_dashboards(self, namespace: str, labels_filters: Mapping[str, str]) -> list[Runtime]:
        """
        Discover dashboards from the metrics a workload reports.

        Raises:
            BackendUnavailableError: Templates cannot be listed
        """
        logger.debug("runtimes_discovery_start", namespace=namespace, filters=dict(labels_filters))
        resolver = self.resolver()
        templates, metric_names = await asyncio.gather(
            asyncio.to_thread(resolver.list_all, namespace),
            self.fetch_metric_names(namespace, labels_filters),
            return_exceptions=True,
        )
        if isinstance(templates, BaseException):
            logger.error("runtimes_discovery_templates_failed", namespace=namespace, error=str(templates))
            raise templates
        if isinstance(metric_names, BaseException):
            logger.error("runtimes_discovery_metrics_failed", namespace=namespace, error=str(metric_names))
            metric_names = []

        return run_discovery_matcher(metric_names, templates)
