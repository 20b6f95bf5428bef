"""
Template stores.

A template store reads MonitoringDashboard templates from one namespace at a
time. Namespace-scoped and global lookups are two independent calls; the
override policy between them lives in the resolver.

Stores:
- KubernetesTemplateStore: MonitoringDashboard custom resources
- FileTemplateStore: YAML manifests laid out as <root>/<namespace>/*.yaml
- InMemoryTemplateStore: templates registered in code
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

import structlog
import yaml

from chartlayer.core.errors import BackendUnavailableError, TemplateNotFoundError
from chartlayer.templates.models import Template

logger = structlog.get_logger()

KIND = "MonitoringDashboard"


class TemplateStoreError(BackendUnavailableError):
    """Raised when a template store cannot be reached or read."""


class TemplateStore(Protocol):
    """Read access to dashboard templates, one namespace at a time."""

    def get_template(self, namespace: str, name: str) -> Template:
        ...

    def list_templates(self, namespace: str) -> list[Template]:
        ...


def _not_found(namespace: str, name: str) -> TemplateNotFoundError:
    return TemplateNotFoundError(
        f"dashboard template '{name}' not found in namespace '{namespace}'",
        details={"namespace": namespace, "template": name},
    )


def _parse_resource(resource: dict[str, Any], namespace: str) -> Template:
    try:
        return Template.from_resource(resource)
    except (AttributeError, TypeError, ValueError) as e:
        raise TemplateStoreError(
            f"invalid dashboard template in namespace '{namespace}': {e}",
            details={"namespace": namespace},
        ) from e


def _parse_resources(resources: list[Any], namespace: str) -> list[Template]:
    """Parse resources, skipping the ones that cannot be read as templates."""
    templates: list[Template] = []
    for resource in resources:
        if not isinstance(resource, dict) or resource.get("kind", KIND) != KIND:
            continue
        try:
            template = _parse_resource(resource, namespace)
        except TemplateStoreError as e:
            logger.warning("template_skipped", namespace=namespace, error=e.message)
            continue
        if template.name:
            templates.append(template)
    return templates


@dataclass
class KubernetesTemplateStore:
    """
    Read templates from MonitoringDashboard custom resources.

    Configuration:
        group/version/plural: Custom resource coordinates
        kubeconfig: Path to kubeconfig file (optional)
        context: Kubeconfig context to use (optional)
        timeout: API request timeout in seconds

    Environment variables:
        KUBECONFIG: Standard kubeconfig path
        CHARTLAYER_KUBE_CONTEXT: Kubeconfig context
    """

    group: str = "monitoring.chartlayer.io"
    version: str = "v1alpha1"
    plural: str = "monitoringdashboards"
    kubeconfig: str | None = field(default_factory=lambda: os.environ.get("KUBECONFIG"))
    context: str | None = field(default_factory=lambda: os.environ.get("CHARTLAYER_KUBE_CONTEXT"))
    timeout: float = 30.0

    # Internal state
    _api_client: Any = field(default=None, repr=False, compare=False)
    _initialized: bool = field(default=False, repr=False, compare=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def _ensure_initialized(self) -> None:
        """Initialize Kubernetes client if not already done."""
        if self._initialized:
            return

        with self._lock:
            if self._initialized:
                return

            from kubernetes import client, config

            # Try in-cluster config first, then kubeconfig
            try:
                config.load_incluster_config()
            except config.ConfigException:
                try:
                    config.load_kube_config(
                        config_file=self.kubeconfig,
                        context=self.context,
                    )
                except config.ConfigException as e:
                    raise TemplateStoreError(f"Failed to load Kubernetes config: {e}") from e

            self._api_client = client.ApiClient()
            self._initialized = True

    def _get_custom_api(self) -> Any:
        """Get CustomObjectsApi client."""
        self._ensure_initialized()
        from kubernetes import client

        return client.CustomObjectsApi(self._api_client)

    def get_template(self, namespace: str, name: str) -> Template:
        from kubernetes.client.exceptions import ApiException

        api = self._get_custom_api()
        logger.debug("k8s_template_get", namespace=namespace, template=name)
        try:
            resource = api.get_namespaced_custom_object(
                self.group,
                self.version,
                namespace,
                self.plural,
                name,
                _request_timeout=self.timeout,
            )
        except ApiException as e:
            if e.status == 404:
                raise _not_found(namespace, name) from e
            raise TemplateStoreError(
                f"Failed to get dashboard template '{name}': {e.reason}",
                details={"namespace": namespace, "status": e.status},
            ) from e
        return _parse_resource(resource, namespace)

    def list_templates(self, namespace: str) -> list[Template]:
        from kubernetes.client.exceptions import ApiException

        api = self._get_custom_api()
        logger.debug("k8s_template_list", namespace=namespace)
        try:
            resources = api.list_namespaced_custom_object(
                self.group,
                self.version,
                namespace,
                self.plural,
                _request_timeout=self.timeout,
            )
        except ApiException as e:
            raise TemplateStoreError(
                f"Failed to list dashboard templates: {e.reason}",
                details={"namespace": namespace, "status": e.status},
            ) from e
        return _parse_resources(resources.get("items") or [], namespace)


class FileTemplateStore:
    """
    Read templates from YAML manifests on disk.

    Layout:
        <root>/<namespace>/*.yaml   one or more MonitoringDashboard documents per file

    Files are parsed on every call, so edits are picked up without restart.
    Files that are not valid YAML are skipped.
    """

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _load_namespace(self, namespace: str) -> dict[str, Template]:
        directory = self.root / namespace
        templates: dict[str, Template] = {}
        if not directory.is_dir():
            return templates

        for path in sorted(directory.glob("*.y*ml")):
            try:
                with open(path) as f:
                    documents = list(yaml.safe_load_all(f))
            except yaml.YAMLError as e:
                logger.warning("template_file_skipped", path=str(path), error=str(e))
                continue
            except OSError as e:
                raise TemplateStoreError(
                    f"Failed to read dashboard templates from {path}: {e}",
                    details={"namespace": namespace},
                ) from e

            for template in _parse_resources(documents, namespace):
                templates[template.name] = template
        return templates

    def get_template(self, namespace: str, name: str) -> Template:
        template = self._load_namespace(namespace).get(name)
        if template is None:
            raise _not_found(namespace, name)
        return template

    def list_templates(self, namespace: str) -> list[Template]:
        return list(self._load_namespace(namespace).values())


class InMemoryTemplateStore:
    """Templates registered in code, keyed by namespace."""

    def __init__(self, templates: dict[str, list[Template]] | None = None) -> None:
        self._templates: dict[str, dict[str, Template]] = {}
        for namespace, items in (templates or {}).items():
            for template in items:
                self.add(namespace, template)

    def add(self, namespace: str, template: Template) -> None:
        self._templates.setdefault(namespace, {})[template.name] = template

    def get_template(self, namespace: str, name: str) -> Template:
        template = self._templates.get(namespace, {}).get(name)
        if template is None:
            raise _not_found(namespace, name)
        return template

    def list_templates(self, namespace: str) -> list[Template]:
        return list(self._templates.get(namespace, {}).values())
