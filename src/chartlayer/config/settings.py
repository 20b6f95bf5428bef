"""
Application settings using Pydantic.

Provides environment-based configuration loading with CHARTLAYER_ prefix.
"""

from functools import lru_cache

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from chartlayer.core.errors import ConfigurationError


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CHARTLAYER_",
    )

    # Template lookup
    global_namespace: str | None = None
    namespace_label: str = "namespace"

    # Prometheus
    prometheus_url: str = "http://localhost:9090"
    prometheus_username: str | None = None
    prometheus_password: str | None = None
    prometheus_bearer_token: str | None = None

    # HTTP client settings
    http_timeout: float = 30.0

    # Kubernetes
    kubeconfig: str | None = None
    kube_context: str | None = None
    crd_group: str = "monitoring.chartlayer.io"
    crd_version: str = "v1alpha1"
    crd_plural: str = "monitoringdashboards"

    # Local templates directory (replaces the cluster store when set)
    templates_dir: str | None = None

    # Grafana external links
    grafana_enabled: bool = False
    grafana_url: str | None = None
    grafana_in_cluster_url: str | None = None
    grafana_token: str | None = None

    # Workload annotations listing explicit dashboards
    runtimes_annotation: str = "chartlayer.io/runtimes"
    dashboards_annotation: str = "chartlayer.io/dashboards"

    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Raises:
        ConfigurationError: If a CHARTLAYER_ variable holds an invalid value
    """
    try:
        return Settings()
    except ValidationError as e:
        raise ConfigurationError(f"invalid settings: {e}") from e
