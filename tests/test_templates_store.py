"""Tests for the template stores."""

from unittest.mock import MagicMock, patch

import pytest
from chartlayer.core.errors import TemplateNotFoundError
from chartlayer.templates.models import DataType
from chartlayer.templates.resolver import TemplateResolver
from chartlayer.templates.store import (
    FileTemplateStore,
    InMemoryTemplateStore,
    KubernetesTemplateStore,
    TemplateStoreError,
)

from helpers import chart, template

VERTX_YAML = """
apiVersion: monitoring.chartlayer.io/v1alpha1
kind: MonitoringDashboard
metadata:
  name: vertx-server
spec:
  title: Vert.x Server Metrics
  items:
  - chart:
      name: Server connections
      unit: ""
      metricName: vertx_http_server_connections
---
apiVersion: v1
kind: ConfigMap
metadata:
  name: not-a-dashboard
---
apiVersion: monitoring.chartlayer.io/v1alpha1
kind: MonitoringDashboard
metadata:
  name: vertx-client
spec:
  title: Vert.x Client Metrics
"""

GAUGE_YAML = """
apiVersion: monitoring.chartlayer.io/v1alpha1
kind: MonitoringDashboard
metadata:
  name: gauge
spec:
  discoverOn:
  items:
  - include:
  - chart:
      name: Pool size
      metricName: pool_size
      dataType: gauge
"""

BROKEN_YAML = """
apiVersion: monitoring.chartlayer.io/v1alpha1
kind: MonitoringDashboard
metadata:
  name: broken
spec:
  items:
  - chart:
      name: Pool size
      unitScale: not-a-number
"""


def resource(name):
    return {
        "kind": "MonitoringDashboard",
        "metadata": {"name": name},
        "spec": {"title": name.upper(), "items": []},
    }


class TestKubernetesTemplateStore:
    """Tests for KubernetesTemplateStore."""

    @pytest.fixture
    def custom_api(self):
        api = MagicMock()
        with patch.object(KubernetesTemplateStore, "_get_custom_api", return_value=api):
            yield api

    def test_get_template(self, custom_api):
        custom_api.get_namespaced_custom_object.return_value = resource("vertx-server")
        store = KubernetesTemplateStore()

        tpl = store.get_template("bookinfo", "vertx-server")

        assert tpl.name == "vertx-server"
        assert tpl.title == "VERTX-SERVER"
        custom_api.get_namespaced_custom_object.assert_called_once_with(
            "monitoring.chartlayer.io",
            "v1alpha1",
            "bookinfo",
            "monitoringdashboards",
            "vertx-server",
            _request_timeout=30.0,
        )

    def test_get_template_not_found(self, custom_api):
        from kubernetes.client.exceptions import ApiException

        custom_api.get_namespaced_custom_object.side_effect = ApiException(status=404, reason="Not Found")

        with pytest.raises(TemplateNotFoundError) as exc_info:
            KubernetesTemplateStore().get_template("bookinfo", "vertx-server")

        assert exc_info.value.details == {"namespace": "bookinfo", "template": "vertx-server"}

    def test_get_template_api_error(self, custom_api):
        from kubernetes.client.exceptions import ApiException

        custom_api.get_namespaced_custom_object.side_effect = ApiException(status=500, reason="Internal")

        with pytest.raises(TemplateStoreError) as exc_info:
            KubernetesTemplateStore().get_template("bookinfo", "vertx-server")

        assert exc_info.value.details["status"] == 500

    def test_list_templates(self, custom_api):
        custom_api.list_namespaced_custom_object.return_value = {
            "items": [resource("vertx-server"), resource("go")]
        }
        store = KubernetesTemplateStore(group="example.io", version="v1", plural="dashboards")

        templates = store.list_templates("bookinfo")

        assert [t.name for t in templates] == ["vertx-server", "go"]
        custom_api.list_namespaced_custom_object.assert_called_once_with(
            "example.io", "v1", "bookinfo", "dashboards", _request_timeout=30.0
        )

    def test_list_templates_skips_malformed(self, custom_api):
        broken = resource("broken")
        broken["spec"]["items"] = [{"chart": {"name": "c", "unitScale": "not-a-number"}}]
        custom_api.list_namespaced_custom_object.return_value = {"items": [broken, resource("go")]}

        templates = KubernetesTemplateStore().list_templates("bookinfo")

        assert [t.name for t in templates] == ["go"]

    def test_get_malformed_template(self, custom_api):
        broken = resource("broken")
        broken["spec"]["items"] = "not-a-list"
        custom_api.get_namespaced_custom_object.return_value = broken

        with pytest.raises(TemplateStoreError) as exc_info:
            KubernetesTemplateStore().get_template("bookinfo", "broken")

        assert exc_info.value.details == {"namespace": "bookinfo"}

    def test_list_templates_api_error(self, custom_api):
        from kubernetes.client.exceptions import ApiException

        custom_api.list_namespaced_custom_object.side_effect = ApiException(status=403, reason="Forbidden")

        with pytest.raises(TemplateStoreError):
            KubernetesTemplateStore().list_templates("bookinfo")

    def test_config_failure(self):
        from kubernetes.config import ConfigException

        with (
            patch("kubernetes.config.load_incluster_config", side_effect=ConfigException("no cluster")),
            patch("kubernetes.config.load_kube_config", side_effect=ConfigException("no kubeconfig")),
        ):
            with pytest.raises(TemplateStoreError, match="Failed to load Kubernetes config"):
                KubernetesTemplateStore(kubeconfig="/nonexistent").list_templates("bookinfo")


class TestFileTemplateStore:
    """Tests for FileTemplateStore."""

    @pytest.fixture
    def root(self, tmp_path):
        namespace_dir = tmp_path / "bookinfo"
        namespace_dir.mkdir()
        (namespace_dir / "vertx.yaml").write_text(VERTX_YAML)
        return tmp_path

    def test_get_template(self, root):
        tpl = FileTemplateStore(root).get_template("bookinfo", "vertx-server")

        assert tpl.title == "Vert.x Server Metrics"
        assert tpl.charts[0].metric_name == "vertx_http_server_connections"

    def test_other_kinds_ignored(self, root):
        names = [t.name for t in FileTemplateStore(root).list_templates("bookinfo")]

        assert names == ["vertx-server", "vertx-client"]

    def test_missing_template(self, root):
        with pytest.raises(TemplateNotFoundError):
            FileTemplateStore(root).get_template("bookinfo", "go")

    def test_missing_namespace_directory(self, root):
        store = FileTemplateStore(root)

        assert store.list_templates("other") == []
        with pytest.raises(TemplateNotFoundError):
            store.get_template("other", "vertx-server")

    def test_invalid_yaml_file_skipped(self, root):
        (root / "bookinfo" / "broken.yml").write_text("items: [unclosed\n")

        names = [t.name for t in FileTemplateStore(root).list_templates("bookinfo")]

        assert names == ["vertx-server", "vertx-client"]

    def test_unreadable_directory_entry(self, root):
        (root / "bookinfo" / "dir.yaml").mkdir()

        with pytest.raises(TemplateStoreError):
            FileTemplateStore(root).list_templates("bookinfo")

    def test_edits_picked_up(self, root):
        store = FileTemplateStore(root)
        store.get_template("bookinfo", "vertx-server")

        (root / "bookinfo" / "vertx.yaml").write_text(VERTX_YAML.replace("Vert.x Server Metrics", "Edited"))

        assert store.get_template("bookinfo", "vertx-server").title == "Edited"

    def test_malformed_template_does_not_break_namespace(self, root):
        """Test one unreadable template leaves the other templates of the namespace usable."""
        (root / "bookinfo" / "gauge.yaml").write_text(GAUGE_YAML)
        (root / "bookinfo" / "broken.yaml").write_text(BROKEN_YAML)
        store = FileTemplateStore(root)

        resolved = TemplateResolver(store).resolve("bookinfo", "vertx-server")

        assert resolved.title == "Vert.x Server Metrics"
        assert store.get_template("bookinfo", "gauge").charts[0].data_type == DataType.HISTOGRAM
        assert sorted(t.name for t in store.list_templates("bookinfo")) == ["gauge", "vertx-client", "vertx-server"]
        with pytest.raises(TemplateNotFoundError):
            store.get_template("bookinfo", "broken")


class TestInMemoryTemplateStore:
    """Tests for InMemoryTemplateStore."""

    def test_add_and_get(self):
        store = InMemoryTemplateStore()
        store.add("ns", template("a", chart("a1")))

        assert store.get_template("ns", "a").charts[0].name == "a1"
        assert [t.name for t in store.list_templates("ns")] == ["a"]

    def test_namespaces_are_isolated(self):
        store = InMemoryTemplateStore({"ns": [template("a")]})

        assert store.list_templates("other") == []
        with pytest.raises(TemplateNotFoundError):
            store.get_template("other", "a")
