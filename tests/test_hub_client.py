from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from drhub.infra import hub_client as hub_client_module
from drhub.infra.hub_client import HubClient, HubClientError
from drhub.infra.resource_models import DR_PLACEMENT_CONTROL, WATCHED_KINDS, kind_for_field
from tests.builders import EAST, WEST, dr_cluster, drpc


def _api(items_by_plural: dict[str, Any]) -> MagicMock:
    def list_objects(group: str, version: str, plural: str, **_kwargs: Any) -> dict[str, Any]:
        value = items_by_plural.get(plural, [])
        if isinstance(value, Exception):
            raise value
        return {"items": value}

    api = MagicMock()
    api.list_cluster_custom_object.side_effect = list_objects
    return api


class TestLoadSnapshots:
    def test_lists_every_watched_kind(self) -> None:
        api = _api({"drclusters": [dr_cluster(EAST), dr_cluster(WEST)]})
        snapshots = HubClient(api=api, kubeconfig="", context="").load_snapshots()

        assert snapshots.all_ready()
        assert len(snapshots.dr_clusters.items()) == 2
        assert api.list_cluster_custom_object.call_count == len(WATCHED_KINDS)

    def test_error_isolated_to_one_kind(self) -> None:
        api = _api({"drpolicies": ApiException(status=403, reason="Forbidden"), "drclusters": [dr_cluster(EAST)]})
        snapshots = HubClient(api=api, kubeconfig="", context="").load_snapshots()

        assert not snapshots.dr_policies.loaded
        assert snapshots.dr_policies.load_error == "403 Forbidden"
        assert snapshots.dr_clusters.ready
        assert snapshots.pending_kinds() == ["dr_policies"]

    def test_missing_optional_crd_is_loaded_empty(self) -> None:
        api = _api({"applicationsets": ApiException(status=404, reason="Not Found")})
        snapshots = HubClient(api=api, kubeconfig="", context="").load_snapshots()
        assert snapshots.application_sets.ready
        assert snapshots.all_ready()

    def test_missing_required_crd_is_an_error(self) -> None:
        api = _api({"drplacementcontrols": ApiException(status=404, reason="Not Found")})
        snapshots = HubClient(api=api, kubeconfig="", context="").load_snapshots()
        assert snapshots.dr_placement_controls.load_error == "404 Not Found"


class TestPatchDRPC:
    def test_sends_json_patch_to_drpc(self) -> None:
        api = MagicMock()
        api.patch_namespaced_custom_object.return_value = drpc()
        client = HubClient(api=api, kubeconfig="", context="", request_timeout=3)
        patch = [{"op": "replace", "path": "/spec/action", "value": "Failover"}]

        client.patch_drpc("busybox-drpc", "busybox", patch)

        api.patch_namespaced_custom_object.assert_called_once_with(
            group=DR_PLACEMENT_CONTROL.group,
            version=DR_PLACEMENT_CONTROL.version,
            namespace="busybox",
            plural="drplacementcontrols",
            name="busybox-drpc",
            body=patch,
            _request_timeout=3,
        )

    def test_rejection_propagates(self) -> None:
        api = MagicMock()
        api.patch_namespaced_custom_object.side_effect = ApiException(status=409, reason="Conflict")
        with pytest.raises(ApiException):
            HubClient(api=api, kubeconfig="", context="").patch_drpc("a", "ns", [])


class TestConnect:
    def test_falls_back_to_kubeconfig(self, monkeypatch: pytest.MonkeyPatch) -> None:
        calls: list[str] = []

        def incluster() -> None:
            calls.append("incluster")
            raise ConfigException("not in cluster")

        def kubeconfig(**_kwargs: Any) -> None:
            calls.append("kubeconfig")

        monkeypatch.setattr(hub_client_module.config, "load_incluster_config", incluster)
        monkeypatch.setattr(hub_client_module.config, "load_kube_config", kubeconfig)
        monkeypatch.setattr(hub_client_module.client, "CustomObjectsApi", MagicMock)

        api = HubClient(kubeconfig="", context="").api
        assert isinstance(api, MagicMock)
        assert calls == ["incluster", "kubeconfig"]

    def test_explicit_kubeconfig_skips_incluster(self, monkeypatch: pytest.MonkeyPatch) -> None:
        seen: dict[str, Any] = {}

        def kubeconfig(config_file: str | None = None, context: str | None = None) -> None:
            seen.update(config_file=config_file, context=context)

        monkeypatch.setattr(hub_client_module.config, "load_kube_config", kubeconfig)
        monkeypatch.setattr(hub_client_module.client, "CustomObjectsApi", MagicMock)

        HubClient(kubeconfig="/tmp/hub.kubeconfig", context="hub").api
        assert seen == {"config_file": "/tmp/hub.kubeconfig", "context": "hub"}

    def test_no_config_raises_hub_client_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def fail(*_args: Any, **_kwargs: Any) -> None:
            raise ConfigException("no config")

        monkeypatch.setattr(hub_client_module.config, "load_incluster_config", fail)
        monkeypatch.setattr(hub_client_module.config, "load_kube_config", fail)

        with pytest.raises(HubClientError, match="Failed to load hub cluster config"):
            HubClient(kubeconfig="", context="").api


class TestResourceKinds:
    def test_lookup_by_snapshot_field(self) -> None:
        kind = kind_for_field("placement_decisions")
        assert (kind.group, kind.version) == ("cluster.open-cluster-management.io", "v1beta1")
        assert kind.plural == "placementdecisions"

    def test_unknown_field(self) -> None:
        with pytest.raises(LookupError):
            kind_for_field("pods")
