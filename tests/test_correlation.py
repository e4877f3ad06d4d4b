from __future__ import annotations

from drhub.domain.models import LAST_APP_DEPLOYMENT_CLUSTER_ANNOTATION
from drhub.infra.memory_hub import InMemoryHub
from drhub.services.correlation import CorrelationCache, correlate, correlate_snapshots
from drhub.services.resource_index import build_resource_index
from tests.builders import (
    APP_NAMESPACE,
    EAST,
    WEST,
    application_set,
    correlate_resources,
    drpc,
    info_named,
    placement,
    placement_decision,
    placement_rule,
    protected_subscription_app,
    snapshots_for,
    subscription,
)


class TestCorrelate:
    def test_protected_subscription_app(self) -> None:
        infos = correlate_resources(protected_subscription_app())
        assert len(infos) == 1
        info = infos[0]
        assert info.is_protected
        assert info.application.application_name == "busybox"
        assert info.deployment_cluster_name == EAST
        assert info.primary_cluster_name == EAST
        assert info.target_cluster_name == WEST
        assert {c.name for c in info.dr_clusters} == {EAST, WEST}
        assert {c.name for c in info.managed_clusters} == {EAST, WEST}
        assert not info.are_sibling_applications_found

    def test_unresolved_placement_is_excluded(self) -> None:
        resources = protected_subscription_app()
        resources["subscriptions"].append(subscription("orphan-sub", placement_name="missing-placement"))
        names = [i.application.name for i in correlate_resources(resources)]
        assert "orphan-sub" not in names
        assert names == ["busybox-sub"]

    def test_no_drpc_yields_unprotected_record(self) -> None:
        resources = protected_subscription_app()
        resources["dr_placement_controls"] = []
        infos = correlate_resources(resources)
        assert len(infos) == 1
        assert not infos[0].is_protected
        assert infos[0].dr_policy is None
        assert infos[0].deployment_cluster_name == EAST

    def test_unresolved_policy_keeps_drpc(self) -> None:
        resources = protected_subscription_app()
        resources["dr_placement_controls"] = [drpc(policy="does-not-exist")]
        info = correlate_resources(resources)[0]
        assert info.dr_placement_control is not None
        assert info.dr_policy is None
        assert info.primary_cluster_name is None

    def test_siblings_reported_for_both_subscriptions(self) -> None:
        resources = protected_subscription_app()
        resources["subscriptions"].append(subscription("busybox-sub-2"))
        infos = correlate_resources(resources)
        first = info_named(infos, "busybox-sub")
        second = info_named(infos, "busybox-sub-2")
        assert first.are_sibling_applications_found
        assert second.are_sibling_applications_found
        assert [s.name for s in first.sibling_applications] == ["busybox-sub-2"]
        assert [s.name for s in second.sibling_applications] == ["busybox-sub"]

    def test_application_set_workload(self) -> None:
        resources = protected_subscription_app()
        resources["placements"].append(placement("busybox-appset-placement", "openshift-gitops"))
        resources["placement_decisions"].append(
            placement_decision("busybox-appset-placement", "openshift-gitops", (WEST,))
        )
        resources["application_sets"] = [application_set()]
        info = info_named(correlate_resources(resources), "busybox-appset")
        assert info.application.kind == "ApplicationSet"
        assert info.application.workload_namespace == "busybox-gitops"
        assert info.deployment_cluster_name == WEST
        assert not info.is_protected

    def test_placement_rule_decisions_are_embedded(self) -> None:
        resources = protected_subscription_app()
        resources["placement_rules"] = [placement_rule("legacy-rule", clusters=(WEST,))]
        resources["subscriptions"] = [
            subscription("legacy-sub", placement_name="legacy-rule", placement_kind="PlacementRule")
        ]
        resources["dr_placement_controls"] = [drpc(placement="legacy-rule", placement_kind="PlacementRule")]
        info = correlate_resources(resources)[0]
        assert info.deployment_cluster_name == WEST
        assert info.is_protected
        assert info.placement.kind == "PlacementRule"


class TestDeploymentClusterFallback:
    def _without_decision(self, **drpc_kwargs) -> dict:
        resources = protected_subscription_app()
        resources["placement_decisions"] = []
        resources["dr_placement_controls"] = [drpc(**drpc_kwargs)]
        return resources

    def test_failed_over_uses_failover_cluster(self) -> None:
        info = correlate_resources(self._without_decision(phase="FailedOver", failover_cluster=WEST))[0]
        assert info.deployment_cluster_name == WEST
        assert info.target_cluster_name == EAST

    def test_relocated_uses_preferred_cluster(self) -> None:
        info = correlate_resources(self._without_decision(phase="Relocated", preferred_cluster=EAST))[0]
        assert info.deployment_cluster_name == EAST

    def test_other_phase_uses_annotation(self) -> None:
        resources = self._without_decision(
            phase="Deployed",
            annotations={LAST_APP_DEPLOYMENT_CLUSTER_ANNOTATION: WEST},
        )
        assert correlate_resources(resources)[0].deployment_cluster_name == WEST

    def test_unknown_when_nothing_is_known(self) -> None:
        resources = self._without_decision(phase="", annotations={"unrelated": "x"})
        info = correlate_resources(resources)[0]
        assert info.deployment_cluster_name is None
        assert info.primary_cluster_name is None
        assert info.target_cluster_name is None


class TestCorrelationPurity:
    def test_empty_when_inputs_pending(self) -> None:
        hub = InMemoryHub(protected_subscription_app())
        hub.not_loaded.add("subscriptions")
        assert correlate_snapshots(hub.load_snapshots()) == []

    def test_idempotent(self) -> None:
        index = build_resource_index(snapshots_for(protected_subscription_app()))
        assert correlate(index) == correlate(index)

    def test_cache_reuses_identical_snapshots(self) -> None:
        cache = CorrelationCache()
        resources = protected_subscription_app()
        first = correlate_snapshots(snapshots_for(resources), cache)
        second = correlate_snapshots(snapshots_for(resources), cache)
        assert first == second
        assert cache.hits == 1
        assert cache.misses == 1

    def test_cache_recomputes_on_change(self) -> None:
        cache = CorrelationCache()
        resources = protected_subscription_app()
        correlate_snapshots(snapshots_for(resources), cache)
        resources["subscriptions"].append(subscription("busybox-sub-2", namespace=APP_NAMESPACE))
        infos = correlate_snapshots(snapshots_for(resources), cache)
        assert len(infos) == 2
        assert cache.misses == 2

    def test_cache_is_bounded(self) -> None:
        cache = CorrelationCache(max_entries=1)
        resources = protected_subscription_app()
        correlate_snapshots(snapshots_for(resources), cache)
        resources["subscriptions"] = []
        correlate_snapshots(snapshots_for(resources), cache)
        assert len(cache) == 1
