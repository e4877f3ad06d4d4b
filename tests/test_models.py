from __future__ import annotations

from drhub.domain.models import (
    LAST_APP_DEPLOYMENT_CLUSTER_ANNOTATION,
    PLACEMENT_RULE_KIND,
    Application,
    ApplicationSet,
    DRCluster,
    DRPlacementControl,
    DRPolicy,
    ManagedCluster,
    PlacementDecision,
    PlacementKey,
    Subscription,
)
from drhub.domain.states import DRActionType, ReplicationType
from tests.builders import (
    EAST,
    WEST,
    application,
    application_set,
    dr_cluster,
    dr_policy,
    drpc,
    managed_cluster,
    placement_decision,
    subscription,
)


class TestFromResource:
    """Snapshots are built from raw objects without raising on missing fields."""

    def test_empty_objects_do_not_raise(self) -> None:
        for factory in (
            DRCluster.from_resource,
            DRPolicy.from_resource,
            DRPlacementControl.from_resource,
            ManagedCluster.from_resource,
            PlacementDecision.from_resource,
            Subscription.from_resource,
            Application.from_resource,
            ApplicationSet.from_resource,
        ):
            obj = factory({})
            assert obj.name == ""

    def test_non_dict_fields_are_ignored(self) -> None:
        raw = {"metadata": {"name": "p"}, "spec": "broken", "status": ["not", "a", "dict"]}
        policy = DRPolicy.from_resource(raw)
        assert policy.name == "p"
        assert policy.dr_cluster_names == ()
        assert policy.conditions == ()

    def test_dr_cluster_fenced(self) -> None:
        assert DRCluster.from_resource(dr_cluster(EAST, "Fenced")).is_fenced
        assert not DRCluster.from_resource(dr_cluster(EAST, "Unfenced")).is_fenced

    def test_managed_cluster_availability(self) -> None:
        assert ManagedCluster.from_resource(managed_cluster(EAST)).is_available
        down = ManagedCluster.from_resource(managed_cluster(WEST, available=False))
        assert not down.is_available


class TestDRPolicy:
    def test_zero_interval_means_sync(self) -> None:
        assert DRPolicy.from_resource(dr_policy(interval="0m")).replication_type == ReplicationType.SYNC

    def test_non_zero_interval_means_async(self) -> None:
        assert DRPolicy.from_resource(dr_policy(interval="5m")).replication_type == ReplicationType.ASYNC

    def test_status_overrides_interval(self) -> None:
        raw = dr_policy(interval="5m")
        raw["status"]["sync"] = {"peerClasses": []}
        assert DRPolicy.from_resource(raw).replication_type == ReplicationType.SYNC

    def test_invalid_condition(self) -> None:
        policy = DRPolicy.from_resource(dr_policy(validated=False, reason="Failed", message="bad peers"))
        cond = policy.invalid_condition()
        assert cond is not None
        assert cond.reason == "Failed"

    def test_missing_validated_condition_is_not_invalid(self) -> None:
        assert DRPolicy.from_resource(dr_policy(validated=None)).invalid_condition() is None


class TestDRPlacementControl:
    def test_placement_ref_defaults_to_drpc_namespace(self) -> None:
        obj = DRPlacementControl.from_resource(drpc(namespace="apps", placement="p1"))
        assert obj.placement_ref == PlacementKey("p1", "apps", "Placement")

    def test_placement_ref_rejects_unknown_kind(self) -> None:
        obj = DRPlacementControl.from_resource(drpc(placement_kind="Deployment"))
        assert obj.placement_ref is None

    def test_relocate_needs_peer_ready_and_available(self) -> None:
        obj = DRPlacementControl.from_resource(drpc(peer_ready=True, available=False))
        assert obj.is_action_ready(DRActionType.FAILOVER)
        assert not obj.is_action_ready(DRActionType.RELOCATE)

    def test_primary_cluster_follows_phase(self) -> None:
        failed_over = DRPlacementControl.from_resource(drpc(phase="FailedOver", failover_cluster=WEST))
        relocated = DRPlacementControl.from_resource(drpc(phase="Relocated", preferred_cluster=EAST))
        deployed = DRPlacementControl.from_resource(
            drpc(phase="Deployed", annotations={LAST_APP_DEPLOYMENT_CLUSTER_ANNOTATION: WEST})
        )
        assert failed_over.primary_cluster_name == WEST
        assert relocated.primary_cluster_name == EAST
        assert deployed.primary_cluster_name == WEST

    def test_protected_pvcs(self) -> None:
        obj = DRPlacementControl.from_resource(drpc(protected_pvcs=["a", "b"]))
        assert obj.protected_pvcs == ("a", "b")


class TestPlacementDecision:
    def test_linked_by_placement_label(self) -> None:
        decision = PlacementDecision.from_resource(placement_decision("p1", "apps", (WEST,)))
        assert decision.placement_key == PlacementKey("p1", "apps", "Placement")
        assert decision.decision_clusters == (WEST,)

    def test_linked_by_placement_rule_label(self) -> None:
        decision = PlacementDecision.from_resource(placement_decision("r1", "apps", rule=True))
        assert decision.placement_key == PlacementKey("r1", "apps", PLACEMENT_RULE_KIND)

    def test_unlabelled_decision_has_no_key(self) -> None:
        raw = placement_decision()
        raw["metadata"]["labels"] = {}
        assert PlacementDecision.from_resource(raw).placement_key is None


class TestApplicationSelector:
    def _sub(self, labels: dict[str, str], namespace: str = "busybox") -> Subscription:
        return Subscription.from_resource(subscription(namespace=namespace, labels=labels))

    def test_in_operator(self) -> None:
        app = Application.from_resource(application())
        assert app.matches(self._sub({"app": "busybox"}))
        assert not app.matches(self._sub({"app": "other"}))

    def test_not_in_operator(self) -> None:
        app = Application.from_resource(
            application(expressions=[{"key": "tier", "operator": "NotIn", "values": ["db"]}])
        )
        assert app.matches(self._sub({"tier": "web"}))
        assert app.matches(self._sub({"app": "x"}))
        assert not app.matches(self._sub({"tier": "db"}))

    def test_exists_and_does_not_exist(self) -> None:
        exists = Application.from_resource(application(expressions=[{"key": "app", "operator": "Exists"}]))
        missing = Application.from_resource(application(expressions=[{"key": "app", "operator": "DoesNotExist"}]))
        assert exists.matches(self._sub({"app": "anything"}))
        assert not missing.matches(self._sub({"app": "anything"}))
        assert missing.matches(self._sub({"other": "x"}))

    def test_exists_with_values_never_matches(self) -> None:
        app = Application.from_resource(
            application(expressions=[{"key": "app", "operator": "Exists", "values": ["busybox"]}])
        )
        assert not app.matches(self._sub({"app": "busybox"}))

    def test_empty_values_list_is_accepted(self) -> None:
        exists = Application.from_resource(
            application(expressions=[{"key": "app", "operator": "Exists", "values": []}])
        )
        missing = Application.from_resource(
            application(expressions=[{"key": "app", "operator": "DoesNotExist", "values": []}])
        )
        assert exists.matches(self._sub({"app": "busybox"}))
        assert missing.matches(self._sub({"other": "x"}))
        assert not missing.matches(self._sub({"app": "busybox"}))

    def test_namespace_must_match(self) -> None:
        app = Application.from_resource(application(namespace="busybox"))
        assert not app.matches(self._sub({"app": "busybox"}, namespace="elsewhere"))

    def test_empty_selector_matches_nothing(self) -> None:
        app = Application.from_resource(application(expressions=[]))
        assert not app.matches(self._sub({"app": "busybox"}))


class TestApplicationSet:
    def test_placement_from_first_generator(self) -> None:
        app_set = ApplicationSet.from_resource(application_set(placement_name="gitops-placement"))
        assert app_set.placement_ref == PlacementKey("gitops-placement", "openshift-gitops", "Placement")
        assert app_set.destination_namespace == "busybox-gitops"

    def test_missing_generator_has_no_placement(self) -> None:
        raw = application_set()
        raw["spec"]["generators"] = []
        assert ApplicationSet.from_resource(raw).placement_ref is None
