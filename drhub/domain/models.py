from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NamedTuple

from drhub.domain.states import DRActionType, DRClusterPhase, DRPCPhase, ReplicationType


PLACEMENT_KIND = "Placement"
PLACEMENT_RULE_KIND = "PlacementRule"
SUBSCRIPTION_KIND = "Subscription"
APPLICATION_SET_KIND = "ApplicationSet"

PLACEMENT_REF_LABEL = "cluster.open-cluster-management.io/placement"
PLACEMENT_RULE_REF_LABEL = "cluster.open-cluster-management.io/placementrule"
LAST_APP_DEPLOYMENT_CLUSTER_ANNOTATION = "drplacementcontrol.ramendr.openshift.io/last-app-deployment-cluster"
MANAGED_CLUSTER_CONDITION_AVAILABLE = "ManagedClusterConditionAvailable"
DR_POLICY_CONDITION_VALIDATED = "Validated"
DRPC_CONDITION_PEER_READY = "PeerReady"
DRPC_CONDITION_AVAILABLE = "Available"
SYNC_SCHEDULING_INTERVAL = "0m"


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def dig(obj: Any, *path: str, default: Any = None) -> Any:
    """Walk nested dicts; any missing or non-dict hop yields ``default``."""
    current = obj
    for key in path:
        if not isinstance(current, dict) or key not in current:
            return default
        current = current[key]
    return default if current is None else current


def _metadata(resource: Any) -> dict[str, Any]:
    return _as_dict(dig(resource, "metadata"))


def _str_map(value: Any) -> dict[str, str]:
    return {str(k): str(v) for k, v in _as_dict(value).items() if v is not None}


class PlacementKey(NamedTuple):
    """Composite join key; placements are never matched on name alone."""

    name: str
    namespace: str
    kind: str

    @property
    def unique_id(self) -> str:
        return f"{self.name}%{self.namespace}%{self.kind}"


def placement_key_from_ref(ref: Any, default_namespace: str) -> PlacementKey | None:
    ref = _as_dict(ref)
    name = _str(ref.get("name"))
    kind = _str(ref.get("kind"))
    if not name or kind not in {PLACEMENT_KIND, PLACEMENT_RULE_KIND}:
        return None
    return PlacementKey(name, _str(ref.get("namespace")) or default_namespace, kind)


@dataclass(frozen=True)
class Condition:
    type: str
    status: str
    reason: str = ""
    message: str = ""
    last_transition_time: str | None = None

    @property
    def is_true(self) -> bool:
        return self.status == "True"

    @property
    def is_false(self) -> bool:
        return self.status == "False"


def parse_conditions(raw: Any) -> tuple[Condition, ...]:
    out: list[Condition] = []
    for item in _as_list(raw):
        item = _as_dict(item)
        if not item.get("type"):
            continue
        out.append(
            Condition(
                type=_str(item.get("type")),
                status=_str(item.get("status")),
                reason=_str(item.get("reason")),
                message=_str(item.get("message")),
                last_transition_time=_str(item.get("lastTransitionTime")) or None,
            )
        )
    return tuple(out)


def find_condition(conditions: tuple[Condition, ...], condition_type: str) -> Condition | None:
    return next((c for c in conditions if c.type == condition_type), None)


@dataclass(frozen=True)
class DRCluster:
    name: str
    phase: str = ""

    @classmethod
    def from_resource(cls, resource: Any) -> "DRCluster":
        return cls(
            name=_str(_metadata(resource).get("name")),
            phase=_str(dig(resource, "status", "phase")),
        )

    @property
    def is_fenced(self) -> bool:
        return self.phase == DRClusterPhase.FENCED.value


@dataclass(frozen=True)
class DRPolicy:
    name: str
    dr_cluster_names: tuple[str, ...] = ()
    scheduling_interval: str = ""
    replication_type: ReplicationType = ReplicationType.ASYNC
    conditions: tuple[Condition, ...] = ()

    @classmethod
    def from_resource(cls, resource: Any) -> "DRPolicy":
        spec = _as_dict(dig(resource, "spec"))
        status = _as_dict(dig(resource, "status"))
        interval = _str(spec.get("schedulingInterval"))
        return cls(
            name=_str(_metadata(resource).get("name")),
            dr_cluster_names=tuple(_str(n) for n in _as_list(spec.get("drClusters")) if _str(n)),
            scheduling_interval=interval,
            replication_type=_replication_type(status, interval),
            conditions=parse_conditions(status.get("conditions")),
        )

    def invalid_condition(self) -> Condition | None:
        cond = find_condition(self.conditions, DR_POLICY_CONDITION_VALIDATED)
        return cond if cond is not None and cond.is_false else None


def _replication_type(status: dict[str, Any], scheduling_interval: str) -> ReplicationType:
    # Status wins when the operator has populated it.
    if status.get("async"):
        return ReplicationType.ASYNC
    if status.get("sync"):
        return ReplicationType.SYNC
    if scheduling_interval == SYNC_SCHEDULING_INTERVAL:
        return ReplicationType.SYNC
    return ReplicationType.ASYNC


@dataclass(frozen=True)
class DRPlacementControl:
    name: str
    namespace: str
    dr_policy_name: str = ""
    placement_ref: PlacementKey | None = None
    preferred_cluster: str = ""
    failover_cluster: str = ""
    action: str = ""
    phase: str = ""
    last_group_sync_time: str | None = None
    conditions: tuple[Condition, ...] = ()
    annotations: dict[str, str] = field(default_factory=dict)
    protected_pvcs: tuple[str, ...] = ()

    @classmethod
    def from_resource(cls, resource: Any) -> "DRPlacementControl":
        meta = _metadata(resource)
        spec = _as_dict(dig(resource, "spec"))
        status = _as_dict(dig(resource, "status"))
        namespace = _str(meta.get("namespace"))
        pvcs = dig(status, "resourceConditions", "resourceMeta", "protectedpvcs", default=[])
        return cls(
            name=_str(meta.get("name")),
            namespace=namespace,
            dr_policy_name=_str(dig(spec, "drPolicyRef", "name")),
            placement_ref=placement_key_from_ref(spec.get("placementRef"), namespace),
            preferred_cluster=_str(spec.get("preferredCluster")),
            failover_cluster=_str(spec.get("failoverCluster")),
            action=_str(spec.get("action")),
            phase=_str(status.get("phase")),
            last_group_sync_time=_str(status.get("lastGroupSyncTime")) or None,
            conditions=parse_conditions(status.get("conditions")),
            annotations=_str_map(meta.get("annotations")),
            protected_pvcs=tuple(_str(p) for p in _as_list(pvcs) if _str(p)),
        )

    def _condition_true(self, condition_type: str) -> bool:
        cond = find_condition(self.conditions, condition_type)
        return cond is not None and cond.is_true

    @property
    def is_peer_ready(self) -> bool:
        return self._condition_true(DRPC_CONDITION_PEER_READY)

    @property
    def is_available(self) -> bool:
        return self._condition_true(DRPC_CONDITION_AVAILABLE)

    def is_action_ready(self, action: DRActionType) -> bool:
        if action == DRActionType.RELOCATE:
            return self.is_peer_ready and self.is_available
        return self.is_peer_ready

    @property
    def last_app_deployment_cluster(self) -> str:
        return self.annotations.get(LAST_APP_DEPLOYMENT_CLUSTER_ANNOTATION, "")

    @property
    def primary_cluster_name(self) -> str:
        if not self.phase:
            return ""
        if self.phase == DRPCPhase.FAILED_OVER.value:
            return self.failover_cluster
        if self.phase == DRPCPhase.RELOCATED.value:
            return self.preferred_cluster
        return self.last_app_deployment_cluster


@dataclass(frozen=True)
class Placement:
    name: str
    namespace: str
    kind: str = PLACEMENT_KIND
    # PlacementRule embeds its decisions; Placement resolves through PlacementDecision.
    decision_clusters: tuple[str, ...] = ()

    @classmethod
    def from_resource(cls, resource: Any, kind: str = PLACEMENT_KIND) -> "Placement":
        meta = _metadata(resource)
        decisions: tuple[str, ...] = ()
        if kind == PLACEMENT_RULE_KIND:
            decisions = _decision_clusters(dig(resource, "status", "decisions"))
        return cls(
            name=_str(meta.get("name")),
            namespace=_str(meta.get("namespace")),
            kind=kind,
            decision_clusters=decisions,
        )

    @property
    def key(self) -> PlacementKey:
        return PlacementKey(self.name, self.namespace, self.kind)


def _decision_clusters(raw: Any) -> tuple[str, ...]:
    return tuple(
        _str(_as_dict(d).get("clusterName")) for d in _as_list(raw) if _str(_as_dict(d).get("clusterName"))
    )


@dataclass(frozen=True)
class PlacementDecision:
    name: str
    namespace: str
    placement_name: str = ""
    placement_kind: str = PLACEMENT_KIND
    decision_clusters: tuple[str, ...] = ()

    @classmethod
    def from_resource(cls, resource: Any) -> "PlacementDecision":
        meta = _metadata(resource)
        labels = _str_map(meta.get("labels"))
        placement_name = labels.get(PLACEMENT_REF_LABEL, "")
        placement_kind = PLACEMENT_KIND
        if not placement_name and labels.get(PLACEMENT_RULE_REF_LABEL):
            placement_name = labels[PLACEMENT_RULE_REF_LABEL]
            placement_kind = PLACEMENT_RULE_KIND
        return cls(
            name=_str(meta.get("name")),
            namespace=_str(meta.get("namespace")),
            placement_name=placement_name,
            placement_kind=placement_kind,
            decision_clusters=_decision_clusters(dig(resource, "status", "decisions")),
        )

    @property
    def placement_key(self) -> PlacementKey | None:
        if not self.placement_name:
            return None
        return PlacementKey(self.placement_name, self.namespace, self.placement_kind)


@dataclass(frozen=True)
class ManagedCluster:
    name: str
    conditions: tuple[Condition, ...] = ()

    @classmethod
    def from_resource(cls, resource: Any) -> "ManagedCluster":
        return cls(
            name=_str(_metadata(resource).get("name")),
            conditions=parse_conditions(dig(resource, "status", "conditions")),
        )

    @property
    def available_condition(self) -> Condition | None:
        return find_condition(self.conditions, MANAGED_CLUSTER_CONDITION_AVAILABLE)

    @property
    def is_available(self) -> bool:
        cond = self.available_condition
        return cond is not None and cond.is_true


@dataclass(frozen=True)
class Subscription:
    name: str
    namespace: str
    labels: dict[str, str] = field(default_factory=dict)
    placement_ref: PlacementKey | None = None

    @classmethod
    def from_resource(cls, resource: Any) -> "Subscription":
        meta = _metadata(resource)
        namespace = _str(meta.get("namespace"))
        return cls(
            name=_str(meta.get("name")),
            namespace=namespace,
            labels=_str_map(meta.get("labels")),
            placement_ref=placement_key_from_ref(dig(resource, "spec", "placement", "placementRef"), namespace),
        )


@dataclass(frozen=True)
class MatchExpression:
    key: str
    operator: str
    values: tuple[str, ...] | None = None


@dataclass(frozen=True)
class Application:
    name: str
    namespace: str
    match_expressions: tuple[MatchExpression, ...] = ()

    @classmethod
    def from_resource(cls, resource: Any) -> "Application":
        meta = _metadata(resource)
        exprs: list[MatchExpression] = []
        for raw in _as_list(dig(resource, "spec", "selector", "matchExpressions")):
            raw = _as_dict(raw)
            values = raw.get("values")
            exprs.append(
                MatchExpression(
                    key=_str(raw.get("key")),
                    operator=_str(raw.get("operator")),
                    values=tuple(_str(v) for v in values) if isinstance(values, list) else None,
                )
            )
        return cls(
            name=_str(meta.get("name")),
            namespace=_str(meta.get("namespace")),
            match_expressions=tuple(exprs),
        )

    def matches(self, subscription: Subscription) -> bool:
        if subscription.namespace != self.namespace or not self.match_expressions:
            return False
        return all(_match_expression(expr, subscription.labels) for expr in self.match_expressions)


def _match_expression(expr: MatchExpression, labels: dict[str, str]) -> bool:
    if expr.operator == "In":
        return expr.key in labels and labels[expr.key] in (expr.values or ())
    if expr.operator == "NotIn":
        return labels.get(expr.key) not in (expr.values or ())
    # Exists/DoesNotExist take no values; an empty list counts as none.
    if expr.operator == "Exists":
        return expr.key in labels and not expr.values
    if expr.operator == "DoesNotExist":
        return expr.key not in labels and not expr.values
    return False


@dataclass(frozen=True)
class ApplicationSet:
    name: str
    namespace: str
    placement_name: str = ""
    destination_namespace: str = ""

    @classmethod
    def from_resource(cls, resource: Any) -> "ApplicationSet":
        meta = _metadata(resource)
        generators = _as_list(dig(resource, "spec", "generators"))
        first = _as_dict(generators[0]) if generators else {}
        placement_name = dig(first, "clusterDecisionResource", "labelSelector", "matchLabels", PLACEMENT_REF_LABEL, default="")
        return cls(
            name=_str(meta.get("name")),
            namespace=_str(meta.get("namespace")),
            placement_name=_str(placement_name),
            destination_namespace=_str(dig(resource, "spec", "template", "spec", "destination", "namespace")),
        )

    @property
    def placement_ref(self) -> PlacementKey | None:
        if not self.placement_name:
            return None
        return PlacementKey(self.placement_name, self.namespace, PLACEMENT_KIND)


@dataclass(frozen=True)
class WorkloadRef:
    """A deployed workload: one Subscription or one ApplicationSet."""

    name: str
    namespace: str
    kind: str
    application_name: str | None = None
    workload_namespace: str = ""


@dataclass(frozen=True)
class ApplicationDRInfo:
    application: WorkloadRef
    placement: Placement
    placement_decision: PlacementDecision | None = None
    deployment_cluster_name: str | None = None
    dr_placement_control: DRPlacementControl | None = None
    dr_policy: DRPolicy | None = None
    dr_clusters: tuple[DRCluster, ...] = ()
    managed_clusters: tuple[ManagedCluster, ...] = ()
    sibling_applications: tuple[WorkloadRef, ...] = ()

    @property
    def is_protected(self) -> bool:
        return self.dr_placement_control is not None

    @property
    def replication_type(self) -> ReplicationType | None:
        return self.dr_policy.replication_type if self.dr_policy is not None else None

    @property
    def are_sibling_applications_found(self) -> bool:
        return bool(self.sibling_applications)

    @property
    def primary_cluster_name(self) -> str | None:
        if self.dr_policy is None or not self.deployment_cluster_name:
            return None
        if self.deployment_cluster_name not in self.dr_policy.dr_cluster_names:
            return None
        return self.deployment_cluster_name

    @property
    def target_cluster_name(self) -> str | None:
        primary = self.primary_cluster_name
        if primary is None:
            return None
        return next((n for n in self.dr_policy.dr_cluster_names if n != primary), None)

    def find_dr_cluster(self, name: str | None) -> DRCluster | None:
        if not name:
            return None
        return next((c for c in self.dr_clusters if c.name == name), None)

    def find_managed_cluster(self, name: str | None) -> ManagedCluster | None:
        if not name:
            return None
        return next((c for c in self.managed_clusters if c.name == name), None)
