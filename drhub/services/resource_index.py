from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Iterable, TypeVar

from drhub.contracts.payloads import ResourceSnapshot, ResourceSnapshots
from drhub.domain.models import (
    PLACEMENT_KIND,
    PLACEMENT_RULE_KIND,
    Application,
    ApplicationSet,
    DRCluster,
    DRPlacementControl,
    DRPolicy,
    ManagedCluster,
    Placement,
    PlacementDecision,
    PlacementKey,
    Subscription,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")
NamespacedMap = dict[str, dict[str, T]]

CLUSTER_SCOPE = ""


def _parse(snapshot: ResourceSnapshot, factory: Callable[[dict], T]) -> list[T]:
    return [factory(item) for item in snapshot.items()]


def _by_namespace(items: Iterable[T]) -> NamespacedMap:
    out: dict[str, dict[str, T]] = defaultdict(dict)
    for item in items:
        name = getattr(item, "name", "")
        if not name:
            continue
        out[getattr(item, "namespace", CLUSTER_SCOPE)][name] = item
    return dict(out)


def _group_by_placement(items: Iterable[T]) -> dict[PlacementKey, list[T]]:
    out: dict[PlacementKey, list[T]] = defaultdict(list)
    for item in items:
        key = getattr(item, "placement_ref", None)
        if key is not None:
            out[key].append(item)
    return {key: sorted(group, key=lambda i: (i.namespace, i.name)) for key, group in out.items()}


@dataclass(frozen=True)
class ResourceIndex:
    loaded: bool = False
    dr_clusters: NamespacedMap = field(default_factory=dict)
    dr_policies: NamespacedMap = field(default_factory=dict)
    managed_clusters: NamespacedMap = field(default_factory=dict)
    dr_placement_controls: NamespacedMap = field(default_factory=dict)
    placements: NamespacedMap = field(default_factory=dict)
    placement_rules: NamespacedMap = field(default_factory=dict)
    placement_decisions: NamespacedMap = field(default_factory=dict)
    subscriptions: NamespacedMap = field(default_factory=dict)
    applications: NamespacedMap = field(default_factory=dict)
    application_sets: NamespacedMap = field(default_factory=dict)
    drpc_by_placement: dict[PlacementKey, DRPlacementControl] = field(default_factory=dict)
    decision_by_placement: dict[PlacementKey, PlacementDecision] = field(default_factory=dict)
    subscriptions_by_placement: dict[PlacementKey, list[Subscription]] = field(default_factory=dict)
    application_sets_by_placement: dict[PlacementKey, list[ApplicationSet]] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "ResourceIndex":
        return cls()

    def placement(self, key: PlacementKey) -> Placement | None:
        source = self.placement_rules if key.kind == PLACEMENT_RULE_KIND else self.placements
        return source.get(key.namespace, {}).get(key.name)

    def dr_policy(self, name: str) -> DRPolicy | None:
        return self.dr_policies.get(CLUSTER_SCOPE, {}).get(name) if name else None

    def dr_cluster(self, name: str) -> DRCluster | None:
        return self.dr_clusters.get(CLUSTER_SCOPE, {}).get(name) if name else None

    def managed_cluster(self, name: str) -> ManagedCluster | None:
        return self.managed_clusters.get(CLUSTER_SCOPE, {}).get(name) if name else None

    def all_dr_clusters(self) -> list[DRCluster]:
        return list(self.dr_clusters.get(CLUSTER_SCOPE, {}).values())

    def all_managed_clusters(self) -> list[ManagedCluster]:
        return list(self.managed_clusters.get(CLUSTER_SCOPE, {}).values())

    def applications_in(self, namespace: str) -> list[Application]:
        return list(self.applications.get(namespace, {}).values())


def build_resource_index(snapshots: ResourceSnapshots) -> ResourceIndex:
    """Build lookup maps from one refresh cycle.

    Returns an empty index unless every input is loaded without error, so a
    stale snapshot of one kind is never joined with a fresh one of another.
    """
    if not snapshots.all_ready():
        logger.debug("resource index pending: %s", ", ".join(snapshots.pending_kinds()))
        return ResourceIndex.empty()

    drpcs = _parse(snapshots.dr_placement_controls, DRPlacementControl.from_resource)
    decisions = _parse(snapshots.placement_decisions, PlacementDecision.from_resource)
    subscriptions = _parse(snapshots.subscriptions, Subscription.from_resource)
    application_sets = _parse(snapshots.application_sets, ApplicationSet.from_resource)

    drpc_by_placement: dict[PlacementKey, DRPlacementControl] = {}
    for drpc in sorted(drpcs, key=lambda d: (d.namespace, d.name)):
        if drpc.placement_ref is not None and drpc.name:
            drpc_by_placement.setdefault(drpc.placement_ref, drpc)

    decision_by_placement: dict[PlacementKey, PlacementDecision] = {}
    for decision in sorted(decisions, key=lambda d: (d.namespace, d.name)):
        key = decision.placement_key
        if key is not None:
            decision_by_placement.setdefault(key, decision)

    index = ResourceIndex(
        loaded=True,
        dr_clusters=_by_namespace(_parse(snapshots.dr_clusters, DRCluster.from_resource)),
        dr_policies=_by_namespace(_parse(snapshots.dr_policies, DRPolicy.from_resource)),
        managed_clusters=_by_namespace(_parse(snapshots.managed_clusters, ManagedCluster.from_resource)),
        dr_placement_controls=_by_namespace(drpcs),
        placements=_by_namespace(
            _parse(snapshots.placements, lambda r: Placement.from_resource(r, PLACEMENT_KIND))
        ),
        placement_rules=_by_namespace(
            _parse(snapshots.placement_rules, lambda r: Placement.from_resource(r, PLACEMENT_RULE_KIND))
        ),
        placement_decisions=_by_namespace(decisions),
        subscriptions=_by_namespace(subscriptions),
        applications=_by_namespace(_parse(snapshots.applications, Application.from_resource)),
        application_sets=_by_namespace(application_sets),
        drpc_by_placement=drpc_by_placement,
        decision_by_placement=decision_by_placement,
        subscriptions_by_placement=_group_by_placement(subscriptions),
        application_sets_by_placement=_group_by_placement(application_sets),
    )
    logger.debug(
        "resource index built: %d subscriptions, %d application sets, %d drpcs",
        len(subscriptions),
        len(application_sets),
        len(drpcs),
    )
    return index
