from __future__ import annotations

import logging
from collections import OrderedDict, defaultdict
from typing import Callable

from drhub.contracts.payloads import ResourceSnapshots
from drhub.domain.models import (
    APPLICATION_SET_KIND,
    SUBSCRIPTION_KIND,
    ApplicationDRInfo,
    ApplicationSet,
    DRPlacementControl,
    Placement,
    PlacementKey,
    Subscription,
    WorkloadRef,
)
from drhub.services.resource_index import ResourceIndex, build_resource_index


logger = logging.getLogger(__name__)


def _owning_application(index: ResourceIndex, subscription: Subscription) -> str | None:
    for app in sorted(index.applications_in(subscription.namespace), key=lambda a: a.name):
        if app.matches(subscription):
            return app.name
    return None


def _subscription_ref(index: ResourceIndex, subscription: Subscription) -> WorkloadRef:
    return WorkloadRef(
        name=subscription.name,
        namespace=subscription.namespace,
        kind=SUBSCRIPTION_KIND,
        application_name=_owning_application(index, subscription),
        workload_namespace=subscription.namespace,
    )


def _application_set_ref(app_set: ApplicationSet) -> WorkloadRef:
    return WorkloadRef(
        name=app_set.name,
        namespace=app_set.namespace,
        kind=APPLICATION_SET_KIND,
        application_name=app_set.name,
        workload_namespace=app_set.destination_namespace or app_set.namespace,
    )


def _workloads_by_placement(index: ResourceIndex) -> dict[PlacementKey, list[WorkloadRef]]:
    out: dict[PlacementKey, list[WorkloadRef]] = defaultdict(list)
    for key, subscriptions in index.subscriptions_by_placement.items():
        out[key].extend(_subscription_ref(index, sub) for sub in subscriptions)
    for key, app_sets in index.application_sets_by_placement.items():
        out[key].extend(_application_set_ref(app_set) for app_set in app_sets)
    return out


def find_deployment_cluster(
    index: ResourceIndex,
    placement: Placement,
    drpc: DRPlacementControl | None,
) -> str | None:
    """Current deployment cluster, or None when nothing says where the app runs."""
    decision = index.decision_by_placement.get(placement.key)
    clusters = decision.decision_clusters if decision is not None else ()
    if not clusters:
        clusters = placement.decision_clusters
    if clusters:
        return clusters[0]
    # Placement scheduling is paused under DR; the DRPC remembers the cluster.
    if drpc is not None and drpc.primary_cluster_name:
        return drpc.primary_cluster_name
    return None


def _build_info(
    index: ResourceIndex,
    key: PlacementKey,
    workload: WorkloadRef,
    siblings: list[WorkloadRef],
) -> ApplicationDRInfo | None:
    placement = index.placement(key)
    if placement is None:
        return None

    drpc = index.drpc_by_placement.get(key)
    policy = index.dr_policy(drpc.dr_policy_name) if drpc is not None else None
    policy_clusters = policy.dr_cluster_names if policy is not None else ()
    dr_clusters = tuple(c for c in (index.dr_cluster(n) for n in policy_clusters) if c is not None)
    managed_clusters = tuple(c for c in (index.managed_cluster(n) for n in policy_clusters) if c is not None)

    return ApplicationDRInfo(
        application=workload,
        placement=placement,
        placement_decision=index.decision_by_placement.get(key),
        deployment_cluster_name=find_deployment_cluster(index, placement, drpc),
        dr_placement_control=drpc,
        dr_policy=policy,
        dr_clusters=dr_clusters,
        managed_clusters=managed_clusters,
        sibling_applications=tuple(s for s in siblings if s != workload),
    )


def correlate(index: ResourceIndex) -> list[ApplicationDRInfo]:
    """Join the index into one record per deployed workload.

    Workloads whose placement does not resolve are dropped. A workload with no
    DRPC on its placement is kept as an unprotected record.
    """
    if not index.loaded:
        return []

    infos: list[ApplicationDRInfo] = []
    dropped = 0
    for key, workloads in sorted(_workloads_by_placement(index).items()):
        for workload in workloads:
            info = _build_info(index, key, workload, workloads)
            if info is None:
                dropped += 1
                continue
            infos.append(info)

    logger.debug(
        "correlated %d workloads (%d protected, %d dropped for unresolved placement)",
        len(infos),
        sum(1 for info in infos if info.is_protected),
        dropped,
    )
    return infos


class CorrelationCache:
    """Memoizes correlation results by snapshot content hash."""

    def __init__(self, max_entries: int = 4) -> None:
        self.max_entries = max(1, max_entries)
        self._entries: OrderedDict[str, list[ApplicationDRInfo]] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get_or_compute(
        self,
        snapshots: ResourceSnapshots,
        compute: Callable[[ResourceSnapshots], list[ApplicationDRInfo]],
    ) -> list[ApplicationDRInfo]:
        key = snapshots.content_hash()
        if key in self._entries:
            self.hits += 1
            self._entries.move_to_end(key)
            return list(self._entries[key])

        self.misses += 1
        value = compute(snapshots)
        self._entries[key] = value
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
        return list(value)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def correlate_snapshots(
    snapshots: ResourceSnapshots,
    cache: CorrelationCache | None = None,
) -> list[ApplicationDRInfo]:
    def compute(bundle: ResourceSnapshots) -> list[ApplicationDRInfo]:
        return correlate(build_resource_index(bundle))

    if cache is None:
        return compute(snapshots)
    return cache.get_or_compute(snapshots, compute)
