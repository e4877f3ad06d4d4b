from __future__ import annotations

from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Iterable

from drhub.domain.models import ApplicationDRInfo, DRCluster, DRPlacementControl, ManagedCluster
from drhub.domain.states import IN_FLIGHT_PHASES, VolumeReplicationHealth
from drhub.services.replication_health import CRITICAL_RATIO, WARNING_RATIO, application_health


@dataclass(frozen=True)
class PlacementControlInfo:
    drpc_name: str
    drpc_namespace: str
    replication_type: str
    sync_interval: str
    failover_cluster: str
    preferred_cluster: str
    last_group_sync_time: str | None
    phase: str
    protected_pvcs: tuple[str, ...] = ()


@dataclass(frozen=True)
class ProtectedAppInfo:
    app_name: str
    app_namespace: str
    app_kind: str
    placement_control_info: tuple[PlacementControlInfo, ...] = ()
    status: str = ""


@dataclass
class ClusterAppsEntry:
    dr_cluster_name: str
    managed_cluster: ManagedCluster | None = None
    total_managed_apps_count: int = 0
    protected_apps: list[ProtectedAppInfo] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        mc = self.managed_cluster
        return {
            "dr_cluster_name": self.dr_cluster_name,
            "managed_cluster": mc.name if mc is not None else None,
            "managed_cluster_available": mc.is_available if mc is not None else False,
            "total_managed_apps_count": self.total_managed_apps_count,
            "protected_apps": [
                {
                    "app_name": app.app_name,
                    "app_namespace": app.app_namespace,
                    "app_kind": app.app_kind,
                    "status": app.status,
                    "placement_control_info": [asdict(p) for p in app.placement_control_info],
                }
                for app in self.protected_apps
            ],
        }


@dataclass(frozen=True)
class ClusterSummary:
    total_clusters: int
    clusters_with_issues: int
    total_managed_apps: int
    protected_apps: int


def _placement_control_info(info: ApplicationDRInfo) -> PlacementControlInfo:
    drpc = info.dr_placement_control
    policy = info.dr_policy
    return PlacementControlInfo(
        drpc_name=drpc.name,
        drpc_namespace=drpc.namespace,
        replication_type=policy.replication_type.value if policy is not None else "",
        sync_interval=policy.scheduling_interval if policy is not None else "",
        failover_cluster=drpc.failover_cluster,
        preferred_cluster=drpc.preferred_cluster,
        last_group_sync_time=drpc.last_group_sync_time,
        phase=drpc.phase,
        protected_pvcs=drpc.protected_pvcs,
    )


def cluster_apps_map(
    infos: Iterable[ApplicationDRInfo],
    dr_clusters: Iterable[DRCluster],
    managed_clusters: Iterable[ManagedCluster],
) -> dict[str, ClusterAppsEntry]:
    """Group workloads by the DR cluster they are currently deployed on."""
    managed_by_name = {mc.name: mc for mc in managed_clusters}
    out = {
        dc.name: ClusterAppsEntry(dr_cluster_name=dc.name, managed_cluster=managed_by_name.get(dc.name))
        for dc in dr_clusters
        if dc.name
    }
    for info in infos:
        entry = out.get(info.deployment_cluster_name or "")
        if entry is None:
            continue
        entry.total_managed_apps_count += 1
        if info.is_protected:
            entry.protected_apps.append(
                ProtectedAppInfo(
                    app_name=info.application.name,
                    app_namespace=info.application.namespace,
                    app_kind=info.application.kind,
                    placement_control_info=(_placement_control_info(info),),
                    status=current_status([info.dr_placement_control]),
                )
            )
    return out


def cluster_summary(apps_map: dict[str, ClusterAppsEntry]) -> ClusterSummary:
    entries = list(apps_map.values())
    return ClusterSummary(
        total_clusters=len(entries),
        clusters_with_issues=sum(
            1 for e in entries if e.managed_cluster is None or not e.managed_cluster.is_available
        ),
        total_managed_apps=sum(e.total_managed_apps_count for e in entries),
        protected_apps=sum(len(e.protected_apps) for e in entries),
    )


def volume_summary(
    infos: Iterable[ApplicationDRInfo],
    now: datetime | None = None,
    warning_ratio: float = WARNING_RATIO,
    critical_ratio: float = CRITICAL_RATIO,
) -> dict[str, int]:
    counts: Counter[str] = Counter({h.value: 0 for h in VolumeReplicationHealth})
    for info in infos:
        health = application_health(info, now=now, warning_ratio=warning_ratio, critical_ratio=critical_ratio)
        if health is not None:
            counts[health.value] += 1
    return dict(counts)


def current_status(drpcs: Iterable[DRPlacementControl]) -> str:
    """Phase to show for a group of DRPCs; an in-flight action wins."""
    phases = [d.phase for d in drpcs if d.phase]
    for phase in phases:
        if phase in IN_FLIGHT_PHASES:
            return phase
    return phases[0] if phases else ""
