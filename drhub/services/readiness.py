from __future__ import annotations

from datetime import datetime
from typing import Callable

from drhub.domain.messages import ErrorMessageType
from drhub.domain.models import ApplicationDRInfo
from drhub.domain.states import DRActionType, ReplicationType, VolumeReplicationHealth
from drhub.services.replication_health import CRITICAL_RATIO, WARNING_RATIO, application_health


class ReadinessContext:
    """Per-call inputs shared by the predicates of one validation run."""

    def __init__(
        self,
        info: ApplicationDRInfo,
        action: DRActionType,
        now: datetime | None = None,
        warning_ratio: float = WARNING_RATIO,
        critical_ratio: float = CRITICAL_RATIO,
    ) -> None:
        self.info = info
        self.action = action
        self.now = now
        self.warning_ratio = warning_ratio
        self.critical_ratio = critical_ratio

    @property
    def is_sync(self) -> bool:
        return self.info.replication_type == ReplicationType.SYNC

    def cluster_available(self, name: str | None) -> bool:
        cluster = self.info.find_managed_cluster(name)
        return cluster is not None and cluster.is_available

    def cluster_fenced(self, name: str | None) -> bool:
        cluster = self.info.find_dr_cluster(name)
        return cluster is not None and cluster.is_fenced


# A predicate returns True when its check fails.
Predicate = Callable[[ReadinessContext], bool]


def _policy_invalid(ctx: ReadinessContext) -> bool:
    policy = ctx.info.dr_policy
    return policy is not None and policy.invalid_condition() is not None


def _dr_not_enabled(ctx: ReadinessContext) -> bool:
    return ctx.info.dr_placement_control is None or ctx.info.dr_policy is None


def _drpc_not_ready(ctx: ReadinessContext) -> bool:
    return not ctx.info.dr_placement_control.is_action_ready(ctx.action)


def _target_unavailable(ctx: ReadinessContext) -> bool:
    return not ctx.cluster_available(ctx.info.target_cluster_name)


def _primary_not_fenced(ctx: ReadinessContext) -> bool:
    return ctx.is_sync and not ctx.cluster_fenced(ctx.info.primary_cluster_name)


def _target_fenced(ctx: ReadinessContext) -> bool:
    return ctx.is_sync and ctx.cluster_fenced(ctx.info.target_cluster_name)


def _clusters_down(ctx: ReadinessContext) -> bool:
    info = ctx.info
    return not (ctx.cluster_available(info.primary_cluster_name) and ctx.cluster_available(info.target_cluster_name))


def _some_clusters_fenced(ctx: ReadinessContext) -> bool:
    info = ctx.info
    return ctx.is_sync and (
        ctx.cluster_fenced(info.primary_cluster_name) or ctx.cluster_fenced(info.target_cluster_name)
    )


def _volume_sync_delayed(ctx: ReadinessContext) -> bool:
    health = application_health(
        ctx.info,
        now=ctx.now,
        warning_ratio=ctx.warning_ratio,
        critical_ratio=ctx.critical_ratio,
    )
    return health is not None and health != VolumeReplicationHealth.HEALTHY


def _siblings_found(ctx: ReadinessContext) -> bool:
    return ctx.info.are_sibling_applications_found


FAILOVER_CHECKS: list[tuple[Predicate, ErrorMessageType]] = [
    (_policy_invalid, ErrorMessageType.DR_IS_INVALID),
    (_dr_not_enabled, ErrorMessageType.DR_IS_NOT_ENABLED_FAILOVER),
    (_drpc_not_ready, ErrorMessageType.FAILOVER_READINESS_CHECK_FAILED),
    (_target_unavailable, ErrorMessageType.TARGET_CLUSTER_IS_NOT_AVAILABLE),
    (_primary_not_fenced, ErrorMessageType.PRIMARY_CLUSTER_IS_NOT_FENCED),
    (_target_fenced, ErrorMessageType.TARGET_CLUSTER_IS_FENCED),
    (_volume_sync_delayed, ErrorMessageType.VOLUME_SYNC_DELAY_FAILOVER),
    (_siblings_found, ErrorMessageType.SIBLING_APPLICATIONS_FOUND_FAILOVER),
]

RELOCATE_CHECKS: list[tuple[Predicate, ErrorMessageType]] = [
    (_policy_invalid, ErrorMessageType.DR_IS_INVALID),
    (_dr_not_enabled, ErrorMessageType.DR_IS_NOT_ENABLED_RELOCATE),
    (_drpc_not_ready, ErrorMessageType.RELOCATE_READINESS_CHECK_FAILED),
    (_clusters_down, ErrorMessageType.MANAGED_CLUSTERS_ARE_DOWN),
    (_some_clusters_fenced, ErrorMessageType.SOME_CLUSTERS_ARE_FENCED),
    (_volume_sync_delayed, ErrorMessageType.VOLUME_SYNC_DELAY_RELOCATE),
    (_siblings_found, ErrorMessageType.SIBLING_APPLICATIONS_FOUND_RELOCATE),
]


def checks_for(action: DRActionType) -> list[tuple[Predicate, ErrorMessageType]]:
    if action == DRActionType.RELOCATE:
        return RELOCATE_CHECKS
    return FAILOVER_CHECKS


def validate(
    info: ApplicationDRInfo,
    action: DRActionType,
    include_warnings: bool = True,
    now: datetime | None = None,
    warning_ratio: float = WARNING_RATIO,
    critical_ratio: float = CRITICAL_RATIO,
) -> ErrorMessageType | None:
    """Return the first failing check for ``action``, or None when all pass.

    Earlier entries mask later ones. Advisory checks are skipped entirely when
    ``include_warnings`` is false.
    """
    action = DRActionType(action)
    ctx = ReadinessContext(info, action, now=now, warning_ratio=warning_ratio, critical_ratio=critical_ratio)
    for predicate, code in checks_for(action):
        if not include_warnings and not code.is_blocking:
            continue
        if predicate(ctx):
            return code
    return None

