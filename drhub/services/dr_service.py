from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from drhub.config import Settings, settings
from drhub.contracts.payloads import ResourceSnapshots
from drhub.domain.messages import ErrorMessageType, can_initiate, error_message
from drhub.domain.models import ApplicationDRInfo, DRPlacementControl
from drhub.domain.states import ActionProgress, DRActionType
from drhub.events.bus import InMemoryEventBus
from drhub.infra.hub_client import HubClient, HubClientError
from drhub.services.action_submitter import ActionSubmitter, BatchResult
from drhub.services.correlation import CorrelationCache, correlate_snapshots
from drhub.services.dashboard_service import (
    ClusterAppsEntry,
    ClusterSummary,
    cluster_apps_map,
    cluster_summary,
    volume_summary,
)
from drhub.services.readiness import validate
from drhub.services.replication_health import CRITICAL_RATIO, WARNING_RATIO, application_health
from drhub.services.resource_index import build_resource_index


logger = logging.getLogger(__name__)


class Hub(Protocol):
    def load_snapshots(self) -> ResourceSnapshots: ...

    def patch_drpc(self, name: str, namespace: str, patch: list[dict[str, Any]]) -> Any: ...


class ActionBlockedError(RuntimeError):
    def __init__(self, code: ErrorMessageType) -> None:
        super().__init__(f"{code.name}: {error_message(code).title}")
        self.code = code


@dataclass(frozen=True)
class ReadinessReport:
    action: DRActionType
    code: ErrorMessageType | None
    title: str
    message: str
    can_initiate: bool

    def as_dict(self) -> dict[str, Any]:
        return {
            "action": self.action.value,
            "code": int(self.code) if self.code is not None else None,
            "name": self.code.name if self.code is not None else None,
            "severity": self.code.severity if self.code is not None else None,
            "can_initiate": self.can_initiate,
            "title": self.title,
            "message": self.message,
        }


def describe_application(info: ApplicationDRInfo, health: str | None = None) -> dict[str, Any]:
    drpc = info.dr_placement_control
    return {
        "name": info.application.name,
        "namespace": info.application.namespace,
        "kind": info.application.kind,
        "application_name": info.application.application_name,
        "placement": info.placement.key.unique_id,
        "deployment_cluster": info.deployment_cluster_name,
        "protected": info.is_protected,
        "drpc": f"{drpc.namespace}/{drpc.name}" if drpc is not None else None,
        "dr_policy": info.dr_policy.name if info.dr_policy is not None else None,
        "replication_type": info.replication_type.value if info.replication_type is not None else None,
        "primary_cluster": info.primary_cluster_name,
        "target_cluster": info.target_cluster_name,
        "sibling_applications": [s.name for s in info.sibling_applications],
        "volume_health": health,
    }


def _match_application(infos: list[ApplicationDRInfo], namespace: str, name: str) -> ApplicationDRInfo:
    in_namespace = [i for i in infos if i.application.namespace == namespace]
    for info in in_namespace:
        if info.application.name == name:
            return info
    for info in in_namespace:
        if info.application.application_name == name:
            return info
    raise LookupError(f"Application not found: {namespace}/{name}")


class DRService:
    def __init__(
        self,
        hub: Hub | None = None,
        cache: CorrelationCache | None = None,
        event_bus: InMemoryEventBus | None = None,
        config: Settings | None = None,
    ) -> None:
        self.hub = hub if hub is not None else HubClient()
        self.config = config or settings
        self.cache = cache or CorrelationCache()
        self.event_bus = event_bus or InMemoryEventBus(max_published=self.config.event_log_size)
        self._submitters: dict[tuple[str, str], ActionSubmitter] = {}

        if self.config.thresholds_valid():
            self.warning_ratio = self.config.sync_delay_warning_ratio
            self.critical_ratio = self.config.sync_delay_critical_ratio
        else:
            logger.warning(
                "ignoring sync delay ratios %s/%s; using %s/%s",
                self.config.sync_delay_warning_ratio,
                self.config.sync_delay_critical_ratio,
                WARNING_RATIO,
                CRITICAL_RATIO,
            )
            self.warning_ratio = WARNING_RATIO
            self.critical_ratio = CRITICAL_RATIO

    def snapshots(self) -> ResourceSnapshots:
        return self.hub.load_snapshots()

    def ready_snapshots(self, snapshots: ResourceSnapshots | None = None) -> ResourceSnapshots:
        """Snapshots for lookups and actions; a hub that is not fully loaded is an error."""
        snapshots = snapshots or self.snapshots()
        if not snapshots.all_ready():
            err = snapshots.first_load_error()
            if err:
                raise HubClientError(f"Hub resources failed to load: {err}")
            raise HubClientError(f"Hub resources still loading: {', '.join(snapshots.pending_kinds())}")
        return snapshots

    def applications(self, snapshots: ResourceSnapshots | None = None) -> list[ApplicationDRInfo]:
        snapshots = snapshots or self.snapshots()
        if not snapshots.all_ready():
            err = snapshots.first_load_error()
            if err:
                logger.warning("hub resources not ready: %s", err)
        return correlate_snapshots(snapshots, self.cache)

    def find_application(
        self,
        namespace: str,
        name: str,
        snapshots: ResourceSnapshots | None = None,
    ) -> ApplicationDRInfo:
        return _match_application(self.applications(self.ready_snapshots(snapshots)), namespace, name)

    def health(self, info: ApplicationDRInfo, now: datetime | None = None) -> str | None:
        value = application_health(info, now=now, warning_ratio=self.warning_ratio, critical_ratio=self.critical_ratio)
        return value.value if value is not None else None

    def evaluate(
        self,
        info: ApplicationDRInfo,
        action: DRActionType | str,
        include_warnings: bool = True,
        block_on_warnings: bool = False,
        now: datetime | None = None,
    ) -> ReadinessReport:
        action = DRActionType(action)
        code = validate(
            info,
            action,
            include_warnings=include_warnings,
            now=now,
            warning_ratio=self.warning_ratio,
            critical_ratio=self.critical_ratio,
        )
        if code is None:
            return ReadinessReport(action=action, code=None, title="", message="", can_initiate=True)
        invalid = info.dr_policy.invalid_condition() if info.dr_policy is not None else None
        text = error_message(code, invalid_dr_policy=invalid)
        return ReadinessReport(
            action=action,
            code=code,
            title=text.title,
            message=text.message,
            can_initiate=can_initiate(code, block_on_warnings=block_on_warnings),
        )

    def readiness(
        self,
        namespace: str,
        name: str,
        action: DRActionType | str,
        include_warnings: bool = True,
        now: datetime | None = None,
    ) -> ReadinessReport:
        info = self.find_application(namespace, name)
        return self.evaluate(info, action, include_warnings=include_warnings, now=now)

    def _batch_drpcs(
        self,
        info: ApplicationDRInfo,
        infos: list[ApplicationDRInfo],
        action: DRActionType,
    ) -> list[DRPlacementControl]:
        # Subscriptions of one Application may sit on several placements under the same policy.
        # A placement joins the batch only when it runs on the same primary and passes its own checks.
        owner = info.application.application_name
        batch = [info.dr_placement_control]
        if not owner or info.dr_policy is None:
            return batch
        for other in infos:
            drpc = other.dr_placement_control
            if (
                drpc is None
                or drpc in batch
                or other.application.namespace != info.application.namespace
                or other.application.application_name != owner
                or other.dr_policy is None
                or other.dr_policy.name != info.dr_policy.name
            ):
                continue
            if other.primary_cluster_name != info.primary_cluster_name:
                logger.info(
                    "leaving drpc %s/%s out of %s: deployed on %s",
                    drpc.namespace,
                    drpc.name,
                    action.value,
                    other.primary_cluster_name,
                )
                continue
            code = validate(
                other,
                action,
                include_warnings=False,
                warning_ratio=self.warning_ratio,
                critical_ratio=self.critical_ratio,
            )
            if code is not None:
                logger.info("leaving drpc %s/%s out of %s: %s", drpc.namespace, drpc.name, action.value, code.name)
                continue
            batch.append(drpc)
        return batch

    def _submitter_for(self, info: ApplicationDRInfo) -> ActionSubmitter:
        key = (info.application.namespace, info.application.name)
        submitter = self._submitters.get(key)
        if submitter is None or submitter.progress == ActionProgress.FINISHED:
            submitter = ActionSubmitter(
                self.hub.patch_drpc,
                event_bus=self.event_bus,
                concurrent=self.config.concurrent_patches(),
                max_workers=self.config.patch_max_workers,
            )
            self._submitters[key] = submitter
        return submitter

    def initiate(
        self,
        namespace: str,
        name: str,
        action: DRActionType | str,
        block_on_warnings: bool = False,
        now: datetime | None = None,
    ) -> BatchResult:
        action = DRActionType(action)
        infos = self.applications(self.ready_snapshots())
        info = _match_application(infos, namespace, name)

        report = self.evaluate(info, action, block_on_warnings=block_on_warnings, now=now)
        if not report.can_initiate:
            raise ActionBlockedError(report.code)

        target = info.target_cluster_name
        primary = info.primary_cluster_name
        if not target or not primary:
            raise ValueError(f"Cannot resolve primary and target clusters for {namespace}/{name}")

        submitter = self._submitter_for(info)
        logger.info("initiating %s for %s/%s: %s -> %s", action.value, namespace, name, primary, target)
        return submitter.submit(self._batch_drpcs(info, infos, action), action, target, primary)

    def cluster_apps(self, snapshots: ResourceSnapshots | None = None) -> dict[str, ClusterAppsEntry]:
        snapshots = snapshots or self.snapshots()
        index = build_resource_index(snapshots)
        return cluster_apps_map(self.applications(snapshots), index.all_dr_clusters(), index.all_managed_clusters())

    def summary(self, now: datetime | None = None) -> dict[str, Any]:
        snapshots = self.snapshots()
        infos = self.applications(snapshots)
        clusters: ClusterSummary = cluster_summary(self.cluster_apps(snapshots))
        return {
            "clusters": {"total": clusters.total_clusters, "with_issues": clusters.clusters_with_issues},
            "applications": {"total": clusters.total_managed_apps, "protected": clusters.protected_apps},
            "volume_health": volume_summary(
                infos, now=now, warning_ratio=self.warning_ratio, critical_ratio=self.critical_ratio
            ),
        }

