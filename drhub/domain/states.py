from __future__ import annotations

from enum import Enum


class DRActionType(str, Enum):
    FAILOVER = "Failover"
    RELOCATE = "Relocate"


class ReplicationType(str, Enum):
    ASYNC = "async"
    SYNC = "sync"


class VolumeReplicationHealth(str, Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"


class DRClusterPhase(str, Enum):
    AVAILABLE = "Available"
    FENCING = "Fencing"
    FENCED = "Fenced"
    UNFENCING = "Unfencing"
    UNFENCED = "Unfenced"


class DRPCPhase(str, Enum):
    DEPLOYING = "Deploying"
    DEPLOYED = "Deployed"
    FAILING_OVER = "FailingOver"
    FAILED_OVER = "FailedOver"
    RELOCATING = "Relocating"
    RELOCATED = "Relocated"
    WAIT_FOR_USER = "WaitForUser"
    DELETING = "Deleting"


IN_FLIGHT_PHASES = {DRPCPhase.FAILING_OVER.value, DRPCPhase.RELOCATING.value}


class ActionProgress(str, Enum):
    INITIAL = "initial"
    IN_PROGRESS = "inProgress"
    FINISHED = "finished"


ALLOWED_TRANSITIONS: dict[ActionProgress, set[ActionProgress]] = {
    ActionProgress.INITIAL: {ActionProgress.IN_PROGRESS},
    # A failed batch returns to INITIAL so the action can be retried by hand.
    ActionProgress.IN_PROGRESS: {ActionProgress.FINISHED, ActionProgress.INITIAL},
    ActionProgress.FINISHED: set(),
}


class PatchOutcome(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
