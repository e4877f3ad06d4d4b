from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from drhub.contracts.payloads import ActionContract, JsonPatchOperation
from drhub.domain.models import DRPlacementControl
from drhub.domain.state_machine import StateMachine
from drhub.domain.states import ActionProgress, DRActionType, PatchOutcome
from drhub.events.bus import InMemoryEventBus
from drhub.events.contracts import (
    ACTION_FAILED,
    ACTION_FINISHED,
    ACTION_STARTED,
    PATCH_FAILED,
    PATCH_SKIPPED,
    PATCH_SUCCEEDED,
    build_event_envelope,
)


logger = logging.getLogger(__name__)

# (name, namespace, json patch) -> anything; raising means the hub rejected it.
Patcher = Callable[[str, str, list[dict[str, Any]]], Any]


class ActionInProgressError(RuntimeError):
    pass


def build_patch(action: DRActionType | str, target_cluster: str, primary_cluster: str) -> list[dict[str, Any]]:
    action = DRActionType(action)
    is_failover = action == DRActionType.FAILOVER
    ops = [
        JsonPatchOperation(path="/spec/action", value=action.value),
        JsonPatchOperation(path="/spec/failoverCluster", value=target_cluster if is_failover else primary_cluster),
        JsonPatchOperation(path="/spec/preferredCluster", value=primary_cluster if is_failover else target_cluster),
    ]
    return [op.model_dump() for op in ops]


@dataclass
class PatchCommand:
    drpc_name: str
    namespace: str
    patch: list[dict[str, Any]]
    outcome: PatchOutcome = PatchOutcome.PENDING
    error: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "drpc_name": self.drpc_name,
            "namespace": self.namespace,
            "outcome": self.outcome.value,
            "error": self.error,
        }


@dataclass
class BatchResult:
    action: DRActionType
    progress: ActionProgress
    commands: list[PatchCommand] = field(default_factory=list)
    error_message: str | None = None

    def _count(self, outcome: PatchOutcome) -> int:
        return sum(1 for c in self.commands if c.outcome == outcome)

    @property
    def succeeded_count(self) -> int:
        return self._count(PatchOutcome.SUCCEEDED)

    @property
    def failed_count(self) -> int:
        return self._count(PatchOutcome.FAILED)

    @property
    def skipped_count(self) -> int:
        return self._count(PatchOutcome.SKIPPED)

    @property
    def succeeded(self) -> bool:
        return self.progress == ActionProgress.FINISHED

    def as_dict(self) -> dict[str, Any]:
        return {
            "action": self.action.value,
            "progress": self.progress.value,
            "succeeded_count": self.succeeded_count,
            "failed_count": self.failed_count,
            "skipped_count": self.skipped_count,
            "error_message": self.error_message,
            "commands": [c.as_dict() for c in self.commands],
        }


def _describe_error(exc: Exception) -> str:
    # ApiException carries the hub's reason; other errors fall back to str().
    reason = getattr(exc, "reason", None)
    status = getattr(exc, "status", None)
    if reason and status:
        return f"{status} {reason}"
    return str(exc) or exc.__class__.__name__


class ActionSubmitter:
    """Applies one failover or relocate action to a batch of DRPCs.

    Patches are not rolled back: when a later patch is rejected, earlier ones
    stay applied and the batch reports the partial result.
    """

    def __init__(
        self,
        patcher: Patcher,
        event_bus: InMemoryEventBus | None = None,
        concurrent: bool = False,
        max_workers: int = 4,
    ) -> None:
        self.patcher = patcher
        self.event_bus = event_bus
        self.concurrent = concurrent
        self.max_workers = max(1, max_workers)
        self.progress = ActionProgress.INITIAL
        self.error_message: str | None = None
        self._machine = StateMachine()
        self._lock = threading.Lock()

    def _transition(self, target: ActionProgress) -> None:
        self.progress = self._machine.transition(self.progress, target)

    def _publish(self, event_type: str, action: DRActionType, payload: dict[str, Any]) -> None:
        if self.event_bus is None:
            return
        envelope = build_event_envelope(event_type=event_type, action=action.value, payload=payload)
        self.event_bus.publish(event_type, envelope)

    def _run(self, command: PatchCommand, action: DRActionType) -> None:
        try:
            self.patcher(command.drpc_name, command.namespace, command.patch)
        except Exception as exc:
            command.outcome = PatchOutcome.FAILED
            command.error = _describe_error(exc)
            logger.warning(
                "patch rejected for drpc %s/%s: %s", command.namespace, command.drpc_name, command.error
            )
            self._publish(
                PATCH_FAILED,
                action,
                {"drpc": command.drpc_name, "namespace": command.namespace, "error": command.error},
            )
            return
        command.outcome = PatchOutcome.SUCCEEDED
        logger.info("patched drpc %s/%s with action %s", command.namespace, command.drpc_name, action.value)
        self._publish(PATCH_SUCCEEDED, action, {"drpc": command.drpc_name, "namespace": command.namespace})

    def _run_sequential(self, commands: list[PatchCommand], action: DRActionType) -> None:
        for i, command in enumerate(commands):
            self._run(command, action)
            if command.outcome == PatchOutcome.FAILED:
                for rest in commands[i + 1:]:
                    rest.outcome = PatchOutcome.SKIPPED
                    self._publish(PATCH_SKIPPED, action, {"drpc": rest.drpc_name, "namespace": rest.namespace})
                return

    def _run_concurrent(self, commands: list[PatchCommand], action: DRActionType) -> None:
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(commands))) as pool:
            list(pool.map(lambda c: self._run(c, action), commands))

    def submit(
        self,
        drpcs: Iterable[DRPlacementControl],
        action: DRActionType | str,
        target_cluster: str,
        primary_cluster: str,
    ) -> BatchResult:
        drpcs = list(drpcs)
        contract = ActionContract(
            action=action,
            target_cluster=target_cluster,
            primary_cluster=primary_cluster,
            drpcs=[(d.namespace, d.name) for d in drpcs],
        )
        if not contract.drpcs:
            raise ValueError("At least one DRPC is required")
        action = contract.action

        with self._lock:
            if self.progress == ActionProgress.IN_PROGRESS:
                raise ActionInProgressError("An action is already in progress for this application")
            self._transition(ActionProgress.IN_PROGRESS)
            self.error_message = None

        patch = build_patch(action, contract.target_cluster, contract.primary_cluster)
        commands = [PatchCommand(drpc_name=name, namespace=ns, patch=list(patch)) for ns, name in contract.drpcs]
        self._publish(
            ACTION_STARTED,
            action,
            {
                "action": action.value,
                "target_cluster": contract.target_cluster,
                "primary_cluster": contract.primary_cluster,
                "drpcs": [f"{ns}/{name}" for ns, name in contract.drpcs],
            },
        )

        if self.concurrent and len(commands) > 1:
            self._run_concurrent(commands, action)
        else:
            self._run_sequential(commands, action)

        result = BatchResult(action=action, progress=self.progress, commands=commands)
        failed = [c for c in commands if c.outcome == PatchOutcome.FAILED]
        with self._lock:
            if failed:
                self.error_message = "; ".join(f"{c.namespace}/{c.drpc_name}: {c.error}" for c in failed)
                self._transition(ActionProgress.INITIAL)
            else:
                self._transition(ActionProgress.FINISHED)
        result.progress = self.progress
        result.error_message = self.error_message

        if failed:
            logger.warning(
                "%s batch failed: %d succeeded, %d failed, %d skipped",
                action.value,
                result.succeeded_count,
                result.failed_count,
                result.skipped_count,
            )
            self._publish(
                ACTION_FAILED,
                action,
                {
                    "succeeded_count": result.succeeded_count,
                    "failed_count": result.failed_count,
                    "error": result.error_message,
                },
            )
        else:
            logger.info("%s batch finished: %d patched", action.value, result.succeeded_count)
            self._publish(ACTION_FINISHED, action, {"succeeded_count": result.succeeded_count})
        return result
