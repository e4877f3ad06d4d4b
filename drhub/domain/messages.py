from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from drhub.domain.models import Condition


WARNING_CODE_START = 20


class ErrorMessageType(IntEnum):
    DR_IS_NOT_ENABLED_FAILOVER = 1
    DR_IS_NOT_ENABLED_RELOCATE = 2
    DR_IS_INVALID = 3
    FAILOVER_READINESS_CHECK_FAILED = 4
    RELOCATE_READINESS_CHECK_FAILED = 5
    MANAGED_CLUSTERS_ARE_DOWN = 6
    TARGET_CLUSTER_IS_NOT_AVAILABLE = 7
    SOME_CLUSTERS_ARE_FENCED = 8
    PRIMARY_CLUSTER_IS_NOT_FENCED = 9
    TARGET_CLUSTER_IS_FENCED = 10
    # Advisory codes start at WARNING_CODE_START.
    SIBLING_APPLICATIONS_FOUND_FAILOVER = 20
    SIBLING_APPLICATIONS_FOUND_RELOCATE = 21
    VOLUME_SYNC_DELAY_FAILOVER = 22
    VOLUME_SYNC_DELAY_RELOCATE = 23

    @property
    def is_blocking(self) -> bool:
        return self.value < WARNING_CODE_START

    @property
    def severity(self) -> str:
        return "danger" if self.is_blocking else "warning"


def evaluate_error_message(code: ErrorMessageType | int | None, include_warning: bool = False) -> int:
    """Return the code when it should be surfaced, otherwise -1.

    Without ``include_warning`` only blocking codes (< 20) are surfaced.
    """
    if not code:
        return -1
    if include_warning or int(code) < WARNING_CODE_START:
        return int(code)
    return -1


def can_initiate(code: ErrorMessageType | int | None, block_on_warnings: bool = False) -> bool:
    return evaluate_error_message(code, include_warning=block_on_warnings) < 0


@dataclass(frozen=True)
class MessageKind:
    title: str
    message: str
    variant: str


_VOLUME_SYNC_DELAY_TEXT = (
    "One or more volumes for this application may not be replicating at all or replication is "
    "taking longer than the replication interval as defined in the assigned data policy. If either "
    "managed cluster's replication services are offline or unreachable, this is an expected condition."
)

_MESSAGES: dict[ErrorMessageType, tuple[str, str]] = {
    ErrorMessageType.DR_IS_NOT_ENABLED_FAILOVER: (
        "No DRPolicy found.",
        "To failover, your application must have a DR policy associated with it. "
        "Check for an active DRPolicy and try again.",
    ),
    ErrorMessageType.DR_IS_NOT_ENABLED_RELOCATE: (
        "No DRPolicy found.",
        "To relocate, your application must have a DR policy associated with it. "
        "Check for an active DRPolicy and try again.",
    ),
    ErrorMessageType.DR_IS_INVALID: (
        "Invalid DR Policy",
        "The DR Policy validation failed",
    ),
    ErrorMessageType.FAILOVER_READINESS_CHECK_FAILED: (
        "Cannot failover.",
        "Failover cannot be initiated as the readiness checks are failing.",
    ),
    ErrorMessageType.RELOCATE_READINESS_CHECK_FAILED: (
        "Cannot relocate.",
        "Relocation cannot be initiated as the readiness checks are failing.",
    ),
    ErrorMessageType.MANAGED_CLUSTERS_ARE_DOWN: (
        "1 or more managed clusters are offline.",
        "The status for both the primary and target clusters must be available for relocating. "
        "Check the status and try again.",
    ),
    ErrorMessageType.TARGET_CLUSTER_IS_NOT_AVAILABLE: (
        "Target cluster is offline.",
        "To begin failover, the target cluster must be available. Check the status and try again.",
    ),
    ErrorMessageType.SOME_CLUSTERS_ARE_FENCED: (
        "Some clusters are fenced.",
        "Check the fencing status for your primary and target cluster. "
        "Both clusters should be unfenced for initiating relocation.",
    ),
    ErrorMessageType.PRIMARY_CLUSTER_IS_NOT_FENCED: (
        "Primary cluster is unfenced.",
        "The status for your primary cluster must be fenced for initiating failover. "
        "Check the status and try again.",
    ),
    ErrorMessageType.TARGET_CLUSTER_IS_FENCED: (
        "Target cluster is fenced.",
        "The status for your target cluster must be unfenced for initiating failover. "
        "Check the status and try again.",
    ),
    ErrorMessageType.SIBLING_APPLICATIONS_FOUND_FAILOVER: (
        "Other applications may be affected.",
        "This application uses placement that are also used by other applications. Failing over "
        "will automatically trigger a failover for other applications sharing the same placement.",
    ),
    ErrorMessageType.SIBLING_APPLICATIONS_FOUND_RELOCATE: (
        "Other applications may be affected.",
        "This application uses placement that are also used by other applications. Relocating "
        "will automatically trigger a relocate for other applications sharing the same placement.",
    ),
    ErrorMessageType.VOLUME_SYNC_DELAY_FAILOVER: ("Inconsistent data on target cluster", _VOLUME_SYNC_DELAY_TEXT),
    ErrorMessageType.VOLUME_SYNC_DELAY_RELOCATE: ("Inconsistent data on target cluster", _VOLUME_SYNC_DELAY_TEXT),
}


def error_message(code: ErrorMessageType, invalid_dr_policy: Condition | None = None) -> MessageKind:
    title, message = _MESSAGES[code]
    if code == ErrorMessageType.DR_IS_INVALID and invalid_dr_policy is not None:
        title = invalid_dr_policy.reason or title
        message = invalid_dr_policy.message or message
    return MessageKind(title=title, message=message, variant=code.severity)
