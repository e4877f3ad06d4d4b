from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


ACTION_STARTED = "dr.action.started"
PATCH_SUCCEEDED = "dr.patch.succeeded"
PATCH_FAILED = "dr.patch.failed"
PATCH_SKIPPED = "dr.patch.skipped"
ACTION_FINISHED = "dr.action.finished"
ACTION_FAILED = "dr.action.failed"

EVENT_REQUIRED_KEYS: dict[str, set[str]] = {
    ACTION_STARTED: {"action", "target_cluster", "primary_cluster", "drpcs"},
    PATCH_SUCCEEDED: {"drpc", "namespace"},
    PATCH_FAILED: {"drpc", "namespace", "error"},
    PATCH_SKIPPED: {"drpc", "namespace"},
    ACTION_FINISHED: {"succeeded_count"},
    ACTION_FAILED: {"succeeded_count", "failed_count", "error"},
}

CORE_EVENTS = set(EVENT_REQUIRED_KEYS)


def is_valid_event_type(event_type: str) -> bool:
    return event_type in CORE_EVENTS


def validate_event_payload(event_type: str, payload: dict[str, Any]) -> None:
    if not is_valid_event_type(event_type):
        raise ValueError(f"Unsupported event type: {event_type}")

    missing = sorted(k for k in EVENT_REQUIRED_KEYS[event_type] if k not in payload)
    if missing:
        raise ValueError(f"Event payload missing required keys for {event_type}: {missing}")


def build_event_envelope(
    *,
    event_type: str,
    action: str,
    payload: dict[str, Any],
    correlation_id: str | None = None,
    occurred_at: str | None = None,
) -> dict[str, Any]:
    validate_event_payload(event_type, payload)
    return {
        "event_type": event_type,
        "action": action,
        "payload": payload,
        "correlation_id": correlation_id,
        "occurred_at": occurred_at or datetime.now(timezone.utc).isoformat(),
    }
