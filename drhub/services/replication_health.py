from __future__ import annotations

import re
from datetime import datetime, timezone

from drhub.domain.models import ApplicationDRInfo
from drhub.domain.states import ReplicationType, VolumeReplicationHealth


# elapsed / interval below WARNING_RATIO is healthy, below CRITICAL_RATIO a warning.
WARNING_RATIO = 1.0
CRITICAL_RATIO = 2.0

_INTERVAL_RE = re.compile(r"^\s*(-?\d+)\s*([mhd])\s*$")
_UNIT_SECONDS = {"m": 60, "h": 3600, "d": 86400}


def parse_sync_interval(interval: str | None) -> tuple[int, str] | None:
    """Split a scheduling interval such as ``5m`` or ``1h`` into (value, unit)."""
    if not isinstance(interval, str):
        return None
    match = _INTERVAL_RE.match(interval)
    if not match:
        return None
    return int(match.group(1)), match.group(2)


def sync_interval_seconds(interval: str | None) -> int | None:
    parsed = parse_sync_interval(interval)
    if parsed is None:
        return None
    value, unit = parsed
    if value <= 0:
        return None
    return value * _UNIT_SECONDS[unit]


def parse_timestamp(value: str | None) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def replication_health(
    last_sync_time: str | None,
    scheduling_interval: str | None,
    replication_type: ReplicationType | str | None,
    now: datetime | None = None,
    warning_ratio: float = WARNING_RATIO,
    critical_ratio: float = CRITICAL_RATIO,
) -> VolumeReplicationHealth:
    if replication_type == ReplicationType.SYNC:
        return VolumeReplicationHealth.HEALTHY

    last_sync = parse_timestamp(last_sync_time)
    interval = sync_interval_seconds(scheduling_interval)
    if last_sync is None or interval is None:
        return VolumeReplicationHealth.CRITICAL

    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    ratio = (now - last_sync).total_seconds() / interval

    if ratio < warning_ratio:
        return VolumeReplicationHealth.HEALTHY
    if ratio < critical_ratio:
        return VolumeReplicationHealth.WARNING
    return VolumeReplicationHealth.CRITICAL


def application_health(
    info: ApplicationDRInfo,
    now: datetime | None = None,
    warning_ratio: float = WARNING_RATIO,
    critical_ratio: float = CRITICAL_RATIO,
) -> VolumeReplicationHealth | None:
    """Health of a protected application's volumes; None when unprotected."""
    drpc = info.dr_placement_control
    policy = info.dr_policy
    if drpc is None or policy is None:
        return None
    return replication_health(
        drpc.last_group_sync_time,
        policy.scheduling_interval,
        policy.replication_type,
        now=now,
        warning_ratio=warning_ratio,
        critical_ratio=critical_ratio,
    )
