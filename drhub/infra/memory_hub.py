from __future__ import annotations

import copy
from typing import Any

from kubernetes.client.rest import ApiException

from drhub.contracts.payloads import REQUIRED_KINDS, ResourceSnapshot, ResourceSnapshots
from drhub.infra.resource_models import WATCHED_KINDS, kind_for_field


def _apply_replace(resource: dict[str, Any], path: str, value: Any) -> None:
    parts = [p for p in path.split("/") if p]
    if not parts:
        raise ApiException(status=422, reason=f"Invalid patch path: {path!r}")
    target = resource
    for part in parts[:-1]:
        target = target.setdefault(part, {})
    target[parts[-1]] = value


class InMemoryHub:
    """Hub stand-in that serves resources from dicts and records patches."""

    def __init__(self, resources: dict[str, list[dict[str, Any]]] | None = None) -> None:
        self.resources: dict[str, list[dict[str, Any]]] = {kind.snapshot_field: [] for kind in WATCHED_KINDS}
        for field_name, items in (resources or {}).items():
            kind_for_field(field_name)
            self.resources[field_name] = [copy.deepcopy(item) for item in items]
        self.load_errors: dict[str, str] = {}
        self.not_loaded: set[str] = set()
        self.rejections: dict[tuple[str, str], ApiException] = {}
        self.patches: list[tuple[str, str, list[dict[str, Any]]]] = []

    def add(self, field_name: str, *resources: dict[str, Any]) -> None:
        kind_for_field(field_name)
        self.resources[field_name].extend(copy.deepcopy(r) for r in resources)

    def fail_kind(self, field_name: str, message: str) -> None:
        kind_for_field(field_name)
        self.load_errors[field_name] = message

    def reject_patch(self, name: str, namespace: str, status: int = 409, reason: str = "Conflict") -> None:
        self.rejections[(namespace, name)] = ApiException(status=status, reason=reason)

    def load_snapshots(self) -> ResourceSnapshots:
        snapshots: dict[str, ResourceSnapshot] = {}
        for field_name, items in self.resources.items():
            if field_name in self.load_errors:
                snapshots[field_name] = ResourceSnapshot(data=[], loaded=False, load_error=self.load_errors[field_name])
            elif field_name in self.not_loaded and field_name in REQUIRED_KINDS:
                snapshots[field_name] = ResourceSnapshot(data=[], loaded=False)
            else:
                snapshots[field_name] = ResourceSnapshot(data=copy.deepcopy(items), loaded=True)
        return ResourceSnapshots(**snapshots)

    def _find_drpc(self, name: str, namespace: str) -> dict[str, Any] | None:
        for item in self.resources["dr_placement_controls"]:
            meta = item.get("metadata") or {}
            if meta.get("name") == name and meta.get("namespace") == namespace:
                return item
        return None

    def patch_drpc(self, name: str, namespace: str, patch: list[dict[str, Any]]) -> dict[str, Any]:
        rejection = self.rejections.get((namespace, name))
        if rejection is not None:
            raise rejection
        drpc = self._find_drpc(name, namespace)
        if drpc is None:
            raise ApiException(status=404, reason="Not Found")
        for op in patch:
            if op.get("op") != "replace":
                raise ApiException(status=422, reason=f"Unsupported patch op: {op.get('op')!r}")
            _apply_replace(drpc, op["path"], op["value"])
        self.patches.append((name, namespace, copy.deepcopy(patch)))
        return copy.deepcopy(drpc)
