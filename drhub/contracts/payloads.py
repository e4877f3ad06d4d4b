from __future__ import annotations

import hashlib
import json
from typing import Any, Literal

from pydantic import BaseModel, Field

from drhub.domain.states import DRActionType


class ResourceSnapshot(BaseModel):
    """One watch result: ``{data, loaded, loadError}`` for a resource kind."""

    data: list[dict[str, Any]] | dict[str, Any] | None = Field(default_factory=list)
    loaded: bool = False
    load_error: str | None = None

    @property
    def ready(self) -> bool:
        return self.loaded and not self.load_error

    def items(self) -> list[dict[str, Any]]:
        if isinstance(self.data, dict):
            return [self.data]
        return [item for item in self.data or [] if isinstance(item, dict)]


def _loaded_empty() -> ResourceSnapshot:
    return ResourceSnapshot(data=[], loaded=True)


REQUIRED_KINDS = (
    "dr_clusters",
    "dr_policies",
    "dr_placement_controls",
    "managed_clusters",
    "placements",
    "placement_decisions",
    "placement_rules",
    "subscriptions",
)


class ResourceSnapshots(BaseModel):
    """Snapshots from a single refresh cycle, one per watched kind."""

    dr_clusters: ResourceSnapshot = Field(default_factory=ResourceSnapshot)
    dr_policies: ResourceSnapshot = Field(default_factory=ResourceSnapshot)
    dr_placement_controls: ResourceSnapshot = Field(default_factory=ResourceSnapshot)
    managed_clusters: ResourceSnapshot = Field(default_factory=ResourceSnapshot)
    placements: ResourceSnapshot = Field(default_factory=ResourceSnapshot)
    placement_decisions: ResourceSnapshot = Field(default_factory=ResourceSnapshot)
    placement_rules: ResourceSnapshot = Field(default_factory=ResourceSnapshot)
    subscriptions: ResourceSnapshot = Field(default_factory=ResourceSnapshot)
    applications: ResourceSnapshot = Field(default_factory=_loaded_empty)
    application_sets: ResourceSnapshot = Field(default_factory=_loaded_empty)

    def all_ready(self) -> bool:
        kinds = REQUIRED_KINDS + ("applications", "application_sets")
        return all(getattr(self, kind).ready for kind in kinds)

    def pending_kinds(self) -> list[str]:
        kinds = REQUIRED_KINDS + ("applications", "application_sets")
        return [kind for kind in kinds if not getattr(self, kind).ready]

    def first_load_error(self) -> str | None:
        for kind in REQUIRED_KINDS + ("applications", "application_sets"):
            err = getattr(self, kind).load_error
            if err:
                return f"{kind}: {err}"
        return None

    def content_hash(self) -> str:
        payload = json.dumps(self.model_dump(mode="json"), sort_keys=True, default=str)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class JsonPatchOperation(BaseModel):
    op: Literal["replace"] = "replace"
    path: str
    value: str


class ActionContract(BaseModel):
    action: DRActionType
    target_cluster: str = Field(min_length=1)
    primary_cluster: str = Field(min_length=1)
    drpcs: list[tuple[str, str]] = Field(default_factory=list)
