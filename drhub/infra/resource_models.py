from __future__ import annotations

from dataclasses import dataclass


RAMEN_GROUP = "ramendr.openshift.io"
OCM_CLUSTER_GROUP = "cluster.open-cluster-management.io"
OCM_APPS_GROUP = "apps.open-cluster-management.io"


@dataclass(frozen=True)
class ResourceKind:
    kind: str
    group: str
    version: str
    plural: str
    # Attribute name on ResourceSnapshots.
    snapshot_field: str
    namespaced: bool = True
    optional: bool = False


DR_CLUSTER = ResourceKind("DRCluster", RAMEN_GROUP, "v1alpha1", "drclusters", "dr_clusters", namespaced=False)
DR_POLICY = ResourceKind("DRPolicy", RAMEN_GROUP, "v1alpha1", "drpolicies", "dr_policies", namespaced=False)
DR_PLACEMENT_CONTROL = ResourceKind(
    "DRPlacementControl", RAMEN_GROUP, "v1alpha1", "drplacementcontrols", "dr_placement_controls"
)
MANAGED_CLUSTER = ResourceKind(
    "ManagedCluster", OCM_CLUSTER_GROUP, "v1", "managedclusters", "managed_clusters", namespaced=False
)
PLACEMENT = ResourceKind("Placement", OCM_CLUSTER_GROUP, "v1beta1", "placements", "placements")
PLACEMENT_DECISION = ResourceKind(
    "PlacementDecision", OCM_CLUSTER_GROUP, "v1beta1", "placementdecisions", "placement_decisions"
)
PLACEMENT_RULE = ResourceKind("PlacementRule", OCM_APPS_GROUP, "v1", "placementrules", "placement_rules")
SUBSCRIPTION = ResourceKind("Subscription", OCM_APPS_GROUP, "v1", "subscriptions", "subscriptions")
APPLICATION = ResourceKind("Application", "app.k8s.io", "v1beta1", "applications", "applications", optional=True)
APPLICATION_SET = ResourceKind(
    "ApplicationSet", "argoproj.io", "v1alpha1", "applicationsets", "application_sets", optional=True
)

WATCHED_KINDS: tuple[ResourceKind, ...] = (
    DR_CLUSTER,
    DR_POLICY,
    DR_PLACEMENT_CONTROL,
    MANAGED_CLUSTER,
    PLACEMENT,
    PLACEMENT_DECISION,
    PLACEMENT_RULE,
    SUBSCRIPTION,
    APPLICATION,
    APPLICATION_SET,
)


def kind_for_field(snapshot_field: str) -> ResourceKind:
    for kind in WATCHED_KINDS:
        if kind.snapshot_field == snapshot_field:
            return kind
    raise LookupError(f"Unknown resource kind: {snapshot_field}")
