#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from drhub.domain.states import DRActionType
from drhub.infra.hub_client import HubClient
from drhub.infra.memory_hub import InMemoryHub
from drhub.logging_setup import configure_logging
from drhub.services.dr_service import DRService, describe_application


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Failover/relocate readiness report for DR-protected applications")
    parser.add_argument("--kubeconfig", default=None, help="Hub kubeconfig (defaults to in-cluster, then ~/.kube/config)")
    parser.add_argument("--context", default=None, help="Hub kubeconfig context")
    parser.add_argument(
        "--snapshot-file",
        default=None,
        help="Read resources from a JSON file of {kind_field: [objects]} instead of the hub",
    )
    parser.add_argument("--namespace", default=None, help="Only report applications in this namespace")
    parser.add_argument(
        "--action",
        choices=[a.value for a in DRActionType],
        action="append",
        help="Action(s) to evaluate; defaults to both",
    )
    parser.add_argument("--protected-only", action="store_true", help="Skip applications without a DRPC")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    return parser.parse_args()


def _load_hub(args: argparse.Namespace) -> HubClient | InMemoryHub:
    if args.snapshot_file:
        with open(args.snapshot_file, encoding="utf-8") as fh:
            return InMemoryHub(json.load(fh))
    return HubClient(kubeconfig=args.kubeconfig, context=args.context)


def main() -> None:
    args = parse_args()
    configure_logging(args.log_level)
    service = DRService(hub=_load_hub(args))
    actions = [DRActionType(a) for a in (args.action or [a.value for a in DRActionType])]

    snapshots = service.snapshots()
    if not snapshots.all_ready():
        print(json.dumps({"ready": False, "pending": snapshots.pending_kinds(), "error": snapshots.first_load_error()}, indent=2))
        sys.exit(1)

    report: list[dict[str, Any]] = []
    for info in service.applications(snapshots):
        if args.namespace and info.application.namespace != args.namespace:
            continue
        if args.protected_only and not info.is_protected:
            continue
        row = describe_application(info, service.health(info))
        row["readiness"] = {action.value: service.evaluate(info, action).as_dict() for action in actions}
        report.append(row)

    print(json.dumps({"ready": True, "applications": report}, indent=2))


if __name__ == "__main__":
    main()
