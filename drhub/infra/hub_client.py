from __future__ import annotations

import logging
from typing import Any

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from drhub.config import settings
from drhub.contracts.payloads import ResourceSnapshot, ResourceSnapshots
from drhub.infra.resource_models import DR_PLACEMENT_CONTROL, WATCHED_KINDS, ResourceKind


logger = logging.getLogger(__name__)


class HubClientError(RuntimeError):
    pass


def _api_error_text(exc: ApiException) -> str:
    return f"{exc.status} {exc.reason}".strip()


class HubClient:
    """Reads DR resources from the hub cluster and patches DRPCs."""

    def __init__(
        self,
        api: client.CustomObjectsApi | None = None,
        kubeconfig: str | None = None,
        context: str | None = None,
        request_timeout: float | None = None,
    ) -> None:
        self._api = api
        self.kubeconfig = kubeconfig if kubeconfig is not None else settings.kubeconfig
        self.context = context if context is not None else settings.kube_context
        self.request_timeout = request_timeout or settings.request_timeout_seconds

    @property
    def api(self) -> client.CustomObjectsApi:
        if self._api is None:
            self._api = self._connect()
        return self._api

    def _connect(self) -> client.CustomObjectsApi:
        try:
            if self.kubeconfig or self.context:
                config.load_kube_config(config_file=self.kubeconfig or None, context=self.context or None)
            else:
                try:
                    config.load_incluster_config()
                except ConfigException:
                    config.load_kube_config()
        except (ConfigException, OSError) as exc:
            raise HubClientError(f"Failed to load hub cluster config: {exc}") from exc
        return client.CustomObjectsApi()

    def list_kind(self, kind: ResourceKind) -> ResourceSnapshot:
        try:
            resp = self.api.list_cluster_custom_object(
                group=kind.group,
                version=kind.version,
                plural=kind.plural,
                _request_timeout=self.request_timeout,
            )
        except ApiException as exc:
            if exc.status == 404 and kind.optional:
                # CRD not installed on this hub.
                return ResourceSnapshot(data=[], loaded=True)
            logger.warning("failed to list %s: %s", kind.plural, _api_error_text(exc))
            return ResourceSnapshot(data=[], loaded=False, load_error=_api_error_text(exc))
        items = resp.get("items") if isinstance(resp, dict) else None
        return ResourceSnapshot(data=items or [], loaded=True)

    def load_snapshots(self) -> ResourceSnapshots:
        snapshots = {kind.snapshot_field: self.list_kind(kind) for kind in WATCHED_KINDS}
        return ResourceSnapshots(**snapshots)

    def patch_drpc(self, name: str, namespace: str, patch: list[dict[str, Any]]) -> dict[str, Any]:
        # A list body is sent as application/json-patch+json by the client.
        return self.api.patch_namespaced_custom_object(
            group=DR_PLACEMENT_CONTROL.group,
            version=DR_PLACEMENT_CONTROL.version,
            namespace=namespace,
            plural=DR_PLACEMENT_CONTROL.plural,
            name=name,
            body=patch,
            _request_timeout=self.request_timeout,
        )
