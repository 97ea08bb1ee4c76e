"""Kubernetes access used by the failover engine.

Every mutation is expressed as the merge patch between an observed object and a
modified copy of it.  The observed ``resourceVersion`` is pinned inside the
patch, so writes based on stale reads are rejected by the API server with a
conflict instead of silently overwriting someone else's change.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from kubernetes import client
from kubernetes.client.rest import ApiException

from .deadline import Deadline, timeout_for
from .errors import ClusterAPIError, ConflictError, NotFoundError
from .patches import create_merge_patch

LOG = logging.getLogger(__name__)

SERVICE_TYPE_LOAD_BALANCER = "LoadBalancer"
MERGE_PATCH = "application/merge-patch+json"


def _translate(exc: ApiException, what: str) -> ClusterAPIError:
    status = getattr(exc, "status", None)
    message = f"{what} failed: {exc.reason or exc}"
    if status == 404:
        return NotFoundError(message, status=status)
    if status == 409:
        return ConflictError(message, status=status)
    return ClusterAPIError(message, status=status)


class ClusterClient:
    """Small façade over :class:`kubernetes.client.CoreV1Api`."""

    def __init__(
        self,
        core: client.CoreV1Api,
        api_client: Optional[client.ApiClient] = None,
        timeout: float = 30.0,
    ) -> None:
        self._core = core
        self._api_client = api_client or getattr(core, "api_client", None) or client.ApiClient()
        self._timeout = timeout

    def to_dict(self, obj: Any) -> Dict[str, Any]:
        return self._api_client.sanitize_for_serialization(obj)

    def _diff(self, original: Any, modified: Any) -> Dict[str, Any]:
        return create_merge_patch(self.to_dict(original), self.to_dict(modified))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get_node(self, name: str, deadline: Optional[Deadline] = None) -> client.V1Node:
        timeout = timeout_for(deadline, self._timeout, f"read node {name}")
        try:
            return self._core.read_node(name, _request_timeout=timeout)
        except ApiException as exc:
            raise _translate(exc, f"read node '{name}'") from exc

    def get_service(
        self, name: str, namespace: str, deadline: Optional[Deadline] = None
    ) -> client.V1Service:
        timeout = timeout_for(deadline, self._timeout, f"read service {name}")
        try:
            return self._core.read_namespaced_service(name, namespace, _request_timeout=timeout)
        except ApiException as exc:
            raise _translate(exc, f"read service '{namespace}/{name}'") from exc

    def list_nodes(self, deadline: Optional[Deadline] = None) -> List[client.V1Node]:
        timeout = timeout_for(deadline, self._timeout, "list nodes")
        try:
            return list(self._core.list_node(_request_timeout=timeout).items)
        except ApiException as exc:
            raise _translate(exc, "list nodes") from exc

    def list_services(
        self,
        label_selector: Optional[str] = None,
        deadline: Optional[Deadline] = None,
    ) -> List[client.V1Service]:
        timeout = timeout_for(deadline, self._timeout, "list services")
        kwargs: Dict[str, Any] = {"_request_timeout": timeout}
        if label_selector:
            kwargs["label_selector"] = label_selector
        try:
            return list(self._core.list_service_for_all_namespaces(**kwargs).items)
        except ApiException as exc:
            raise _translate(exc, "list services") from exc

    def list_load_balancer_services(
        self, deadline: Optional[Deadline] = None
    ) -> List[client.V1Service]:
        return [
            service
            for service in self.list_services(deadline=deadline)
            if service.spec is not None and service.spec.type == SERVICE_TYPE_LOAD_BALANCER
        ]

    def list_bound_services(
        self, label: str, node_name: str, deadline: Optional[Deadline] = None
    ) -> List[client.V1Service]:
        return self.list_services(label_selector=f"{label}={node_name}", deadline=deadline)

    def read_config_map(self, name: str, namespace: str) -> client.V1ConfigMap:
        try:
            return self._core.read_namespaced_config_map(
                name, namespace, _request_timeout=self._timeout
            )
        except ApiException as exc:
            raise _translate(exc, f"read configmap '{namespace}/{name}'") from exc

    def read_secret(self, name: str, namespace: str) -> client.V1Secret:
        try:
            return self._core.read_namespaced_secret(
                name, namespace, _request_timeout=self._timeout
            )
        except ApiException as exc:
            raise _translate(exc, f"read secret '{namespace}/{name}'") from exc

    # ------------------------------------------------------------------
    # Patches
    # ------------------------------------------------------------------
    def patch_service(
        self,
        original: client.V1Service,
        modified: client.V1Service,
        deadline: Optional[Deadline] = None,
    ) -> client.V1Service:
        """Patch ``original`` into ``modified`` (object and status)."""

        name = original.metadata.name
        namespace = original.metadata.namespace
        patch = self._diff(original, modified)
        status_patch = patch.pop("status", None)
        current = original

        if patch:
            patch.setdefault("metadata", {})["resourceVersion"] = original.metadata.resource_version
            timeout = timeout_for(deadline, self._timeout, f"patch service {name}")
            LOG.debug("Patching service %s/%s: %s", namespace, name, patch)
            try:
                current = self._core.patch_namespaced_service(
                    name, namespace, patch, _request_timeout=timeout, _content_type=MERGE_PATCH
                )
            except ApiException as exc:
                raise _translate(exc, f"patch service '{namespace}/{name}'") from exc

        if status_patch:
            body = {
                "metadata": {"resourceVersion": current.metadata.resource_version},
                "status": status_patch,
            }
            timeout = timeout_for(deadline, self._timeout, f"patch service status {name}")
            LOG.debug("Patching service status %s/%s: %s", namespace, name, status_patch)
            try:
                current = self._core.patch_namespaced_service_status(
                    name, namespace, body, _request_timeout=timeout, _content_type=MERGE_PATCH
                )
            except ApiException as exc:
                raise _translate(exc, f"patch service status '{namespace}/{name}'") from exc
        return current

    def patch_node(
        self,
        original: client.V1Node,
        modified: client.V1Node,
        deadline: Optional[Deadline] = None,
    ) -> client.V1Node:
        """Patch ``original`` into ``modified`` (object and status)."""

        name = original.metadata.name
        patch = self._diff(original, modified)
        status_patch = patch.pop("status", None)
        current = original

        if patch:
            patch.setdefault("metadata", {})["resourceVersion"] = original.metadata.resource_version
            timeout = timeout_for(deadline, self._timeout, f"patch node {name}")
            LOG.debug("Patching node %s: %s", name, patch)
            try:
                current = self._core.patch_node(
                    name, patch, _request_timeout=timeout, _content_type=MERGE_PATCH
                )
            except ApiException as exc:
                raise _translate(exc, f"patch node '{name}'") from exc

        if status_patch:
            body = {
                "metadata": {"resourceVersion": current.metadata.resource_version},
                "status": status_patch,
            }
            timeout = timeout_for(deadline, self._timeout, f"patch node status {name}")
            try:
                current = self._core.patch_node_status(
                    name, body, _request_timeout=timeout, _content_type=MERGE_PATCH
                )
            except ApiException as exc:
                raise _translate(exc, f"patch node status '{name}'") from exc
        return current
