"""Controllers turning cluster events into cloud provider calls."""

from __future__ import annotations

import copy
import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from kubernetes import client

from nc_failover.cluster import ClusterClient
from nc_failover.deadline import Deadline
from nc_failover.errors import NotFoundError
from nc_failover.interfaces import Instances, LoadBalancer

LOG = logging.getLogger(__name__)


class CloudController(ABC):
    """Base class for controllers managed by :class:`ControllerRegistry`."""

    @abstractmethod
    def on_service_upsert(self, service: client.V1Service, nodes: Sequence[client.V1Node]) -> None:
        """Reconcile ``service`` against the current ``nodes``."""

    @abstractmethod
    def on_service_delete(self, service: client.V1Service) -> None:
        """Release anything held for ``service``."""

    @abstractmethod
    def on_node_refresh(self, node: client.V1Node) -> None:
        """Check the server backing ``node``."""


def _ingress(status: Optional[client.V1LoadBalancerStatus]) -> list:
    if status is None:
        return []
    return [entry.ip for entry in status.ingress or []]


class FailoverController(CloudController):
    """Drive the failover load balancer and instance callbacks.

    Plays the part of the Kubernetes service and node controllers: it writes
    the returned ingress into the service status and the instance metadata
    into the node.
    """

    def __init__(
        self,
        load_balancer: LoadBalancer,
        instances: Instances,
        cluster: ClusterClient,
        timeout: float = 60.0,
    ) -> None:
        self._load_balancer = load_balancer
        self._instances = instances
        self._cluster = cluster
        self._timeout = timeout

    def on_service_upsert(self, service: client.V1Service, nodes: Sequence[client.V1Node]) -> None:
        deadline = Deadline.after(self._timeout)
        meta = service.metadata
        try:
            # Node refreshes of the same poll may have released it already.
            service = self._cluster.get_service(meta.name, meta.namespace, deadline)
        except NotFoundError:
            LOG.debug("Service %s/%s is gone, skipping", meta.namespace, meta.name)
            return
        status = self._load_balancer.ensure_load_balancer(service, nodes, deadline)
        if status is None:
            return

        current = self._cluster.get_service(meta.name, meta.namespace, deadline)
        observed = current.status.load_balancer if current.status else None
        if _ingress(observed) == _ingress(status):
            return
        changes = copy.deepcopy(current)
        if changes.status is None:
            changes.status = client.V1ServiceStatus()
        changes.status.load_balancer = status
        self._cluster.patch_service(current, changes, deadline)
        LOG.info(
            "Service '%s/%s' ingress set to %s", meta.namespace, meta.name, _ingress(status)
        )

    def on_service_delete(self, service: client.V1Service) -> None:
        deadline = Deadline.after(self._timeout)
        meta = service.metadata
        try:
            service = self._cluster.get_service(meta.name, meta.namespace, deadline)
        except NotFoundError:
            LOG.debug("Service %s/%s is gone, releasing last known binding", meta.namespace, meta.name)
        self._load_balancer.ensure_load_balancer_deleted(service, deadline)

    def on_node_refresh(self, node: client.V1Node) -> None:
        deadline = Deadline.after(self._timeout)
        if not self._instances.instance_exists(node, deadline):
            return
        if self._instances.instance_shutdown(node, deadline):
            return

        metadata = self._instances.instance_metadata(node, deadline)
        changes = copy.deepcopy(node)
        if changes.spec is None:
            changes.spec = client.V1NodeSpec()
        if not changes.spec.provider_id:
            changes.spec.provider_id = metadata.provider_id
        if changes.status is None:
            changes.status = client.V1NodeStatus()
        changes.status.addresses = metadata.node_addresses
        self._cluster.patch_node(node, changes, deadline)
