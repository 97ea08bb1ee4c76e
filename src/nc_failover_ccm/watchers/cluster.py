"""Polling watcher publishing node and LoadBalancer service events."""

from __future__ import annotations

import logging
from threading import Event, Thread
from typing import Dict, Tuple

from kubernetes import client

from nc_failover.cluster import ClusterClient
from nc_failover.errors import FailoverError

from ..events import NodeRefresh, ServiceDelete, ServiceUpsert
from ..registry import ControllerRegistry, Event as ClusterEvent

LOG = logging.getLogger(__name__)

ServiceId = Tuple[str, str]


def _service_id(service: client.V1Service) -> ServiceId:
    return service.metadata.namespace, service.metadata.name


class ClusterWatcher(Thread):
    """Poll nodes and services and publish events to ``registry``.

    Every poll publishes a :class:`NodeRefresh` per node and a
    :class:`ServiceUpsert` per LoadBalancer service (reconciliation is
    idempotent, so each poll doubles as a resync), followed by a
    :class:`ServiceDelete` for services seen last time but not any more.
    """

    def __init__(
        self,
        registry: ControllerRegistry,
        cluster: ClusterClient,
        interval: float,
        stop_event: Event,
    ) -> None:
        super().__init__(daemon=True)
        self._registry = registry
        self._cluster = cluster
        self._interval = interval
        self._stop_event = stop_event
        self._services: Dict[ServiceId, client.V1Service] = {}

    def run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.poll()
            except Exception:  # pragma: no cover - logged below
                LOG.exception("cluster watcher encountered an error")
            self._stop_event.wait(self._interval)

    def poll(self) -> None:
        try:
            nodes = self._cluster.list_nodes()
            services = self._cluster.list_load_balancer_services()
        except FailoverError as exc:
            LOG.warning("failed to list cluster objects: %s", exc)
            return

        for node in nodes:
            self._publish(NodeRefresh(node))

        desired = {_service_id(service): service for service in services}
        for service in desired.values():
            self._publish(ServiceUpsert(service, nodes))

        for service_id in set(self._services) - set(desired):
            LOG.debug("service %s/%s removed", *service_id)
            if not self._publish(ServiceDelete(self._services[service_id])):
                # Keep it around so the release is retried next time.
                desired[service_id] = self._services[service_id]

        self._services = desired

    def _publish(self, event: ClusterEvent) -> bool:
        try:
            self._registry.handle(event)
        except FailoverError as exc:
            LOG.warning("handling %s failed, retrying on next resync: %s", type(event).__name__, exc)
            return False
        return True
