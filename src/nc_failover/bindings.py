"""Service to node bindings stored as Kubernetes metadata.

A binding is written on both sides:

* the Service carries annotation and label ``k8s.mback2k.net/nc-failover-node``
  whose value is the node name;
* the Node carries one label per backed service below the
  ``nc-failover-service.k8s.mback2k.net/`` prefix.

The service side is authoritative, the node side lets operators (and node
selectors) see which services a node is currently fronting.
"""

from __future__ import annotations

import copy
import hashlib
import logging
from typing import Dict, Iterator, Optional

from kubernetes import client

from .cluster import ClusterClient
from .deadline import Deadline
from .errors import NotFoundError

LOG = logging.getLogger(__name__)

SERVICE_NODE = "k8s.mback2k.net/nc-failover-node"
NODE_SERVICE_PREFIX = "nc-failover-service.k8s.mback2k.net/"

# Label names (the part after the prefix) are limited to 63 characters.
_LABEL_NAME_MAX = 63
_DIGEST_LEN = 10


def service_key(service: client.V1Service) -> str:
    """Return the label name identifying ``service`` on a node."""

    meta = service.metadata
    key = f"{meta.namespace or 'default'}.{meta.name}"
    if len(key) <= _LABEL_NAME_MAX:
        return key
    digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:_DIGEST_LEN]
    head = key[: _LABEL_NAME_MAX - _DIGEST_LEN - 1].rstrip("-_.")
    return f"{head}-{digest}"


def bound_node_name(service: client.V1Service) -> Optional[str]:
    """Return the node ``service`` is bound to, if any."""

    meta = service.metadata
    annotations = meta.annotations or {}
    labels = meta.labels or {}
    return annotations.get(SERVICE_NODE) or labels.get(SERVICE_NODE)


class NodeServiceLabels:
    """View over the per-service labels of a node."""

    def __init__(self, labels: Optional[Dict[str, str]]) -> None:
        self._labels = labels if labels is not None else {}

    @classmethod
    def of(cls, node: client.V1Node) -> "NodeServiceLabels":
        return cls(node.metadata.labels)

    @staticmethod
    def key_for(service: client.V1Service) -> str:
        return NODE_SERVICE_PREFIX + service_key(service)

    def services(self) -> Iterator[str]:
        """Yield the service keys this node backs."""

        for label, value in self._labels.items():
            if label.startswith(NODE_SERVICE_PREFIX) and value == "true":
                yield label[len(NODE_SERVICE_PREFIX):]

    def has(self, service: client.V1Service) -> bool:
        return self._labels.get(self.key_for(service)) == "true"

    def add(self, service: client.V1Service) -> None:
        self._labels[self.key_for(service)] = "true"

    def remove(self, service: client.V1Service) -> None:
        self._labels.pop(self.key_for(service), None)


def _name(service: client.V1Service) -> str:
    return f"{service.metadata.namespace}/{service.metadata.name}"


class BindingRecord:
    """Read and write bindings through a :class:`ClusterClient`."""

    def __init__(self, cluster: ClusterClient) -> None:
        self._cluster = cluster

    def bind(
        self,
        service: client.V1Service,
        node: client.V1Node,
        deadline: Optional[Deadline] = None,
    ) -> client.V1Service:
        """Record ``service`` as bound to ``node`` and return the patched service.

        ``node`` only names the target; its labels are patched against a fresh
        read.
        """

        current = self._cluster.get_node(node.metadata.name, deadline)

        changes = copy.deepcopy(service)
        meta = changes.metadata
        meta.annotations = dict(meta.annotations or {})
        meta.labels = dict(meta.labels or {})
        meta.annotations[SERVICE_NODE] = node.metadata.name
        meta.labels[SERVICE_NODE] = node.metadata.name
        updated = self._cluster.patch_service(service, changes, deadline)

        self._label_node(current, service, add=True, deadline=deadline)
        LOG.info("Bound service '%s' to node '%s'", _name(service), node.metadata.name)
        return updated

    def unbind(
        self,
        service: client.V1Service,
        clear_status: bool,
        deadline: Optional[Deadline] = None,
    ) -> Optional[client.V1Service]:
        """Remove the binding of ``service``.

        Returns the patched service, or ``None`` if the service is gone.
        """

        node_name = bound_node_name(service)
        changes = copy.deepcopy(service)
        meta = changes.metadata
        meta.annotations = dict(meta.annotations or {})
        meta.labels = dict(meta.labels or {})
        meta.annotations.pop(SERVICE_NODE, None)
        meta.labels.pop(SERVICE_NODE, None)
        if clear_status:
            changes.status = client.V1ServiceStatus(load_balancer=client.V1LoadBalancerStatus())

        updated: Optional[client.V1Service]
        try:
            updated = self._cluster.patch_service(service, changes, deadline)
        except NotFoundError:
            LOG.info("Service '%s' no longer exists, releasing node side only", _name(service))
            updated = None

        if not node_name:
            return updated

        try:
            node = self._cluster.get_node(node_name, deadline)
        except NotFoundError:
            LOG.info("Node '%s' no longer exists, nothing to unlabel", node_name)
            return updated
        self._label_node(node, service, add=False, deadline=deadline)
        LOG.info("Released service '%s' from node '%s'", _name(service), node_name)
        return updated

    def _label_node(
        self,
        node: client.V1Node,
        service: client.V1Service,
        add: bool,
        deadline: Optional[Deadline],
    ) -> None:
        current = NodeServiceLabels.of(node)
        if current.has(service) == add:
            return
        changes = copy.deepcopy(node)
        changes.metadata.labels = dict(changes.metadata.labels or {})
        labels = NodeServiceLabels(changes.metadata.labels)
        if add:
            labels.add(service)
        else:
            labels.remove(service)
        try:
            self._cluster.patch_node(node, changes, deadline)
        except NotFoundError:
            if add:
                raise
            LOG.info("Node '%s' disappeared while unlabeling", node.metadata.name)
