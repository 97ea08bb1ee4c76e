"""Failover IP load balancer reconciliation.

Each call re-evaluates the service from scratch, so running it again after a
partial failure converges instead of compounding the damage:

1. a recorded binding on a ready node whose addresses are still routed there is
   reused as-is;
2. otherwise a ready node that already holds suitable failover addresses is
   adopted (this also picks up routes whose binding write failed earlier);
3. otherwise failover prefixes are routed to the first online node with a
   public (dual stack) interface.

Only step 3 changes routing.  Replacing a binding always clears the old one
before the new one is written.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from kubernetes import client

from .allocator import (
    Allocation,
    FamilyNeeds,
    binding_is_valid,
    candidate_routes,
    ingress_ips,
    match_assigned,
    parse_address,
    routable_interfaces,
)
from .bindings import BindingRecord, bound_node_name
from .cluster import ClusterClient
from .config import FailoverPrefixSet
from .deadline import Deadline
from .interfaces import LoadBalancer
from .scp import ScpClient

LOG = logging.getLogger(__name__)


def is_ready(node: client.V1Node) -> bool:
    conditions = (node.status.conditions if node.status else None) or []
    return any(c.type == "Ready" and c.status == "True" for c in conditions)


def ready_nodes(nodes: Sequence[client.V1Node]) -> Dict[str, client.V1Node]:
    """Return ready nodes keyed by name, in name order."""

    ready = {node.metadata.name: node for node in nodes if is_ready(node)}
    return {name: ready[name] for name in sorted(ready)}


def _name(service: client.V1Service) -> str:
    return f"{service.metadata.namespace}/{service.metadata.name}"


class LoadBalancerReconciler(LoadBalancer):
    """Bind each LoadBalancer service to one node holding its failover IPs."""

    def __init__(
        self,
        scp: ScpClient,
        cluster: ClusterClient,
        prefixes: FailoverPrefixSet,
        bindings: Optional[BindingRecord] = None,
    ) -> None:
        self._scp = scp
        self._prefixes = prefixes
        self._bindings = bindings or BindingRecord(cluster)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_load_balancer(
        self, service: client.V1Service, deadline: Optional[Deadline] = None
    ) -> Tuple[Optional[client.V1LoadBalancerStatus], bool]:
        LOG.info("Querying loadbalancer status for service '%s'", _name(service))
        node_name = bound_node_name(service)
        if not node_name:
            return None, False

        LOG.info("Found existing loadbalancer for service '%s' on node '%s'", _name(service), node_name)
        assigned = self._scp.get_vserver_ips(node_name, deadline)
        wanted = FamilyNeeds.for_service(service)
        if binding_is_valid(ingress_ips(service), assigned, wanted):
            return service.status.load_balancer, True
        LOG.info("Loadbalancer of service '%s' on node '%s' is stale", _name(service), node_name)
        return None, False

    def get_load_balancer_name(self, service: client.V1Service) -> str:
        return bound_node_name(service) or ""

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def ensure_load_balancer(
        self,
        service: client.V1Service,
        nodes: Sequence[client.V1Node],
        deadline: Optional[Deadline] = None,
    ) -> Optional[client.V1LoadBalancerStatus]:
        ready = ready_nodes(nodes)
        wanted = FamilyNeeds.for_service(service)

        LOG.info("Checking existing loadbalancer for service '%s'", _name(service))
        if bound_node_name(service) in ready:
            status, exists = self.get_load_balancer(service, deadline)
            if exists:
                return status

        LOG.info("Searching existing loadbalancer for service '%s'", _name(service))
        for node_name, node in ready.items():
            assigned = self._scp.get_vserver_ips(node_name, deadline)
            matched = match_assigned(assigned, self._prefixes, wanted)
            if matched:
                LOG.info(
                    "Found existing loadbalancer for service '%s' on node '%s'",
                    _name(service),
                    node_name,
                )
                return self._commit(service, node, matched, deadline)

        LOG.info("Creating new loadbalancer for service '%s'", _name(service))
        for node_name, node in ready.items():
            allocation = self._allocate(node_name, wanted, deadline)
            if allocation is None or not allocation.ingress:
                continue
            if not allocation.complete:
                LOG.warning(
                    "Node '%s' only holds %s for service '%s', not all wanted families; "
                    "keeping those routes for the next attempt",
                    node_name,
                    allocation.ingress,
                    _name(service),
                )
                return None
            LOG.info("Created new loadbalancer for service '%s' on node '%s'", _name(service), node_name)
            return self._commit(service, node, allocation.ingress, deadline)

        LOG.warning("No node available for loadbalancer of service '%s'", _name(service))
        return None

    def update_load_balancer(
        self,
        service: client.V1Service,
        nodes: Sequence[client.V1Node],
        deadline: Optional[Deadline] = None,
    ) -> None:
        self.ensure_load_balancer(service, nodes, deadline)

    def ensure_load_balancer_deleted(
        self, service: client.V1Service, deadline: Optional[Deadline] = None
    ) -> None:
        if bound_node_name(service):
            self._bindings.unbind(service, clear_status=True, deadline=deadline)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _allocate(
        self, node_name: str, wanted: FamilyNeeds, deadline: Optional[Deadline]
    ) -> Optional[Allocation]:
        info = self._scp.get_vserver_information(node_name, deadline)
        if info.offline:
            LOG.info("Skipping offline server '%s'", node_name)
            return None

        assigned = {parse_address(value) for value in self._scp.get_vserver_ips(node_name, deadline)}
        needs = wanted.copy()
        allocation = Allocation(node_name=node_name, needs=needs)
        for iface in routable_interfaces(info.interfaces):
            for change in candidate_routes(iface, self._prefixes, needs):
                if change.prefix.address in assigned:
                    LOG.info("Failover IP %s is already routed to server '%s'", change.prefix, info.name)
                elif not self._scp.change_ip_routing(
                    change.ip, change.mask, info.name, change.interface.mac, deadline
                ):
                    LOG.warning("Routing %s to server '%s' was refused", change.prefix, info.name)
                    continue
                needs.satisfy(change.prefix.family)
                allocation.ingress.append(change.ip)
            if needs.satisfied:
                break
        return allocation

    def _commit(
        self,
        service: client.V1Service,
        node: client.V1Node,
        ingress: List[str],
        deadline: Optional[Deadline],
    ) -> client.V1LoadBalancerStatus:
        previous = bound_node_name(service)
        if previous and previous != node.metadata.name:
            LOG.info(
                "Moving service '%s' from node '%s' to '%s'",
                _name(service),
                previous,
                node.metadata.name,
            )
            updated = self._bindings.unbind(service, clear_status=False, deadline=deadline)
            if updated is not None:
                service = updated
        self._bindings.bind(service, node, deadline)
        return client.V1LoadBalancerStatus(
            ingress=[client.V1LoadBalancerIngress(ip=ip) for ip in ingress]
        )
