"""Node liveness and metadata backed by the server control panel."""

from __future__ import annotations

import logging
from typing import List, Optional

from kubernetes import client

from .allocator import parse_address
from .bindings import SERVICE_NODE, BindingRecord
from .cluster import ClusterClient
from .config import FailoverPrefixSet
from .deadline import Deadline
from .interfaces import InstanceMetadata, Instances
from .scp import SERVER_STATE_OFFLINE, ScpClient

LOG = logging.getLogger(__name__)

PROVIDER_NAME = "nc"

# Operator supplied node IPs (comma separated), set by the kubelet.
PROVIDED_NODE_IP = "alpha.kubernetes.io/provided-node-ip"

NODE_EXTERNAL_IP = "ExternalIP"
NODE_INTERNAL_IP = "InternalIP"


def _contains(addresses: List[client.V1NodeAddress], kind: str, address: str) -> bool:
    return any(a.type == kind and a.address == address for a in addresses)


class InstanceObserver(Instances):
    """Answer node lifecycle questions and release bindings of dead nodes."""

    def __init__(
        self,
        scp: ScpClient,
        cluster: ClusterClient,
        prefixes: FailoverPrefixSet,
        bindings: Optional[BindingRecord] = None,
    ) -> None:
        self._scp = scp
        self._cluster = cluster
        self._prefixes = prefixes
        self._bindings = bindings or BindingRecord(cluster)

    def instance_exists(self, node: client.V1Node, deadline: Optional[Deadline] = None) -> bool:
        name = node.metadata.name
        LOG.info("Checking if server '%s' exists", name)
        if name in self._scp.get_vservers(deadline):
            LOG.info("Server '%s' found", name)
            return True
        LOG.warning("Server '%s' NOT found", name)
        return False

    def instance_shutdown(self, node: client.V1Node, deadline: Optional[Deadline] = None) -> bool:
        name = node.metadata.name
        LOG.info("Checking if server '%s' is shutdown", name)
        state = self._scp.get_vserver_state(name, deadline)
        LOG.info("Server '%s' is '%s'", name, state)
        if state != SERVER_STATE_OFFLINE:
            return False
        self.release_node(name, deadline)
        return True

    def release_node(self, node_name: str, deadline: Optional[Deadline] = None) -> int:
        """Unbind every service bound to ``node_name``; return how many."""

        services = self._cluster.list_bound_services(SERVICE_NODE, node_name, deadline)
        for service in services:
            LOG.info(
                "Releasing service '%s/%s' from shut down node '%s'",
                service.metadata.namespace,
                service.metadata.name,
                node_name,
            )
            self._bindings.unbind(service, clear_status=True, deadline=deadline)
        return len(services)

    def instance_metadata(
        self, node: client.V1Node, deadline: Optional[Deadline] = None
    ) -> InstanceMetadata:
        name = node.metadata.name
        LOG.info("Querying information for server '%s'", name)
        info = self._scp.get_vserver_information(name, deadline)

        addresses: List[client.V1NodeAddress] = []
        existing = (node.status.addresses if node.status else None) or []
        for entry in existing:
            if self._prefixes.is_failover_ip(entry.address):
                LOG.info("Dropping node '%s' failover address: %s", name, entry.address)
                continue
            addresses.append(entry)

        for value in info.ips:
            address = parse_address(value)
            if self._prefixes.is_failover_ip(address):
                LOG.info("Skipping node '%s' failover IP: %s", name, value)
                continue
            if not _contains(addresses, NODE_EXTERNAL_IP, str(address)):
                LOG.info("Adding node '%s' external IP: %s", name, address)
                addresses.append(client.V1NodeAddress(type=NODE_EXTERNAL_IP, address=str(address)))

        provided = (node.metadata.annotations or {}).get(PROVIDED_NODE_IP)
        if provided:
            for ip in (part.strip() for part in provided.split(",")):
                if not ip or self._prefixes.is_failover_ip(ip):
                    continue
                if not _contains(addresses, NODE_INTERNAL_IP, ip):
                    LOG.info("Adding node '%s' internal IP: %s", name, ip)
                    addresses.append(client.V1NodeAddress(type=NODE_INTERNAL_IP, address=ip))

        LOG.info("Server '%s' has addresses: %s", name, [a.address for a in addresses])
        return InstanceMetadata(
            provider_id=f"{PROVIDER_NAME}://{info.name}",
            node_addresses=addresses,
        )
