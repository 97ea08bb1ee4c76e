"""Abstract interfaces a cloud provider implementation has to satisfy."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from kubernetes import client

from .deadline import Deadline


@dataclass
class InstanceMetadata:
    """What the provider knows about a node's backing server."""

    provider_id: str
    node_addresses: List[client.V1NodeAddress] = field(default_factory=list)


class Instances(ABC):
    """Node lifecycle callbacks."""

    @abstractmethod
    def instance_exists(self, node: client.V1Node, deadline: Optional[Deadline] = None) -> bool:
        """Return ``True`` if the server backing ``node`` exists."""

    @abstractmethod
    def instance_shutdown(self, node: client.V1Node, deadline: Optional[Deadline] = None) -> bool:
        """Return ``True`` if the server backing ``node`` is shut down."""

    @abstractmethod
    def instance_metadata(
        self, node: client.V1Node, deadline: Optional[Deadline] = None
    ) -> InstanceMetadata:
        """Return provider id and addresses for ``node``."""


class LoadBalancer(ABC):
    """Service load balancer lifecycle callbacks."""

    @abstractmethod
    def get_load_balancer(
        self, service: client.V1Service, deadline: Optional[Deadline] = None
    ) -> Tuple[Optional[client.V1LoadBalancerStatus], bool]:
        """Return ``(status, exists)`` for ``service``."""

    @abstractmethod
    def get_load_balancer_name(self, service: client.V1Service) -> str:
        """Return a name identifying the load balancer of ``service``."""

    @abstractmethod
    def ensure_load_balancer(
        self,
        service: client.V1Service,
        nodes: Sequence[client.V1Node],
        deadline: Optional[Deadline] = None,
    ) -> Optional[client.V1LoadBalancerStatus]:
        """Make sure ``service`` has a load balancer and return its status."""

    @abstractmethod
    def update_load_balancer(
        self,
        service: client.V1Service,
        nodes: Sequence[client.V1Node],
        deadline: Optional[Deadline] = None,
    ) -> None:
        """Apply a node set change to the load balancer of ``service``."""

    @abstractmethod
    def ensure_load_balancer_deleted(
        self, service: client.V1Service, deadline: Optional[Deadline] = None
    ) -> None:
        """Release whatever ``service`` holds."""
