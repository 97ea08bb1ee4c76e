"""Event primitives consumed by the controller registry."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from kubernetes import client


@dataclass(frozen=True)
class ServiceUpsert:
    """A LoadBalancer service was observed together with the current nodes.

    Published on every change and every resync; controllers are expected to
    reconcile from scratch each time.
    """

    service: client.V1Service
    nodes: Sequence[client.V1Node]


@dataclass(frozen=True)
class ServiceDelete:
    """A previously observed LoadBalancer service is gone (or no longer one)."""

    service: client.V1Service


@dataclass(frozen=True)
class NodeRefresh:
    """A node was observed; controllers may check its backing server."""

    node: client.V1Node
