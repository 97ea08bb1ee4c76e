"""Watcher implementations used by the failover controller."""

from .cluster import ClusterWatcher  # noqa: F401

__all__ = ["ClusterWatcher"]
