"""Standalone controller runtime for the failover load balancer."""

from .config import ControllerConfig, load_config  # noqa: F401

__all__ = [
    "ControllerConfig",
    "load_config",
]
