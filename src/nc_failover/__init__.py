"""Failover IP load balancing for Kubernetes on netcup root servers.

The package binds a small pool of failover IP prefixes to Services of type
``LoadBalancer``.  For every service exactly one ready node holds the
service's failover addresses; the choice is recorded on the Service (and
mirrored on the Node) so it survives restarts and can be queried with label
selectors.

The moving parts:

* :class:`~nc_failover.config.FailoverPrefixSet` - the prefixes we may move;
* :class:`~nc_failover.scp.ScpClient` - the server control panel SOAP API used
  to look up servers and reroute failover IPs;
* :class:`~nc_failover.bindings.BindingRecord` - service/node bookkeeping;
* :class:`~nc_failover.instances.InstanceObserver` - node existence, shutdown
  and address reporting; shutdown releases the node's bindings;
* :class:`~nc_failover.reconciler.LoadBalancerReconciler` - the idempotent
  reconciliation of one service.

:class:`~nc_failover.cloud.FailoverCloud` wires them together.
"""

from .cloud import FailoverCloud  # noqa: F401
from .config import CloudConfig, FailoverPrefixSet  # noqa: F401

__all__ = ["CloudConfig", "FailoverCloud", "FailoverPrefixSet"]
