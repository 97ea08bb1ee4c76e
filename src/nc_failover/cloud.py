"""Cloud provider aggregate wiring the engine components together."""

from __future__ import annotations

import logging
from typing import Optional

from .bindings import BindingRecord
from .cluster import ClusterClient
from .config import CloudConfig, FailoverPrefixSet
from .instances import PROVIDER_NAME, InstanceObserver
from .reconciler import LoadBalancerReconciler
from .scp import ScpClient

LOG = logging.getLogger(__name__)


class FailoverCloud:
    """Hands out the instance and load balancer implementations.

    All components share one :class:`ScpClient`, one :class:`ClusterClient` and
    the immutable :class:`FailoverPrefixSet`.
    """

    provider_name = PROVIDER_NAME

    def __init__(
        self,
        config: CloudConfig,
        cluster: ClusterClient,
        scp: Optional[ScpClient] = None,
        prefixes: Optional[FailoverPrefixSet] = None,
    ) -> None:
        self._config = config
        self._prefixes = prefixes or config.prefix_set()
        self._cluster = cluster
        self._scp = scp or ScpClient(
            config.username,
            config.password,
            endpoint=config.endpoint,
            timeout=config.timeout,
        )
        bindings = BindingRecord(cluster)
        self._instances = InstanceObserver(self._scp, cluster, self._prefixes, bindings)
        self._load_balancer = LoadBalancerReconciler(self._scp, cluster, self._prefixes, bindings)
        LOG.info("Initialized %s cloud with %d failover prefixes", self.provider_name, len(self._prefixes))

    @property
    def prefixes(self) -> FailoverPrefixSet:
        return self._prefixes

    def instances(self) -> InstanceObserver:
        return self._instances

    def load_balancer(self) -> LoadBalancerReconciler:
        return self._load_balancer
