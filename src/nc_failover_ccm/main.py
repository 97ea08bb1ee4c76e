"""Entry point for the standalone failover controller."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from threading import Event
from typing import Optional

from kubernetes import client, config as kube_config

from nc_failover import FailoverCloud
from nc_failover.cluster import ClusterClient
from nc_failover.errors import FailoverError

from .config import load_config, resolve_references
from .controllers import FailoverController
from .registry import ControllerRegistry
from .watchers import ClusterWatcher

LOG = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )


def _load_kube_config(kubeconfig: Optional[Path]) -> None:
    if kubeconfig is not None:
        kube_config.load_kube_config(config_file=str(kubeconfig))
        return
    try:
        kube_config.load_incluster_config()
    except kube_config.ConfigException:
        LOG.info("not running in a cluster, falling back to kubeconfig")
        kube_config.load_kube_config()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the failover IP load balancer controller")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("/etc/kubernetes/nc-failover.yaml"),
        help="Path to the cloud configuration file",
    )
    parser.add_argument(
        "--kubeconfig",
        type=Path,
        default=None,
        help="Path to a kubeconfig file (defaults to in-cluster config)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    try:
        config = load_config(args.config)
        _load_kube_config(args.kubeconfig)
        cluster = ClusterClient(client.CoreV1Api(), timeout=config.cloud.timeout)
        resolve_references(config.cloud, cluster)
        cloud = FailoverCloud(config.cloud, cluster)
    except (FailoverError, kube_config.ConfigException) as exc:
        LOG.error("failed to start: %s", exc)
        return 2

    registry = ControllerRegistry()
    registry.register(
        cloud.provider_name,
        FailoverController(
            cloud.load_balancer(),
            cloud.instances(),
            cluster,
            timeout=max(config.resync_interval, config.cloud.timeout),
        ),
    )

    stop_event = Event()
    watcher = ClusterWatcher(
        registry=registry,
        cluster=cluster,
        interval=config.resync_interval,
        stop_event=stop_event,
    )
    watcher.start()

    def _shutdown(signum, frame):  # pragma: no cover - signal handler
        LOG.info("received signal %s, shutting down", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    try:
        while not stop_event.is_set():
            stop_event.wait(1.0)
    except KeyboardInterrupt:  # pragma: no cover - fallback if signal not set
        stop_event.set()

    watcher.join()
    LOG.info("failover controller stopped")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
