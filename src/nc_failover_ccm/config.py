"""YAML configuration loader for the failover controller."""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional, Tuple

import yaml

from nc_failover.cluster import ClusterClient
from nc_failover.config import DEFAULT_ENDPOINT, CloudConfig
from nc_failover.errors import ConfigurationError

LOG = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "kube-system"


@dataclass
class ControllerConfig:
    cloud: CloudConfig = field(default_factory=CloudConfig)
    resync_interval: float = 30.0


_CLOUD_KEYS = {f.name for f in fields(CloudConfig)}
_CONTROLLER_KEYS = {"resync_interval"}


def _split_reference(reference: str) -> Tuple[str, str]:
    name, _, namespace = reference.partition("@")
    if not name:
        raise ConfigurationError(f"invalid object reference '{reference}'")
    return name, namespace or DEFAULT_NAMESPACE


def _parse_failover(value) -> list:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, list):
        return [str(part).strip() for part in value if str(part).strip()]
    raise ConfigurationError("'failover' must be a list or a comma separated string")


def parse_config(data: dict) -> ControllerConfig:
    if not isinstance(data, dict):
        raise ConfigurationError("configuration must be a mapping")

    unknown = set(data) - _CLOUD_KEYS - _CONTROLLER_KEYS
    if unknown:
        raise ConfigurationError(f"unknown configuration keys: {', '.join(sorted(unknown))}")

    try:
        cloud = CloudConfig(
            username=str(data.get("username") or ""),
            password=str(data.get("password") or ""),
            failover=_parse_failover(data.get("failover")),
            config=data.get("config"),
            secret=data.get("secret"),
            endpoint=str(data.get("endpoint") or DEFAULT_ENDPOINT),
            timeout=float(data.get("timeout", 30.0)),
        )
        return ControllerConfig(
            cloud=cloud,
            resync_interval=float(data.get("resync_interval", 30.0)),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"invalid configuration value: {exc}") from exc


def load_config(path: Path) -> ControllerConfig:
    """Read ``path`` (YAML) into a :class:`ControllerConfig`.

    ConfigMap/Secret references are *not* resolved here; see
    :func:`resolve_references`.
    """

    try:
        data = yaml.safe_load(Path(path).read_text())
    except OSError as exc:
        raise ConfigurationError(f"missing cloud config file: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"invalid cloud config file {path}: {exc}") from exc
    return parse_config(data or {})


def resolve_references(cloud: CloudConfig, cluster: ClusterClient) -> CloudConfig:
    """Fill ``cloud`` from its ConfigMap and Secret references and validate it.

    ConfigMap values override the file, Secret values override both.
    """

    if cloud.config:
        name, namespace = _split_reference(cloud.config)
        data = cluster.read_config_map(name, namespace).data or {}
        LOG.info("Loading cloud config from configmap %s/%s", namespace, name)
        if "username" in data:
            cloud.username = data["username"]
        if "failover" in data:
            cloud.failover = _parse_failover(data["failover"])

    if cloud.secret:
        name, namespace = _split_reference(cloud.secret)
        data = cluster.read_secret(name, namespace).data or {}
        LOG.info("Loading cloud credentials from secret %s/%s", namespace, name)
        if "username" in data:
            cloud.username = _decode(data["username"])
        if "password" in data:
            cloud.password = _decode(data["password"])

    cloud.validate()
    return cloud


def _decode(value: Optional[str]) -> str:
    if not value:
        return ""
    try:
        return base64.b64decode(value).decode("utf-8")
    except (ValueError, UnicodeDecodeError) as exc:
        raise ConfigurationError("secret value is not valid base64") from exc
