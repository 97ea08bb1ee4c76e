import base64
from pathlib import Path

import pytest
from kubernetes import client

from nc_failover.errors import ConfigurationError, NotFoundError
from nc_failover_ccm.config import load_config, parse_config, resolve_references


def b64(value: str) -> str:
    return base64.b64encode(value.encode()).decode()


def test_load_config_from_yaml(tmp_path: Path):
    path = tmp_path / "cloud.yaml"
    path.write_text(
        "\n".join(
            [
                "username: '12345'",
                "password: s3cret",
                "failover:",
                "  - 203.0.113.5/32",
                "  - 2001:db8:ff::1/128",
                "timeout: 10",
                "resync_interval: 15",
            ]
        )
    )

    config = load_config(path)

    assert config.cloud.username == "12345"
    assert config.cloud.password == "s3cret"
    assert config.cloud.failover == ["203.0.113.5/32", "2001:db8:ff::1/128"]
    assert config.cloud.timeout == 10.0
    assert config.resync_interval == 15.0


def test_failover_may_be_a_comma_separated_string():
    config = parse_config({"failover": "203.0.113.5/32, 203.0.113.6/32,"})

    assert config.cloud.failover == ["203.0.113.5/32", "203.0.113.6/32"]


def test_unknown_keys_are_rejected():
    with pytest.raises(ConfigurationError, match="bogus"):
        parse_config({"username": "u", "bogus": 1})


def test_invalid_values_are_rejected():
    with pytest.raises(ConfigurationError):
        parse_config({"timeout": "soon"})


def test_missing_file_is_a_configuration_error(tmp_path: Path):
    with pytest.raises(ConfigurationError, match="missing cloud config"):
        load_config(tmp_path / "absent.yaml")


def test_malformed_yaml_is_a_configuration_error(tmp_path: Path):
    path = tmp_path / "cloud.yaml"
    path.write_text("failover: [unclosed\n")

    with pytest.raises(ConfigurationError):
        load_config(path)


def test_references_override_inline_values(cluster):
    cluster.config_maps[("kube-system", "nc-failover")] = client.V1ConfigMap(
        data={"username": "from-configmap", "failover": "203.0.113.5/32"}
    )
    cluster.secrets[("infra", "nc-credentials")] = client.V1Secret(
        data={"username": b64("from-secret"), "password": b64("hunter2")}
    )
    config = parse_config(
        {
            "username": "inline",
            "config": "nc-failover",
            "secret": "nc-credentials@infra",
        }
    )

    cloud = resolve_references(config.cloud, cluster)

    assert cloud.username == "from-secret"
    assert cloud.password == "hunter2"
    assert cloud.failover == ["203.0.113.5/32"]


def test_missing_reference_propagates(cluster):
    config = parse_config({"username": "u", "password": "p", "failover": ["203.0.113.5/32"], "secret": "absent"})

    with pytest.raises(NotFoundError):
        resolve_references(config.cloud, cluster)


def test_resolved_config_is_validated(cluster):
    cluster.config_maps[("kube-system", "nc-failover")] = client.V1ConfigMap(data={"username": "u"})
    config = parse_config({"config": "nc-failover", "password": "p"})

    with pytest.raises(ConfigurationError, match="failover"):
        resolve_references(config.cloud, cluster)
