import pytest

from nc_failover.bindings import NODE_SERVICE_PREFIX, bound_node_name
from nc_failover.errors import RemoteAPIError
from nc_failover.instances import PROVIDED_NODE_IP, InstanceObserver

from fakes import make_node, make_service

WEB_LABEL = NODE_SERVICE_PREFIX + "default.web"


def test_instance_exists(scp, cluster, prefixes):
    scp.add_server("node-a")
    observer = InstanceObserver(scp, cluster, prefixes)

    assert observer.instance_exists(make_node("node-a"))
    assert not observer.instance_exists(make_node("node-x"))


def test_running_instance_is_not_shutdown(scp, cluster, prefixes):
    scp.add_server("node-a")
    cluster.add_service(make_service("web", ingress=["203.0.113.5"], bound_to="node-a"))
    observer = InstanceObserver(scp, cluster, prefixes)

    assert not observer.instance_shutdown(make_node("node-a"))
    assert bound_node_name(cluster.service("web")) == "node-a"
    assert cluster.service_patches == 0


def test_shutdown_releases_bound_services(scp, cluster, prefixes):
    scp.add_server("node-a", state="offline")
    cluster.add_node(make_node("node-a", labels={WEB_LABEL: "true"}))
    cluster.add_service(make_service("web", ingress=["203.0.113.5"], bound_to="node-a"))
    cluster.add_service(make_service("api", ingress=["203.0.113.6"], bound_to="node-b"))
    observer = InstanceObserver(scp, cluster, prefixes)

    assert observer.instance_shutdown(cluster.node("node-a"))

    web = cluster.service("web")
    assert bound_node_name(web) is None
    assert not web.status.load_balancer.ingress
    assert WEB_LABEL not in cluster.node("node-a").metadata.labels
    assert bound_node_name(cluster.service("api")) == "node-b"


def test_release_node_counts_services(scp, cluster, prefixes):
    cluster.add_service(make_service("web", bound_to="node-a"))
    cluster.add_service(make_service("api", bound_to="node-a"))
    observer = InstanceObserver(scp, cluster, prefixes)

    assert observer.release_node("node-a") == 2
    assert observer.release_node("node-a") == 0


def test_instance_metadata_filters_failover_ips(scp, cluster, prefixes):
    scp.add_server("node-a", ips=("192.0.2.10", "2001:db8:1::10/64", "203.0.113.5"))
    node = make_node(
        "node-a",
        addresses=(("InternalIP", "10.10.0.10"), ("ExternalIP", "203.0.113.5")),
        annotations={PROVIDED_NODE_IP: "10.10.0.10, 203.0.113.6, 10.10.0.11"},
    )
    observer = InstanceObserver(scp, cluster, prefixes)

    metadata = observer.instance_metadata(node)

    assert metadata.provider_id == "nc://node-a"
    assert [(a.type, a.address) for a in metadata.node_addresses] == [
        ("InternalIP", "10.10.0.10"),
        ("ExternalIP", "192.0.2.10"),
        ("ExternalIP", "2001:db8:1::10"),
        ("InternalIP", "10.10.0.11"),
    ]


def test_instance_metadata_is_stable(scp, cluster, prefixes):
    scp.add_server("node-a")
    observer = InstanceObserver(scp, cluster, prefixes)
    first = observer.instance_metadata(make_node("node-a"))

    node = make_node("node-a", addresses=[(a.type, a.address) for a in first.node_addresses])
    second = observer.instance_metadata(node)

    assert [a.address for a in second.node_addresses] == [a.address for a in first.node_addresses]


def test_directory_errors_propagate(scp, cluster, prefixes):
    scp.add_server("node-a", state="offline")
    cluster.add_service(make_service("web", bound_to="node-a"))
    observer = InstanceObserver(scp, cluster, prefixes)

    scp.failures["getVServers"] = RemoteAPIError("scp unavailable")
    with pytest.raises(RemoteAPIError):
        observer.instance_exists(make_node("node-a"))

    scp.failures["getVServerState"] = RemoteAPIError("scp unavailable")
    with pytest.raises(RemoteAPIError):
        observer.instance_shutdown(make_node("node-a"))
    assert bound_node_name(cluster.service("web")) == "node-a"
