import copy
from unittest import mock

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException

from nc_failover.cluster import ClusterClient
from nc_failover.errors import ClusterAPIError, ConflictError, NotFoundError

from fakes import make_node, make_service


def build_cluster():
    core = mock.MagicMock()
    return ClusterClient(core, api_client=client.ApiClient(), timeout=5), core


def stored_service(**kwargs):
    service = make_service("web", **kwargs)
    service.metadata.resource_version = "41"
    return service


def test_patch_service_pins_resource_version():
    cluster, core = build_cluster()
    original = stored_service(bound_to="node-a")
    modified = copy.deepcopy(original)
    del modified.metadata.labels["k8s.mback2k.net/nc-failover-node"]
    modified.metadata.annotations["k8s.mback2k.net/nc-failover-node"] = "node-b"

    cluster.patch_service(original, modified)

    name, namespace, body = core.patch_namespaced_service.call_args.args
    assert (name, namespace) == ("web", "default")
    assert body == {
        "metadata": {
            "annotations": {"k8s.mback2k.net/nc-failover-node": "node-b"},
            "labels": {"k8s.mback2k.net/nc-failover-node": None},
            "resourceVersion": "41",
        }
    }
    assert core.patch_namespaced_service.call_args.kwargs["_request_timeout"] == 5
    assert core.patch_namespaced_service.call_args.kwargs["_content_type"] == "application/merge-patch+json"
    core.patch_namespaced_service_status.assert_not_called()


def test_patch_service_status_goes_to_status_subresource():
    cluster, core = build_cluster()
    original = stored_service()
    modified = copy.deepcopy(original)
    modified.status.load_balancer.ingress = [client.V1LoadBalancerIngress(ip="203.0.113.5")]

    cluster.patch_service(original, modified)

    core.patch_namespaced_service.assert_not_called()
    _, _, body = core.patch_namespaced_service_status.call_args.args
    assert body == {
        "metadata": {"resourceVersion": "41"},
        "status": {"loadBalancer": {"ingress": [{"ip": "203.0.113.5"}]}},
    }
    assert core.patch_namespaced_service_status.call_args.kwargs["_content_type"] == "application/merge-patch+json"


def test_patch_without_changes_is_skipped():
    cluster, core = build_cluster()
    original = stored_service()

    assert cluster.patch_service(original, copy.deepcopy(original)) is original
    core.patch_namespaced_service.assert_not_called()
    core.patch_namespaced_service_status.assert_not_called()


def test_patch_node_labels():
    cluster, core = build_cluster()
    original = make_node("node-a")
    original.metadata.resource_version = "7"
    modified = copy.deepcopy(original)
    modified.metadata.labels["nc-failover-service.k8s.mback2k.net/default.web"] = "true"

    cluster.patch_node(original, modified)

    name, body = core.patch_node.call_args.args
    assert name == "node-a"
    assert body["metadata"]["resourceVersion"] == "7"
    assert body["metadata"]["labels"] == {"nc-failover-service.k8s.mback2k.net/default.web": "true"}


@pytest.mark.parametrize(
    "status,error",
    [(404, NotFoundError), (409, ConflictError), (500, ClusterAPIError)],
)
def test_api_errors_are_translated(status, error):
    cluster, core = build_cluster()
    core.patch_namespaced_service.side_effect = ApiException(status=status, reason="nope")
    original = stored_service()
    modified = copy.deepcopy(original)
    modified.metadata.labels["extra"] = "1"

    with pytest.raises(error) as excinfo:
        cluster.patch_service(original, modified)
    assert excinfo.value.status == status


def test_read_missing_node_raises_not_found():
    cluster, core = build_cluster()
    core.read_node.side_effect = ApiException(status=404, reason="Not Found")

    with pytest.raises(NotFoundError):
        cluster.get_node("ghost")


def test_list_bound_services_uses_label_selector():
    cluster, core = build_cluster()
    core.list_service_for_all_namespaces.return_value = client.V1ServiceList(items=[stored_service()])

    services = cluster.list_bound_services("k8s.mback2k.net/nc-failover-node", "node-a")

    assert [s.metadata.name for s in services] == ["web"]
    kwargs = core.list_service_for_all_namespaces.call_args.kwargs
    assert kwargs["label_selector"] == "k8s.mback2k.net/nc-failover-node=node-a"


def test_list_load_balancer_services_filters_type():
    cluster, core = build_cluster()
    plain = stored_service()
    plain.metadata.name = "internal"
    plain.spec.type = "ClusterIP"
    core.list_service_for_all_namespaces.return_value = client.V1ServiceList(
        items=[plain, stored_service()]
    )

    assert [s.metadata.name for s in cluster.list_load_balancer_services()] == ["web"]


def test_node_address_removal_is_sent_as_merge_patch():
    cluster, core = build_cluster()
    original = make_node("node-a", addresses=(("ExternalIP", "192.0.2.10"), ("ExternalIP", "203.0.113.5")))
    original.metadata.resource_version = "7"
    modified = copy.deepcopy(original)
    modified.status.addresses = modified.status.addresses[:1]

    cluster.patch_node(original, modified)

    core.patch_node.assert_not_called()
    name, body = core.patch_node_status.call_args.args
    assert name == "node-a"
    assert body["status"] == {"addresses": [{"type": "ExternalIP", "address": "192.0.2.10"}]}
    assert core.patch_node_status.call_args.kwargs["_content_type"] == "application/merge-patch+json"
