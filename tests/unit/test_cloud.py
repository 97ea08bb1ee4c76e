import pytest

from nc_failover import CloudConfig, FailoverCloud
from nc_failover.deadline import Deadline, timeout_for
from nc_failover.errors import ConfigurationError, DeadlineExceeded
from nc_failover.instances import InstanceObserver
from nc_failover.reconciler import LoadBalancerReconciler


def test_cloud_wires_components(scp, cluster):
    config = CloudConfig(username="user", password="secret", failover=["203.0.113.5/32"])

    cloud = FailoverCloud(config, cluster, scp=scp)

    assert cloud.provider_name == "nc"
    assert [str(p) for p in cloud.prefixes] == ["203.0.113.5/32"]
    assert isinstance(cloud.instances(), InstanceObserver)
    assert isinstance(cloud.load_balancer(), LoadBalancerReconciler)


def test_cloud_refuses_incomplete_config(scp, cluster):
    with pytest.raises(ConfigurationError):
        FailoverCloud(CloudConfig(username="user", password="secret"), cluster, scp=scp)


def test_timeout_for_without_deadline():
    assert timeout_for(None, 30.0, "op") == 30.0


def test_timeout_for_caps_at_remaining_time():
    assert timeout_for(Deadline.after(1.0), 30.0, "op") <= 1.0
    assert timeout_for(Deadline.after(300.0), 30.0, "op") == 30.0


def test_expired_deadline_raises():
    with pytest.raises(DeadlineExceeded, match="op"):
        timeout_for(Deadline(expires_at=0.0), 30.0, "op")
