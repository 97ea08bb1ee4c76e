import pytest

from nc_failover.config import FailoverPrefixSet

from fakes import FakeCluster, FakeScp


@pytest.fixture
def scp() -> FakeScp:
    return FakeScp()


@pytest.fixture
def cluster() -> FakeCluster:
    return FakeCluster()


@pytest.fixture
def prefixes() -> FailoverPrefixSet:
    return FailoverPrefixSet.from_cidrs(["203.0.113.5/32", "203.0.113.6/32", "2001:db8:ff::1/128"])
