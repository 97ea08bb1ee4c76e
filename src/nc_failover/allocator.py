"""Pure helpers deciding which failover addresses satisfy a service.

Nothing in here talks to the network.  The reconciler feeds observed state
(recorded ingress, assigned IPs, interface topology) in and gets decisions
back, which keeps the reconciliation rules testable on their own.
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Sequence

from kubernetes import client

from .config import FailoverPrefix, FailoverPrefixSet, IPAddress, IPFamily
from .errors import RemoteAPIError
from .scp import ServerInterface


@dataclass
class FamilyNeeds:
    """Tracks which IP families still lack an address."""

    ipv4: bool
    ipv6: bool

    @classmethod
    def for_service(cls, service: client.V1Service) -> "FamilyNeeds":
        families = (service.spec.ip_families if service.spec else None) or []
        if not families:
            # Single stack clusters may leave ipFamilies empty.
            return cls(ipv4=True, ipv6=False)
        return cls(
            ipv4=IPFamily.IPV4.value in families,
            ipv6=IPFamily.IPV6.value in families,
        )

    def copy(self) -> "FamilyNeeds":
        return FamilyNeeds(self.ipv4, self.ipv6)

    def needs(self, family: IPFamily) -> bool:
        return self.ipv4 if family is IPFamily.IPV4 else self.ipv6

    def satisfy(self, family: IPFamily) -> bool:
        """Mark ``family`` satisfied; return ``True`` if it was still needed."""

        if not self.needs(family):
            return False
        if family is IPFamily.IPV4:
            self.ipv4 = False
        else:
            self.ipv6 = False
        return True

    @property
    def satisfied(self) -> bool:
        return not (self.ipv4 or self.ipv6)


def parse_address(value: str) -> IPAddress:
    """Parse a remote-reported address, tolerating a ``/bits`` suffix."""

    text = value.strip().split("/", 1)[0]
    try:
        return ipaddress.ip_address(text)
    except ValueError as exc:
        raise RemoteAPIError(f"remote reported invalid IP address '{value}'") from exc


def ingress_ips(service: client.V1Service) -> List[str]:
    status = service.status
    if status is None or status.load_balancer is None:
        return []
    return [entry.ip for entry in status.load_balancer.ingress or [] if entry.ip]


def binding_is_valid(
    recorded: Sequence[str], assigned: Iterable[str], wanted: FamilyNeeds
) -> bool:
    """Check a recorded ingress list against the node's assigned IPs.

    Valid iff every recorded address is still assigned and every wanted family
    is covered by one of them.  Addresses of families no longer wanted are
    tolerated, not pruned.
    """

    needs = wanted.copy()
    assigned_set = {parse_address(value) for value in assigned}
    found_all = True
    for ip in recorded:
        address = parse_address(ip)
        if address not in assigned_set:
            found_all = False
            continue
        needs.satisfy(IPFamily.of(address))
    return found_all and needs.satisfied


def match_assigned(
    assigned: Iterable[str], prefixes: FailoverPrefixSet, wanted: FamilyNeeds
) -> Optional[List[str]]:
    """Pick one assigned failover address per wanted family.

    Returns ``None`` unless every wanted family could be covered.
    """

    needs = wanted.copy()
    matched: List[str] = []
    for value in assigned:
        address = parse_address(value)
        if not prefixes.is_failover_ip(address):
            continue
        if needs.satisfy(IPFamily.of(address)):
            matched.append(str(address))
        if needs.satisfied:
            return matched
    return None


@dataclass(frozen=True)
class RouteChange:
    """One ``changeIPRouting`` call the reconciler intends to issue."""

    prefix: FailoverPrefix
    interface: ServerInterface

    @property
    def ip(self) -> str:
        return str(self.prefix.address)

    @property
    def mask(self) -> str:
        return str(self.prefix.prefixlen)


def routable_interfaces(interfaces: Sequence[ServerInterface]) -> Iterator[ServerInterface]:
    """Yield interfaces that look public: they carry IPv4 *and* IPv6 addresses."""

    return (iface for iface in interfaces if iface.is_dual_stack())


def candidate_routes(
    interface: ServerInterface, prefixes: FailoverPrefixSet, needs: FamilyNeeds
) -> Iterator[RouteChange]:
    """Yield route changes for prefixes whose family is still needed.

    ``needs`` is consulted lazily so callers can mark families satisfied while
    iterating.
    """

    for prefix in prefixes:
        if needs.satisfied:
            return
        if needs.needs(prefix.family):
            yield RouteChange(prefix=prefix, interface=interface)


@dataclass
class Allocation:
    """Outcome of trying to provision one node."""

    node_name: str
    ingress: List[str] = field(default_factory=list)
    needs: Optional[FamilyNeeds] = None

    @property
    def complete(self) -> bool:
        return bool(self.ingress) and self.needs is not None and self.needs.satisfied
