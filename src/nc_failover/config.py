"""Configuration data structures for the failover engine.

These dataclasses describe the credentials and the failover prefixes the
engine is allowed to move around.  They are deliberately free of any YAML or
Kubernetes knowledge; :mod:`nc_failover_ccm.config` takes care of reading them
from disk and resolving ConfigMap/Secret references.
"""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from .errors import ConfigurationError

LOG = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://www.servercontrolpanel.de/WSEndUser"

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class IPFamily(Enum):
    """IP families a Service can request.

    The values match the strings Kubernetes uses in ``spec.ipFamilies``.
    """

    IPV4 = "IPv4"
    IPV6 = "IPv6"

    @classmethod
    def of(cls, address: IPAddress) -> "IPFamily":
        return cls.IPV4 if address.version == 4 else cls.IPV6


@dataclass(frozen=True)
class FailoverPrefix:
    """A single failover prefix as configured.

    Attributes
    ----------
    address:
        The address exactly as written, host bits included.  This is the
        address handed to the routing API.
    prefixlen:
        Prefix length in bits.
    """

    address: IPAddress
    prefixlen: int

    @classmethod
    def parse(cls, text: str) -> "FailoverPrefix":
        value = text.strip()
        if "/" not in value:
            raise ConfigurationError(f"failover prefix '{text}' is missing a prefix length")
        try:
            interface = ipaddress.ip_interface(value)
        except ValueError as exc:
            raise ConfigurationError(f"invalid failover prefix '{text}': {exc}") from exc
        return cls(address=interface.ip, prefixlen=interface.network.prefixlen)

    @property
    def network(self) -> Union[ipaddress.IPv4Network, ipaddress.IPv6Network]:
        return ipaddress.ip_network(f"{self.address}/{self.prefixlen}", strict=False)

    @property
    def family(self) -> IPFamily:
        return IPFamily.of(self.address)

    def contains(self, address: IPAddress) -> bool:
        return address.version == self.address.version and address in self.network

    def __str__(self) -> str:
        return f"{self.address}/{self.prefixlen}"


class FailoverPrefixSet:
    """Immutable, ordered set of prefixes the engine may reassign."""

    def __init__(self, prefixes: Sequence[FailoverPrefix]) -> None:
        if not prefixes:
            raise ConfigurationError("missing cloud failover")
        self._prefixes: Tuple[FailoverPrefix, ...] = tuple(prefixes)

    @classmethod
    def from_cidrs(cls, cidrs: Iterable[str]) -> "FailoverPrefixSet":
        prefixes: List[FailoverPrefix] = []
        for cidr in cidrs:
            if not cidr.strip():
                continue
            prefix = FailoverPrefix.parse(cidr)
            LOG.info("Taking control of failover IP: %s", prefix)
            prefixes.append(prefix)
        return cls(prefixes)

    def is_failover_ip(self, address: Union[str, IPAddress]) -> bool:
        """Return ``True`` if ``address`` lies inside any configured prefix."""

        if isinstance(address, str):
            try:
                address = ipaddress.ip_address(address)
            except ValueError:
                return False
        return any(prefix.contains(address) for prefix in self._prefixes)

    def __iter__(self) -> Iterator[FailoverPrefix]:
        return iter(self._prefixes)

    def __len__(self) -> int:
        return len(self._prefixes)

    def __repr__(self) -> str:
        return f"FailoverPrefixSet({[str(p) for p in self._prefixes]!r})"


@dataclass
class CloudConfig:
    """Provider credentials and the raw failover list.

    Attributes
    ----------
    username / password:
        Login pair sent with every SCP request.
    failover:
        CIDR strings as configured; see :meth:`prefix_set`.
    config / secret:
        Optional ``name@namespace`` references to a ConfigMap and a Secret
        which override the values above.
    """

    username: str = ""
    password: str = field(default="", repr=False)
    failover: List[str] = field(default_factory=list)
    config: Optional[str] = None
    secret: Optional[str] = None
    endpoint: str = DEFAULT_ENDPOINT
    timeout: float = 30.0

    def validate(self) -> None:
        if not self.username:
            raise ConfigurationError("missing cloud username")
        if not self.password:
            raise ConfigurationError("missing cloud password")
        if not self.failover:
            raise ConfigurationError("missing cloud failover")

    def prefix_set(self) -> FailoverPrefixSet:
        self.validate()
        return FailoverPrefixSet.from_cidrs(self.failover)
