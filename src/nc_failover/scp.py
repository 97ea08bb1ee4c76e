"""Thin SOAP client for the server control panel web service.

Only the five calls the failover engine needs are implemented.  Requests are
rendered by hand and responses parsed with :mod:`xml.etree.ElementTree`; the
service is stateless so every call carries the login pair.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple
from xml.sax.saxutils import escape

import requests

from .config import DEFAULT_ENDPOINT
from .deadline import Deadline, timeout_for
from .errors import RemoteAPIError

LOG = logging.getLogger(__name__)

XMLNS = "http://enduser.service.web.vcp.netcup.de/"
SOAP_ENV = "http://schemas.xmlsoap.org/soap/envelope/"

SERVER_STATE_OFFLINE = "offline"

ENVELOPE = (
    '<?xml version="1.0" encoding="UTF-8"?>'
    f'<soapenv:Envelope xmlns:soapenv="{SOAP_ENV}" xmlns:end="{XMLNS}">'
    "<soapenv:Header/>"
    "<soapenv:Body>{body}</soapenv:Body>"
    "</soapenv:Envelope>"
)


@dataclass(frozen=True)
class ServerInterface:
    """Network interface of a server as reported by ``getVServerInformation``."""

    mac: str
    ipv4: Sequence[str] = ()
    ipv6: Sequence[str] = ()

    def is_dual_stack(self) -> bool:
        return bool(self.ipv4) and bool(self.ipv6)


@dataclass(frozen=True)
class ServerInfo:
    name: str
    status: str
    ips: Sequence[str] = ()
    interfaces: Sequence[ServerInterface] = field(default_factory=tuple)

    @property
    def offline(self) -> bool:
        return self.status == SERVER_STATE_OFFLINE


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _children(element: ET.Element, name: str) -> List[ET.Element]:
    return [child for child in element if _local(child.tag) == name]


def _text(element: ET.Element, name: str) -> str:
    found = _children(element, name)
    if not found:
        return ""
    return (found[0].text or "").strip()


def _texts(element: ET.Element, name: str) -> List[str]:
    return [(child.text or "").strip() for child in _children(element, name) if child.text]


class ScpClient:
    """Issue SCP requests with a fixed login pair.

    Parameters
    ----------
    username / password:
        Credentials sent in every request body.
    endpoint:
        SOAP endpoint URL.
    timeout:
        Default per-request timeout in seconds; a caller supplied
        :class:`~nc_failover.deadline.Deadline` can only shorten it.
    session:
        Optional :class:`requests.Session`, mainly for tests.
    """

    def __init__(
        self,
        username: str,
        password: str,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._username = username
        self._password = password
        self._endpoint = endpoint
        self._timeout = timeout
        self._session = session or requests.Session()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def get_vservers(self, deadline: Optional[Deadline] = None) -> List[str]:
        result = self._call("getVServers", (), deadline)
        return _texts(result, "return")

    def get_vserver_state(self, name: str, deadline: Optional[Deadline] = None) -> str:
        result = self._call("getVServerState", (("vserverName", name),), deadline)
        return _text(result, "return")

    def get_vserver_information(
        self, name: str, deadline: Optional[Deadline] = None
    ) -> ServerInfo:
        result = self._call("getVServerInformation", (("vservername", name),), deadline)
        returned = _children(result, "return")
        if not returned:
            raise RemoteAPIError(f"getVServerInformation returned no data for '{name}'")
        info = returned[0]
        interfaces = tuple(
            ServerInterface(
                mac=_text(iface, "mac"),
                ipv4=tuple(_texts(iface, "ipv4IP")),
                ipv6=tuple(_texts(iface, "ipv6IP")),
            )
            for iface in _children(info, "serverInterfaces")
        )
        return ServerInfo(
            name=_text(info, "vServerName") or name,
            status=_text(info, "status"),
            ips=tuple(_texts(info, "ips")),
            interfaces=interfaces,
        )

    def get_vserver_ips(self, name: str, deadline: Optional[Deadline] = None) -> List[str]:
        result = self._call("getVServerIPs", (("vserverName", name),), deadline)
        return _texts(result, "return")

    def change_ip_routing(
        self,
        routed_ip: str,
        routed_mask: str,
        server_name: str,
        interface_mac: str,
        deadline: Optional[Deadline] = None,
    ) -> bool:
        LOG.info(
            "Routing failover IP %s/%s to server '%s' interface %s",
            routed_ip,
            routed_mask,
            server_name,
            interface_mac,
        )
        result = self._call(
            "changeIPRouting",
            (
                ("routedIP", routed_ip),
                ("routedMask", routed_mask),
                ("destinationVserverName", server_name),
                ("destinationInterfaceMAC", interface_mac),
            ),
            deadline,
        )
        return _text(result, "return").lower() == "true"

    # ------------------------------------------------------------------
    # SOAP plumbing
    # ------------------------------------------------------------------
    def render(self, operation: str, params: Sequence[Tuple[str, str]]) -> str:
        fields = [("loginName", self._username), ("password", self._password), *params]
        inner = "".join(f"<{key}>{escape(str(value))}</{key}>" for key, value in fields)
        return ENVELOPE.format(body=f"<end:{operation}>{inner}</end:{operation}>")

    def _call(
        self,
        operation: str,
        params: Sequence[Tuple[str, str]],
        deadline: Optional[Deadline],
    ) -> ET.Element:
        timeout = timeout_for(deadline, self._timeout, operation)
        LOG.debug("SCP request %s", operation)
        try:
            response = self._session.post(
                self._endpoint,
                data=self.render(operation, params).encode("utf-8"),
                headers={"Content-Type": "text/xml; charset=utf-8", "SOAPAction": '""'},
                timeout=timeout,
            )
        except requests.exceptions.RequestException as exc:
            raise RemoteAPIError(f"{operation} failed: {exc}") from exc
        return self._parse(operation, response)

    def _parse(self, operation: str, response: requests.Response) -> ET.Element:
        try:
            root = ET.fromstring(response.content)
        except ET.ParseError as exc:
            raise RemoteAPIError(
                f"{operation} returned unparsable response (HTTP {response.status_code})"
            ) from exc

        body = next((el for el in root if _local(el.tag) == "Body"), None)
        if body is None:
            raise RemoteAPIError(f"{operation} response has no SOAP body")

        fault = next((el for el in body if _local(el.tag) == "Fault"), None)
        if fault is not None:
            raise RemoteAPIError(f"{operation} fault: {_text(fault, 'faultstring') or 'unknown'}")
        if not response.ok:
            raise RemoteAPIError(f"{operation} failed with HTTP {response.status_code}")

        result = next(
            (el for el in body if _local(el.tag) == f"{operation}Response"), None
        )
        if result is None:
            raise RemoteAPIError(f"{operation} response element missing")
        return result
