"""
Network-side signal sources: VPN heuristics and IP-based secondary location.

VPN detection combines interface names, an optional platform transport flag
and the configured DNS resolvers. The DNS list is a deployment policy (public
resolvers are also used without a VPN); pass an empty list to disable it.
Failures default to "no VPN" / "no secondary location" (cannot judge).
"""

from __future__ import annotations

import socket
from pathlib import Path
from typing import Any, Callable, Iterable

import httpx

from attendance_guard.analysis_engine.models import Coordinate
from attendance_guard.guard_logging import get_logger
from attendance_guard.sources.indicators import VPN_INTERFACE_MARKERS

logger = get_logger(__name__)

RESOLV_CONF_PATH = Path("/etc/resolv.conf")
DEFAULT_IP_GEO_TIMEOUT_SEC = 10.0


def local_interface_names() -> list[str]:
    return [name for _, name in socket.if_nameindex()]


def resolv_conf_servers(path: Path = RESOLV_CONF_PATH) -> list[str]:
    """Nameserver entries from a resolv.conf-style file; empty when unreadable."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError:
        return []
    servers = []
    for line in text.splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[0] == "nameserver":
            servers.append(parts[1])
    return servers


class VpnDetector:
    """NetworkSource: any method reporting a VPN means a VPN is active."""

    def __init__(
        self,
        *,
        vpn_dns_servers: Iterable[str] = (),
        interface_markers: Iterable[str] = VPN_INTERFACE_MARKERS,
        interface_names: Callable[[], Iterable[str]] = local_interface_names,
        dns_servers: Callable[[], Iterable[str]] = resolv_conf_servers,
        transport_is_vpn: Callable[[], bool] | None = None,
    ) -> None:
        self.vpn_dns_servers = frozenset(vpn_dns_servers)
        self.interface_markers = tuple(m.lower() for m in interface_markers)
        self._interface_names = interface_names
        self._dns_servers = dns_servers
        self._transport_is_vpn = transport_is_vpn

    def is_vpn_active(self) -> bool:
        for method in (self._vpn_interface, self._vpn_transport, self._vpn_dns):
            try:
                reason = method()
            except Exception as e:
                logger.debug("vpn_check_failed", method=method.__name__, error=str(e))
                continue
            if reason:
                logger.info("vpn_detected", method=method.__name__, reason=reason)
                return True
        return False

    def _vpn_interface(self) -> str | None:
        for name in self._interface_names():
            lowered = name.lower()
            if any(marker in lowered for marker in self.interface_markers):
                return f"interface:{name}"
        return None

    def _vpn_transport(self) -> str | None:
        if self._transport_is_vpn is not None and self._transport_is_vpn():
            return "transport:vpn"
        return None

    def _vpn_dns(self) -> str | None:
        if not self.vpn_dns_servers:
            return None
        for server in self._dns_servers():
            if server in self.vpn_dns_servers:
                return f"dns:{server}"
        return None


class NullSecondaryGeoSource:
    """SecondaryGeoSource with no backing service: always cannot-judge."""

    def lookup(self) -> Coordinate | None:
        return None


def _coordinate_from_payload(data: dict[str, Any]) -> Coordinate | None:
    lat = data.get("latitude", data.get("lat"))
    lon = data.get("longitude", data.get("lon", data.get("lng")))
    if lat is None or lon is None:
        return None
    return Coordinate(float(lat), float(lon))


class IpGeoSource:
    """
    SecondaryGeoSource backed by an IP geolocation HTTP endpoint returning
    JSON with latitude/longitude (or lat/lon). Any failure → None.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout_sec: float = DEFAULT_IP_GEO_TIMEOUT_SEC,
        client: httpx.Client | None = None,
    ) -> None:
        self.url = url
        self.timeout_sec = timeout_sec
        self._client = client

    def lookup(self) -> Coordinate | None:
        try:
            if self._client is not None:
                resp = self._client.get(self.url, timeout=self.timeout_sec)
            else:
                with httpx.Client(timeout=self.timeout_sec) as client:
                    resp = client.get(self.url)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.debug("ip_geo_lookup_failed", url=self.url, error=str(e))
            return None
        if not isinstance(data, dict):
            return None
        try:
            return _coordinate_from_payload(data)
        except (TypeError, ValueError) as e:
            logger.debug("ip_geo_payload_invalid", error=str(e))
            return None
