"""
Client IP resolution for tracking hits.

Headers are checked in order of trust: Cloudflare's client IP, the reverse
proxy's real IP, then the first hop of X-Forwarded-For, then the socket peer.
In development and staging the service usually sits behind NAT, so a private
or loopback result is replaced by the host's public address.
"""

from __future__ import annotations

import ipaddress
import logging
from typing import Mapping, Optional

import httpx

from affitrack.core.config import settings

logger = logging.getLogger(__name__)

UNKNOWN_IP = "unknown"

_LOCAL_NETWORKS = (
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("192.168.0.0/16"),
)


def strip_ipv4_mapping(ip: str) -> str:
    """Unwrap ``::ffff:1.2.3.4`` into ``1.2.3.4``."""
    if ip.lower().startswith("::ffff:"):
        return ip[7:]
    return ip


def is_local_or_private(ip: str) -> bool:
    """True for empty, loopback, unspecified, 10/8 and 192.168/16 addresses."""
    if not ip:
        return True
    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return False
    if addr.is_loopback or addr.is_unspecified:
        return True
    return addr.version == 4 and any(addr in net for net in _LOCAL_NETWORKS)


def ip_from_headers(headers: Mapping[str, str], client_host: Optional[str] = None) -> str:
    """Pick the first non-empty candidate, without any fallback lookup."""
    candidates = (
        headers.get("cf-connecting-ip"),
        headers.get("x-real-ip"),
        (headers.get("x-forwarded-for") or "").split(",")[0],
        client_host,
    )
    for candidate in candidates:
        if candidate and candidate.strip():
            return strip_ipv4_mapping(candidate.strip())
    return ""


class ClientIPResolver:
    """Resolve the originating IP of a tracking request."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        use_test_ip: Optional[bool] = None,
        test_ip: Optional[str] = None,
        public_ip_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.use_test_ip = settings.use_test_ip if use_test_ip is None else use_test_ip
        self.test_ip = settings.test_ip if test_ip is None else test_ip
        self.public_ip_url = public_ip_url or settings.public_ip_url
        self.timeout = timeout or settings.public_ip_timeout
        self.client = client or httpx.AsyncClient(timeout=self.timeout)

    async def close(self):
        await self.client.aclose()

    async def resolve(
        self,
        headers: Mapping[str, str],
        client_host: Optional[str] = None,
    ) -> str:
        """Return the client IP, the public IP fallback, or ``"unknown"``."""
        if self.use_test_ip and self.test_ip:
            logger.debug("Using test IP override %s", self.test_ip)
            return self.test_ip

        ip = ip_from_headers(headers, client_host)

        if is_local_or_private(ip):
            logger.info("Local/private client IP %r, fetching public IP", ip)
            ip = await self.fetch_public_ip()

        return ip

    async def fetch_public_ip(self) -> str:
        """Ask the public "what is my IP" service; ``"unknown"`` on any failure."""
        try:
            response = await self.client.get(self.public_ip_url, timeout=self.timeout)
        except httpx.HTTPError as exc:
            logger.warning("Public IP lookup failed: %s", exc)
            return UNKNOWN_IP

        if response.status_code != 200:
            logger.warning("Public IP lookup returned HTTP %s", response.status_code)
            return UNKNOWN_IP

        try:
            data = response.json()
        except ValueError:
            logger.warning("Public IP lookup returned a non-JSON body")
            return UNKNOWN_IP

        ip = data.get("ip") if isinstance(data, dict) else None
        if not ip or not isinstance(ip, str):
            logger.warning("Public IP lookup returned no address")
            return UNKNOWN_IP

        logger.debug("Public IP fetched: %s", ip)
        return ip
