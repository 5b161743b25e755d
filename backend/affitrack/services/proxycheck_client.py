"""
ProxyCheck.io v3 client, used as the remote geolocation fallback.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

import httpx

from affitrack.core.config import settings

logger = logging.getLogger(__name__)

_ASN_PATTERN = re.compile(r"AS(\d+)", re.IGNORECASE)


@dataclass
class ProxyCheckResult:
    country: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    timezone: Optional[str] = None
    isp: Optional[str] = None
    organization: Optional[str] = None
    asn: Optional[int] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


def parse_asn(value) -> Optional[int]:
    """``"AS15169"`` -> 15169."""
    if isinstance(value, int):
        return value
    if not value:
        return None
    match = _ASN_PATTERN.search(str(value))
    return int(match.group(1)) if match else None


class ProxyCheckClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = settings.proxycheck_api_key if api_key is None else api_key
        self.base_url = (base_url or settings.proxycheck_base_url).rstrip("/")
        self.timeout = timeout or settings.geo_fallback_timeout
        self.client = client or httpx.AsyncClient(timeout=self.timeout)

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def close(self):
        await self.client.aclose()

    async def lookup(self, ip: str) -> Optional[ProxyCheckResult]:
        """Query ProxyCheck for one IP. None when disabled or on any failure."""
        if not self.enabled:
            return None

        try:
            response = await self.client.get(
                f"{self.base_url}/{ip}",
                params={"key": self.api_key},
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            logger.warning("ProxyCheck lookup error for %s: %s", ip, exc)
            return None

        if response.status_code != 200:
            logger.warning("ProxyCheck API error for %s: HTTP %s", ip, response.status_code)
            return None

        try:
            data = response.json()
        except ValueError:
            logger.warning("ProxyCheck returned a non-JSON body for %s", ip)
            return None

        status = data.get("status") if isinstance(data, dict) else None
        if status != "ok":
            logger.warning("ProxyCheck returned non-ok status for %s: %s", ip, status)
            return None

        ip_data = data.get(ip)
        if not isinstance(ip_data, dict):
            return None

        network = ip_data.get("network") or {}
        location = ip_data.get("location") or {}

        return ProxyCheckResult(
            country=location.get("country_code") or None,
            city=location.get("city_name") or None,
            region=location.get("region_name") or None,
            timezone=location.get("timezone") or None,
            isp=network.get("provider") or None,
            organization=network.get("organisation") or None,
            asn=parse_asn(network.get("asn")),
            latitude=location.get("latitude"),
            longitude=location.get("longitude"),
        )
