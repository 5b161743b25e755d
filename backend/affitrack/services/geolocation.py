"""
Tiered IP geolocation.

Tiers, in priority order:
    1. GeoLite2-City   country, city, region, coordinates, timezone
    2. GeoIP2-ISP      ISP name
    3. GeoLite2-ASN    organization and ASN, ISP backfill
    4. ProxyCheck v3   only when the local result is incomplete

Each tier is independent: a missing database or a failed lookup skips that
tier and the record keeps whatever the other tiers produced.
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import os
import threading
from dataclasses import dataclass, fields, replace
from typing import Dict, Optional

import geoip2.database
import geoip2.errors

from affitrack.core.config import settings
from affitrack.services.proxycheck_client import ProxyCheckClient

logger = logging.getLogger(__name__)

UNKNOWN_CITY = "Unknown"


@dataclass
class GeoRecord:
    country: Optional[str] = None  # ISO alpha-2
    city: Optional[str] = None
    region: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    isp: Optional[str] = None
    organization: Optional[str] = None
    asn: Optional[int] = None
    timezone: Optional[str] = None

    @property
    def is_incomplete(self) -> bool:
        return (
            not self.country
            or not self.city
            or self.city == UNKNOWN_CITY
            or not self.timezone
            or not self.region
        )


def merge_geo_records(primary: GeoRecord, fallback) -> GeoRecord:
    """Fill the gaps of ``primary`` from ``fallback``.

    Populated fields of ``primary`` always win. The ``"Unknown"`` city
    placeholder counts as a gap, and is kept when the fallback has no city
    either. ``fallback`` may be any object with the same attribute names.
    """
    if fallback is None:
        return primary

    updates = {}
    for f in fields(GeoRecord):
        current = getattr(primary, f.name)
        candidate = getattr(fallback, f.name, None)
        if f.name == "city":
            if (not current or current == UNKNOWN_CITY) and candidate:
                updates["city"] = candidate
            continue
        if current is None and candidate not in (None, ""):
            updates[f.name] = candidate

    return replace(primary, **updates) if updates else primary


def is_unroutable(ip: str) -> bool:
    """Addresses that cannot be geolocated: unknown, private, loopback..."""
    if not ip or ip == "unknown":
        return True
    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return True
    return (
        addr.is_private
        or addr.is_loopback
        or addr.is_unspecified
        or addr.is_link_local
        or addr.is_multicast
        or addr.is_reserved
    )


class GeoResolver:
    """MaxMind readers plus the ProxyCheck fallback.

    Readers are opened lazily on first use and kept for the process
    lifetime; a database that fails to open is not retried.
    """

    def __init__(
        self,
        paths: Optional[Dict[str, str]] = None,
        fallback: Optional[ProxyCheckClient] = None,
    ):
        self.paths = paths if paths is not None else settings.geoip_paths
        self.fallback = fallback if fallback is not None else ProxyCheckClient()
        self._readers: Dict[str, Optional[geoip2.database.Reader]] = {}
        self._readers_lock = threading.Lock()

    def _reader(self, name: str) -> Optional[geoip2.database.Reader]:
        with self._readers_lock:
            if name not in self._readers:
                self._readers[name] = self._open_reader(name)
            return self._readers[name]

    def _open_reader(self, name: str) -> Optional[geoip2.database.Reader]:
        path = self.paths.get(name)
        reader = None
        if path and os.path.exists(path):
            try:
                reader = geoip2.database.Reader(path)
                logger.info("Opened GeoIP %s database: %s", name, path)
            except (OSError, ValueError, RuntimeError) as exc:
                logger.error("Failed to open GeoIP %s database %s: %s", name, path, exc)
        else:
            logger.warning("GeoIP %s database not found at %s, tier disabled", name, path)
        return reader

    def close(self):
        for reader in self._readers.values():
            if reader is not None:
                reader.close()
        self._readers.clear()

    async def aclose(self):
        self.close()
        await self.fallback.close()

    def _lookup_city(self, ip: str, record: GeoRecord) -> None:
        reader = self._reader("city")
        if reader is None:
            return
        try:
            response = reader.city(ip)
        except geoip2.errors.AddressNotFoundError:
            logger.debug("No city data for %s", ip)
            return
        except (geoip2.errors.GeoIP2Error, ValueError) as exc:
            logger.warning("City lookup error for %s: %s", ip, exc)
            return

        subdivision = response.subdivisions[0].name if response.subdivisions else None
        record.country = response.country.iso_code or None
        record.city = response.city.name or subdivision or UNKNOWN_CITY
        record.region = subdivision or None
        record.latitude = response.location.latitude
        record.longitude = response.location.longitude
        record.timezone = response.location.time_zone or None

    def _lookup_isp(self, ip: str, record: GeoRecord) -> bool:
        reader = self._reader("isp")
        if reader is None:
            return False
        try:
            response = reader.isp(ip)
        except geoip2.errors.AddressNotFoundError:
            return False
        except (geoip2.errors.GeoIP2Error, ValueError) as exc:
            logger.warning("ISP lookup error for %s: %s", ip, exc)
            return False

        record.isp = response.isp or response.organization or None
        return True

    def _lookup_asn(self, ip: str, record: GeoRecord, isp_found: bool) -> None:
        reader = self._reader("asn")
        if reader is None:
            return
        try:
            response = reader.asn(ip)
        except geoip2.errors.AddressNotFoundError:
            logger.debug("No ASN data for %s", ip)
            return
        except (geoip2.errors.GeoIP2Error, ValueError) as exc:
            logger.warning("ASN lookup error for %s: %s", ip, exc)
            return

        record.organization = response.autonomous_system_organization or None
        record.asn = response.autonomous_system_number
        if not isp_found:
            record.isp = record.organization

    def lookup_local(self, ip: str) -> GeoRecord:
        """MaxMind tiers only. Blocking file reads."""
        record = GeoRecord()
        if is_unroutable(ip):
            logger.debug("Skipping geolocation for unroutable IP %r", ip)
            return record

        self._lookup_city(ip, record)
        isp_found = self._lookup_isp(ip, record)
        self._lookup_asn(ip, record, isp_found)
        return record

    async def lookup(self, ip: str) -> GeoRecord:
        """Resolve a full record for ``ip``. Never raises."""
        if is_unroutable(ip):
            logger.debug("Skipping geolocation for unroutable IP %r", ip)
            return GeoRecord()

        try:
            loop = asyncio.get_running_loop()
            record = await loop.run_in_executor(None, self.lookup_local, ip)
        except Exception:
            logger.exception("Local geolocation failed for %s", ip)
            record = GeoRecord()

        if record.is_incomplete and self.fallback.enabled:
            logger.debug("Local geo data incomplete for %s, trying ProxyCheck", ip)
            try:
                remote = await self.fallback.lookup(ip)
            except Exception:
                logger.exception("ProxyCheck fallback failed for %s", ip)
                remote = None
            record = merge_geo_records(record, remote)

        return record
