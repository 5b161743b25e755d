"""
Fraud classification of tracking hits.

``Blocklists`` holds the current IP, CIDR and ISP lists as an immutable
snapshot. Writers build a new snapshot under a lock and swap it in, so a
request classifying a hit never sees a half-applied change.

``FraudDetector.check`` runs the ordered checks against one snapshot:
exact IP, CIDR range, ISP substring, organization substring, then
datacenter keywords in the organization name.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

from affitrack.core.config import settings
from affitrack.services import blocklist_data

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FraudVerdict:
    is_fraud: bool
    reason: Optional[str] = None
    category: Optional[str] = None  # ip, isp, organization, datacenter


CLEAN = FraudVerdict(is_fraud=False)


@dataclass(frozen=True)
class BlocklistSnapshot:
    ips: FrozenSet[str] = field(default_factory=frozenset)
    ranges: Tuple[str, ...] = ()
    isps: Tuple[str, ...] = ()


def ipv4_to_int(ip: str) -> Optional[int]:
    """Dotted quad to a 32-bit integer, None for anything else."""
    parts = ip.split(".")
    if len(parts) != 4:
        return None
    value = 0
    for part in parts:
        if not part.isdigit():
            return None
        octet = int(part)
        if octet > 255:
            return None
        value = (value << 8) | octet
    return value


def ip_in_cidr(ip: str, cidr: str) -> bool:
    """IPv4 containment by masked comparison. Non-IPv4 input never matches."""
    network, _, bits = cidr.partition("/")
    ip_num = ipv4_to_int(ip)
    net_num = ipv4_to_int(network)
    if ip_num is None or net_num is None:
        return False
    try:
        prefix = int(bits) if bits else 32
    except ValueError:
        return False
    if not 0 <= prefix <= 32:
        return False
    mask = (0xFFFFFFFF << (32 - prefix)) & 0xFFFFFFFF
    return (ip_num & mask) == (net_num & mask)


class Blocklists:
    """Runtime-mutable blocklists with copy-on-write snapshots."""

    def __init__(self):
        self._lock = threading.Lock()
        self._snapshot = BlocklistSnapshot()

    def load(
        self,
        ips: Iterable[str],
        ranges: Iterable[str],
        isps: Iterable[str],
    ) -> None:
        """Replace all lists at once."""
        snapshot = BlocklistSnapshot(
            ips=frozenset(ip.strip() for ip in ips if ip.strip()),
            ranges=tuple(r.strip() for r in ranges if r.strip()),
            isps=tuple(dict.fromkeys(i.strip().lower() for i in isps if i.strip())),
        )
        with self._lock:
            self._snapshot = snapshot
        logger.info(
            "Blocklists loaded: %d IPs, %d ranges, %d ISPs",
            len(snapshot.ips), len(snapshot.ranges), len(snapshot.isps),
        )

    def snapshot(self) -> BlocklistSnapshot:
        return self._snapshot

    def contains(self, ip: str) -> bool:
        return ip in self._snapshot.ips

    def add(self, ip: str) -> bool:
        """Block a single IP. Returns True if it was not blocked before."""
        ip = ip.strip()
        with self._lock:
            current = self._snapshot
            if ip in current.ips:
                return False
            self._snapshot = BlocklistSnapshot(
                ips=current.ips | {ip},
                ranges=current.ranges,
                isps=current.isps,
            )
        logger.warning("Blocklist: added IP %s", ip)
        return True

    def remove(self, ip: str) -> bool:
        """Unblock a single IP. Returns True if something was removed."""
        ip = ip.strip()
        with self._lock:
            current = self._snapshot
            if ip not in current.ips:
                return False
            self._snapshot = BlocklistSnapshot(
                ips=current.ips - {ip},
                ranges=current.ranges,
                isps=current.isps,
            )
        logger.warning("Blocklist: removed IP %s", ip)
        return True

    def stats(self) -> Dict[str, int]:
        snapshot = self._snapshot
        return {
            "blocked_ips": len(snapshot.ips),
            "blocked_ip_ranges": len(snapshot.ranges),
            "blocked_isps": len(snapshot.isps),
        }


def default_blocklists() -> Blocklists:
    """Blocklists seeded from the built-in data plus configured extras."""
    blocklists = Blocklists()
    blocklists.load(
        ips=[*blocklist_data.BLOCKED_IPS, *settings.extra_blocked_ip_list],
        ranges=[*blocklist_data.BLOCKED_IP_RANGES, *settings.extra_blocked_range_list],
        isps=blocklist_data.BLOCKED_ISPS,
    )
    return blocklists


class FraudDetector:
    """Ordered fraud checks against a ``Blocklists`` instance."""

    def __init__(self, blocklists: Blocklists):
        self.blocklists = blocklists

    def check(
        self,
        ip: str,
        isp: Optional[str] = None,
        organization: Optional[str] = None,
    ) -> FraudVerdict:
        snapshot = self.blocklists.snapshot()

        if ip in snapshot.ips:
            logger.warning("Fraud detected: blocked IP %s", ip)
            return FraudVerdict(True, f"IP {ip} is blacklisted", "ip")

        for cidr in snapshot.ranges:
            if ip_in_cidr(ip, cidr):
                logger.warning("Fraud detected: IP %s in blocked range %s", ip, cidr)
                return FraudVerdict(True, f"IP {ip} is in blocked range {cidr}", "ip")

        if isp:
            isp_lower = isp.lower()
            if any(token in isp_lower for token in snapshot.isps):
                logger.warning("Fraud detected: blocked ISP %r", isp)
                return FraudVerdict(True, f'ISP "{isp}" is blocked', "isp")

        if organization:
            org_lower = organization.lower()
            if any(token in org_lower for token in snapshot.isps):
                logger.warning("Fraud detected: blocked organization %r", organization)
                return FraudVerdict(True, f'Organization "{organization}" is blocked', "organization")

            if any(keyword in org_lower for keyword in blocklist_data.DATACENTER_KEYWORDS):
                logger.warning("Fraud detected: datacenter organization %r", organization)
                return FraudVerdict(
                    True,
                    f'Organization "{organization}" appears to be a datacenter',
                    "datacenter",
                )

        return CLEAN
