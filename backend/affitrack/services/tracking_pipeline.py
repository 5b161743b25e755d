"""
Event resolution pipeline for tracking hits.

One call to ``TrackingPipeline.handle`` per hit:

    decode token -> campaign lookup -> client IP -> geo + user agent
    -> fraud check -> country validity -> schedule persistence

The outcome is returned as soon as classification is done. Persistence runs
as a detached asyncio task owned by ``BackgroundPersistence``; the HTTP
response never waits for the database write.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from functools import partial
from typing import Awaitable, Mapping, Optional, Set

from affitrack.services.client_ip import ClientIPResolver
from affitrack.services.countries import country_name
from affitrack.services.device_classifier import DeviceClassifier, DeviceInfo
from affitrack.services.fraud_detector import FraudDetector, FraudVerdict
from affitrack.services.geolocation import UNKNOWN_CITY, GeoRecord, GeoResolver
from affitrack.services.token_codec import EventKind, TrackingToken, decode_tracking_token, hash_email
from affitrack.services.tracking_store import (
    AggregateUpdate,
    CampaignTarget,
    EventRecord,
    TrackingStore,
)

logger = logging.getLogger(__name__)


class OutcomeState(str, Enum):
    TOKEN_INVALID = "token_invalid"
    CAMPAIGN_NOT_FOUND = "campaign_not_found"
    FRAUD_BLOCKED = "fraud_blocked"
    ALLOWED = "allowed"


@dataclass
class TrackingOutcome:
    """Result of classifying one hit."""
    state: OutcomeState
    kind: EventKind
    token: Optional[TrackingToken] = None
    target: Optional[CampaignTarget] = None
    ip: Optional[str] = None
    geo: Optional[GeoRecord] = None
    device: Optional[DeviceInfo] = None
    verdict: Optional[FraudVerdict] = None
    is_invalid: bool = False
    task: Optional[asyncio.Task] = None

    @property
    def redirect_url(self) -> Optional[str]:
        return self.target.redirect_url if self.target else None


class BackgroundPersistence:
    """Owner of detached persistence tasks.

    Keeps a strong reference to every pending task so the event loop cannot
    garbage-collect it mid-flight. Failures are logged by the done-callback
    and never propagate to the request that scheduled them.
    """

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, coro: Awaitable, description: str) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(partial(self._on_done, description))
        return task

    def _on_done(self, description: str, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Persistence task cancelled: %s", description)
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Persistence failed for %s: %s", description, exc, exc_info=exc)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for pending writes, e.g. on shutdown."""
        if not self._tasks:
            return
        logger.info("Draining %d pending persistence task(s)", len(self._tasks))
        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if pending:
            logger.warning("%d persistence task(s) still pending after drain", len(pending))


class TrackingPipeline:
    def __init__(
        self,
        store: TrackingStore,
        ip_resolver: ClientIPResolver,
        geo_resolver: GeoResolver,
        fraud_detector: FraudDetector,
        device_classifier: DeviceClassifier,
        persistence: Optional[BackgroundPersistence] = None,
    ):
        self.store = store
        self.ip_resolver = ip_resolver
        self.geo_resolver = geo_resolver
        self.fraud_detector = fraud_detector
        self.device_classifier = device_classifier
        self.persistence = persistence or BackgroundPersistence()

    async def handle(
        self,
        kind: EventKind,
        segment: str,
        email: str,
        headers: Mapping[str, str],
        client_host: Optional[str] = None,
        referer: Optional[str] = None,
    ) -> TrackingOutcome:
        """Classify one hit and schedule its persistence.

        ``kind`` comes from the route, ``email`` from the raw path suffix.
        The email inside the token is ignored.
        """
        kind = EventKind(kind)

        token = decode_tracking_token(segment)
        if token is None:
            logger.warning("Invalid %s tracking token: %r", kind.value, segment[:80])
            return TrackingOutcome(OutcomeState.TOKEN_INVALID, kind)

        target = await self.store.find_campaign_target(token.campaign_id, kind)
        if target is None:
            logger.warning("Campaign %s not found for %s hit", token.campaign_id, kind.value)
            return TrackingOutcome(OutcomeState.CAMPAIGN_NOT_FOUND, kind, token=token)
        if kind != EventKind.OPEN and not target.redirect_url:
            logger.warning("Campaign %s has no %s redirect target", token.campaign_id, kind.value)
            return TrackingOutcome(OutcomeState.CAMPAIGN_NOT_FOUND, kind, token=token, target=target)

        ip = await self.ip_resolver.resolve(headers, client_host)
        user_agent = headers.get("user-agent") or ""

        geo, device = await asyncio.gather(
            self.geo_resolver.lookup(ip),
            self.device_classifier.classify_async(user_agent),
        )

        verdict = self.fraud_detector.check(ip, geo.isp, geo.organization)

        display_country = country_name(geo.country)
        is_invalid = display_country not in (target.allowed_countries or [])

        normalized_email = (email or "").strip().lower()
        now = datetime.utcnow()

        event = EventRecord(
            event_type=kind.value,
            campaign_id=target.campaign_id,
            offer_id=target.offer_id,
            email_hash=hash_email(normalized_email),
            ip=ip,
            user_agent=user_agent,
            referer=referer,
            country=display_country or None,
            city=geo.city or geo.region or UNKNOWN_CITY,
            region=geo.region,
            isp=geo.isp or geo.organization,
            organization=geo.organization,
            asn=geo.asn,
            timezone=geo.timezone,
            latitude=geo.latitude,
            longitude=geo.longitude,
            device_type=device.device_type,
            browser=device.browser,
            browser_version=device.browser_version,
            os=device.os,
            created_at=now,
        )

        outcome = TrackingOutcome(
            OutcomeState.ALLOWED,
            kind,
            token=token,
            target=target,
            ip=ip,
            geo=geo,
            device=device,
            verdict=verdict,
        )

        if verdict.is_fraud:
            logger.warning(
                "Blocked fraudulent %s for campaign %s: %s",
                kind.value, target.campaign_id, verdict.reason,
            )
            event.is_fraud = True
            event.is_invalid = False
            event.fraud_reason = verdict.reason
            outcome.state = OutcomeState.FRAUD_BLOCKED
            outcome.task = self.persistence.schedule(
                self.store.create_tracking_event(event),
                f"fraud {kind.value} event for campaign {target.campaign_id}",
            )
            return outcome

        event.is_invalid = is_invalid
        outcome.is_invalid = is_invalid
        if is_invalid:
            logger.info(
                "Invalid-country %s for campaign %s: %r not in allowed list",
                kind.value, target.campaign_id, display_country,
            )

        update = AggregateUpdate(
            email=normalized_email,
            kind=kind,
            country=display_country or None,
            ip_address=ip,
            os=device.os,
            browser=device.browser,
            timezone=geo.timezone,
            occurred_at=now,
        )
        outcome.task = self.persistence.schedule(
            self.store.record_hit(update, event),
            f"{kind.value} hit for campaign {target.campaign_id}",
        )
        return outcome

    async def aclose(self):
        await self.persistence.drain(timeout=10)
        await self.ip_resolver.close()
        await self.geo_resolver.aclose()
