"""
Persistence adapter for tracking hits.

The pipeline talks to ``TrackingStore`` only. ``SqlTrackingStore`` is the
PostgreSQL implementation: the recipient aggregate is upserted with
``INSERT .. ON CONFLICT (email) DO UPDATE`` so concurrent hits for the same
address never race on a read-modify-write.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from affitrack.db.postgres import async_session_maker
from affitrack.models.campaign import Campaign, Offer
from affitrack.models.tracking import RecipientAggregate, TrackingEvent
from affitrack.services.token_codec import EventKind

logger = logging.getLogger(__name__)

COUNTER_COLUMNS = {
    EventKind.OPEN: "open_count",
    EventKind.CLICK: "click_count",
    EventKind.UNSUBSCRIBE: "unsub_count",
}


@dataclass
class CampaignTarget:
    """What the pipeline needs to know about a campaign for one hit."""
    campaign_id: str
    offer_id: str
    redirect_url: Optional[str] = None
    allowed_countries: List[str] = field(default_factory=list)


@dataclass
class AggregateUpdate:
    email: str
    kind: EventKind
    country: Optional[str] = None
    ip_address: Optional[str] = None
    os: Optional[str] = None
    browser: Optional[str] = None
    timezone: Optional[str] = None
    occurred_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class EventRecord:
    """One row of the append-only event log."""
    event_type: str
    campaign_id: str
    offer_id: str
    email_hash: str
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    referer: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    isp: Optional[str] = None
    organization: Optional[str] = None
    asn: Optional[int] = None
    timezone: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    device_type: Optional[str] = None
    browser: Optional[str] = None
    browser_version: Optional[str] = None
    os: Optional[str] = None
    is_invalid: bool = False
    is_fraud: bool = False
    fraud_reason: Optional[str] = None
    recipient_id: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)


def _as_uuid(value) -> Optional[uuid.UUID]:
    if value is None or isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class TrackingStore(ABC):
    """Storage operations used by the tracking pipeline."""

    @abstractmethod
    async def find_campaign_target(self, campaign_id: str, kind: EventKind) -> Optional[CampaignTarget]:
        """Campaign plus the redirect URL for ``kind``, or None if unknown."""

    @abstractmethod
    async def upsert_recipient_aggregate(self, update: AggregateUpdate) -> str:
        """Create or bump the aggregate row for ``update.email``; returns its id."""

    @abstractmethod
    async def create_tracking_event(self, event: EventRecord) -> str:
        """Append one event; returns its id."""

    @abstractmethod
    async def record_hit(self, update: AggregateUpdate, event: EventRecord) -> str:
        """Upsert the aggregate and insert the event linked to it, atomically."""


def build_aggregate_upsert(update: AggregateUpdate):
    """``INSERT .. ON CONFLICT`` statement incrementing one counter."""
    counter = COUNTER_COLUMNS[EventKind(update.kind)]
    values = {
        "id": uuid.uuid4(),
        "email": update.email.strip().lower(),
        "open_count": 0,
        "click_count": 0,
        "unsub_count": 0,
        "last_event": update.occurred_at,
        "country": update.country,
        "ip_address": update.ip_address,
        "os": update.os,
        "browser": update.browser,
        "timezone": update.timezone,
        "created_at": update.occurred_at,
    }
    values[counter] = 1

    table = RecipientAggregate.__table__
    stmt = pg_insert(table).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.email],
        set_={
            counter: table.c[counter] + 1,
            "last_event": stmt.excluded.last_event,
            "country": stmt.excluded.country,
            "ip_address": stmt.excluded.ip_address,
            "os": stmt.excluded.os,
            "browser": stmt.excluded.browser,
            "timezone": stmt.excluded.timezone,
        },
    )
    return stmt.returning(table.c.id)


def event_row(event: EventRecord) -> TrackingEvent:
    return TrackingEvent(
        event_type=event.event_type,
        campaign_id=_as_uuid(event.campaign_id),
        offer_id=_as_uuid(event.offer_id),
        recipient_id=_as_uuid(event.recipient_id),
        email_hash=event.email_hash,
        ip=event.ip,
        user_agent=event.user_agent,
        referer=event.referer,
        country=event.country,
        city=event.city,
        region=event.region,
        isp=event.isp,
        organization=event.organization,
        asn=event.asn,
        timezone=event.timezone,
        latitude=event.latitude,
        longitude=event.longitude,
        device_type=event.device_type,
        browser=event.browser,
        browser_version=event.browser_version,
        os=event.os,
        is_invalid=event.is_invalid,
        is_fraud=event.is_fraud,
        fraud_reason=event.fraud_reason,
        created_at=event.created_at,
    )


class SqlTrackingStore(TrackingStore):
    """SQLAlchemy/asyncpg implementation."""

    def __init__(self, session_factory=async_session_maker):
        self.session_factory = session_factory

    async def find_campaign_target(self, campaign_id: str, kind: EventKind) -> Optional[CampaignTarget]:
        cid = _as_uuid(campaign_id)
        if cid is None:
            logger.debug("Campaign id %r is not a UUID", campaign_id)
            return None

        async with self.session_factory() as session:
            result = await session.execute(
                select(Campaign, Offer.allowed_countries)
                .join(Offer, Campaign.offer_id == Offer.id)
                .where(Campaign.id == cid)
            )
            row = result.first()

        if row is None:
            return None

        campaign, allowed = row
        if kind == EventKind.CLICK:
            redirect_url = campaign.cortex_click_tracking
        elif kind == EventKind.UNSUBSCRIBE:
            redirect_url = campaign.cortex_unsb_tracking
        else:
            redirect_url = None

        return CampaignTarget(
            campaign_id=str(campaign.id),
            offer_id=str(campaign.offer_id),
            redirect_url=redirect_url or None,
            allowed_countries=list(allowed or []),
        )

    async def _upsert(self, session: AsyncSession, update: AggregateUpdate) -> str:
        result = await session.execute(build_aggregate_upsert(update))
        return str(result.scalar_one())

    async def upsert_recipient_aggregate(self, update: AggregateUpdate) -> str:
        async with self.session_factory() as session:
            async with session.begin():
                return await self._upsert(session, update)

    async def create_tracking_event(self, event: EventRecord) -> str:
        async with self.session_factory() as session:
            async with session.begin():
                row = event_row(event)
                session.add(row)
                await session.flush()
                return str(row.id)

    async def record_hit(self, update: AggregateUpdate, event: EventRecord) -> str:
        async with self.session_factory() as session:
            async with session.begin():
                event.recipient_id = await self._upsert(session, update)
                row = event_row(event)
                session.add(row)
                await session.flush()
                return str(row.id)
