"""
Reporting over tracking events: dashboard counters, the campaign table,
per-campaign insights and segment counts.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from dateutil import parser
from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from affitrack.models import Campaign, Offer, RecipientAggregate, Sponsor, TrackingEvent
from affitrack.services.token_codec import EventKind

logger = logging.getLogger(__name__)

INSIGHT_DIMENSIONS = {
    "operating_systems": "os",
    "browsers": "browser",
    "locations": "country",
    "cities": "city",
    "device_types": "device_type",
    "timezones": "timezone",
    "email_domains": "email_domain",
}

SEGMENT_FILTERS = ("os", "browser", "country", "device_type", "event_type")


def _to_naive_utc(value: datetime) -> datetime:
    # Event timestamps are stored as naive UTC
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_date_range(
    start: Optional[str],
    end: Optional[str],
) -> Optional[Tuple[datetime, datetime]]:
    """Parse a report date range. None when missing, unparseable or reversed."""
    if not start or not end:
        return None
    try:
        start_dt = parser.isoparse(start)
        end_dt = parser.isoparse(end)
    except (ValueError, OverflowError):
        return None

    start_dt = _to_naive_utc(start_dt)
    end_dt = _to_naive_utc(end_dt)

    if start_dt > end_dt:
        return None
    return start_dt, end_dt


def summarize_events(events: Iterable[Any]) -> Dict[str, Dict[str, int]]:
    """Per-kind totals for the campaign table.

    ``unique`` counts distinct (email_hash, ip) pairs among valid events;
    ``duplicates`` is what remains of the total after unique and invalid.
    """
    totals = {kind: 0 for kind in EventKind}
    invalid = {kind: 0 for kind in EventKind}
    unique = {kind: set() for kind in EventKind}

    for event in events:
        try:
            kind = EventKind(event.event_type)
        except ValueError:
            continue
        totals[kind] += 1
        if event.is_invalid:
            invalid[kind] += 1
        else:
            unique[kind].add(f"{event.email_hash}-{event.ip}")

    summary = {}
    for kind in EventKind:
        unique_count = len(unique[kind])
        summary[kind.value] = {
            "total": totals[kind],
            "unique": unique_count,
            "duplicates": totals[kind] - unique_count - invalid[kind],
            "invalid": invalid[kind],
        }
    return summary


def _percent(part: int, total: int) -> float:
    return (part / total) * 100 if total > 0 else 0


def email_domain(email: Optional[str]) -> str:
    if not email or "@" not in email:
        return "Unknown"
    return email.split("@", 1)[1] or "Unknown"


def aggregate_by(rows: Iterable[Dict[str, Any]], field: str) -> List[Dict[str, Any]]:
    """Group event rows by ``field`` and compute per-kind counts and shares.

    Missing values are grouped under ``"Unknown"``. Sorted by group size,
    largest first.
    """
    groups: Dict[str, Dict[str, int]] = defaultdict(
        lambda: {"total": 0, "open": 0, "click": 0, "unsubscribe": 0}
    )

    for row in rows:
        if field == "email_domain":
            key = email_domain(row.get("email"))
        else:
            value = row.get(field)
            key = value if isinstance(value, str) and value else "Unknown"

        group = groups[key]
        group["total"] += 1
        if row.get("event_type") in group:
            group[row["event_type"]] += 1

    result = []
    for name, stats in groups.items():
        total = stats["total"]
        result.append({
            "name": name,
            "total_records": total,
            "opened": {"count": stats["open"], "percent": _percent(stats["open"], total)},
            "clicked": {"count": stats["click"], "percent": _percent(stats["click"], total)},
            "unsubscribed": {"count": stats["unsubscribe"], "percent": _percent(stats["unsubscribe"], total)},
        })

    result.sort(key=lambda item: item["total_records"], reverse=True)
    return result


def segment_conditions(campaign_id: UUID, filters: Dict[str, Optional[str]]) -> list:
    """WHERE clauses for a segment count. ``"all"`` or empty means no filter."""
    conditions = [
        TrackingEvent.campaign_id == campaign_id,
        TrackingEvent.is_invalid.is_(False),
    ]
    for name in SEGMENT_FILTERS:
        value = filters.get(name)
        if value and value != "all":
            conditions.append(getattr(TrackingEvent, name) == value)
    return conditions


class AnalyticsService:
    """Service for campaign reporting."""

    async def count_events(
        self,
        session: AsyncSession,
        event_type: EventKind,
        start: datetime,
        end: datetime,
        invalid: bool = False,
    ) -> int:
        """Count events of one kind in a date range.

        ``invalid=False`` counts every event not flagged invalid;
        ``invalid=True`` counts invalid, non-fraud events.
        """
        conditions = [
            TrackingEvent.event_type == EventKind(event_type).value,
            TrackingEvent.is_invalid.is_(invalid),
            TrackingEvent.created_at >= start,
            TrackingEvent.created_at <= end,
        ]
        if invalid:
            conditions.append(TrackingEvent.is_fraud.is_(False))

        result = await session.execute(
            select(func.count(TrackingEvent.id)).where(and_(*conditions))
        )
        return int(result.scalar() or 0)

    async def fraud_counts(
        self,
        session: AsyncSession,
        start: datetime,
        end: datetime,
    ) -> Dict[str, int]:
        result = await session.execute(
            select(TrackingEvent.event_type, func.count(TrackingEvent.id))
            .where(
                and_(
                    TrackingEvent.is_fraud.is_(True),
                    TrackingEvent.created_at >= start,
                    TrackingEvent.created_at <= end,
                )
            )
            .group_by(TrackingEvent.event_type)
        )
        counts = {kind.value: 0 for kind in EventKind}
        for event_type, count in result.all():
            counts[event_type] = int(count)
        counts["total"] = sum(counts[kind.value] for kind in EventKind)
        return counts

    async def campaign_table(
        self,
        session: AsyncSession,
        start: datetime,
        end: datetime,
    ) -> List[Dict[str, Any]]:
        """Per active campaign: unique counts, tooltip extras and links."""
        result = await session.execute(
            select(Campaign, Offer.name, Sponsor.name)
            .join(Offer, Campaign.offer_id == Offer.id)
            .outerjoin(Sponsor, Offer.sponsor_id == Sponsor.id)
            .where(Campaign.is_active.is_(True))
            .order_by(Campaign.created_at.desc())
        )
        campaigns = result.all()
        if not campaigns:
            return []

        events_result = await session.execute(
            select(
                TrackingEvent.campaign_id,
                TrackingEvent.event_type,
                TrackingEvent.email_hash,
                TrackingEvent.ip,
                TrackingEvent.is_invalid,
            ).where(
                and_(
                    TrackingEvent.campaign_id.in_([c.id for c, _, _ in campaigns]),
                    TrackingEvent.created_at >= start,
                    TrackingEvent.created_at <= end,
                )
            )
        )
        by_campaign: Dict[Any, list] = defaultdict(list)
        for row in events_result.all():
            by_campaign[row.campaign_id].append(row)

        table = []
        for campaign, offer_name, sponsor_name in campaigns:
            summary = summarize_events(by_campaign.get(campaign.id, []))
            table.append({
                "id": str(campaign.id),
                "name": campaign.name,
                "offer_name": offer_name,
                "sponsor_name": sponsor_name,
                "target_countries": campaign.target_countries or [],
                "opens": summary["open"]["unique"],
                "clicks": summary["click"]["unique"],
                "unsubs": summary["unsubscribe"]["unique"],
                "opens_extra": summary["open"],
                "clicks_extra": summary["click"],
                "unsubs_extra": summary["unsubscribe"],
                "tracking_pixel_link": campaign.tracking_pixel_link,
                "click_tracking_link": campaign.click_tracking_link,
                "unsub_tracking_link": campaign.unsub_tracking_link,
            })
        return table

    async def get_campaign(self, session: AsyncSession, campaign_id: UUID) -> Optional[Campaign]:
        result = await session.execute(select(Campaign).where(Campaign.id == campaign_id))
        return result.scalar_one_or_none()

    async def campaign_insights(
        self,
        session: AsyncSession,
        campaign: Campaign,
    ) -> Dict[str, Any]:
        """Breakdowns over all events of a campaign, valid or not."""
        result = await session.execute(
            select(
                TrackingEvent.event_type,
                TrackingEvent.os,
                TrackingEvent.browser,
                TrackingEvent.country,
                TrackingEvent.city,
                TrackingEvent.device_type,
                TrackingEvent.timezone,
                RecipientAggregate.email,
            )
            .outerjoin(RecipientAggregate, TrackingEvent.recipient_id == RecipientAggregate.id)
            .where(TrackingEvent.campaign_id == campaign.id)
        )
        rows = [dict(row._mapping) for row in result.all()]
        logger.debug("Insights for campaign %s over %d events", campaign.id, len(rows))

        insights: Dict[str, Any] = {"campaign_name": campaign.name}
        for key, field in INSIGHT_DIMENSIONS.items():
            insights[key] = aggregate_by(rows, field)
        return insights

    async def segment_count(
        self,
        session: AsyncSession,
        campaign_id: UUID,
        filters: Dict[str, Optional[str]],
    ) -> int:
        """Distinct recipients among valid events matching ``filters``."""
        result = await session.execute(
            select(func.count(func.distinct(TrackingEvent.recipient_id))).where(
                and_(*segment_conditions(campaign_id, filters))
            )
        )
        return int(result.scalar() or 0)


# Singleton instance
analytics_service = AnalyticsService()
