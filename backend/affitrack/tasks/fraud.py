"""
Offline fraud re-scan.

Blocklists grow after hits have been recorded. This task re-classifies stored
events that are not yet tagged as fraud and tags the ones that now match.
Recipient aggregates are left untouched.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, List, Tuple

from celery import shared_task
from sqlalchemy import select, update

from affitrack.db.postgres import async_session_maker, close_db
from affitrack.models.tracking import TrackingEvent
from affitrack.services.fraud_detector import FraudDetector, default_blocklists

logger = logging.getLogger(__name__)

BATCH_SIZE = 1000


def classify_events(events: Iterable, detector: FraudDetector) -> List[Tuple[object, str, str]]:
    """Return ``(event_id, reason, category)`` for every event that is fraud."""
    matches = []
    for event in events:
        verdict = detector.check(event.ip or "", event.isp, event.organization)
        if verdict.is_fraud:
            matches.append((event.id, verdict.reason, verdict.category))
    return matches


async def rescan(batch_size: int = BATCH_SIZE) -> Dict[str, int]:
    detector = FraudDetector(default_blocklists())
    stats = {"scanned": 0, "flagged": 0, "ip": 0, "isp": 0, "organization": 0, "datacenter": 0}
    last_id = None

    while True:
        async with async_session_maker() as session:
            stmt = (
                select(TrackingEvent.id, TrackingEvent.ip, TrackingEvent.isp, TrackingEvent.organization)
                .where(TrackingEvent.is_fraud.is_(False))
                .order_by(TrackingEvent.id)
                .limit(batch_size)
            )
            if last_id is not None:
                stmt = stmt.where(TrackingEvent.id > last_id)
            rows = (await session.execute(stmt)).all()
            if not rows:
                break

            last_id = rows[-1].id
            stats["scanned"] += len(rows)

            matches = classify_events(rows, detector)
            for event_id, reason, category in matches:
                await session.execute(
                    update(TrackingEvent)
                    .where(TrackingEvent.id == event_id)
                    .values(is_fraud=True, is_invalid=False, fraud_reason=reason)
                )
                stats[category] += 1
            stats["flagged"] += len(matches)
            await session.commit()

        logger.info("Fraud rescan: %d scanned, %d flagged so far", stats["scanned"], stats["flagged"])

    return stats


@shared_task(bind=True, queue="fraud")
def rescan_events(self, batch_size: int = BATCH_SIZE):
    async def _rescan():
        try:
            return await rescan(batch_size)
        finally:
            # The engine is bound to this event loop
            await close_db()

    stats = asyncio.run(_rescan())
    logger.info("Fraud rescan complete: %s", stats)
    return stats
