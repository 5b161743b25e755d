"""
Dashboard statistics endpoints.

All counters take ``startDate`` / ``endDate`` (ISO 8601). A missing,
unparseable or reversed range yields an empty result rather than an error,
which is what the dashboard cards expect while the date picker is being
edited.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from affitrack.core.config import settings
from affitrack.core.security import TokenData, require_admin
from affitrack.db.postgres import get_db_session
from affitrack.db.redis import redis_client
from affitrack.services.analytics_service import analytics_service, parse_date_range
from affitrack.services.token_codec import EventKind

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/statics", tags=["Statistics"])

EVENT_COUNTERS = {
    "opens": (EventKind.OPEN, False),
    "clicks": (EventKind.CLICK, False),
    "invalid-clicks": (EventKind.CLICK, True),
    "unsubscribes": (EventKind.UNSUBSCRIBE, False),
}


def _cache_key(name: str, start, end) -> str:
    return f"statics:{name}:{start.isoformat()}:{end.isoformat()}"


async def _cached(key: str) -> Optional[Any]:
    return await redis_client.get_json(key)


async def _store(key: str, value: Any) -> None:
    await redis_client.set_json(key, value, ex=settings.report_cache_ttl)


async def _count(
    name: str,
    start_date: Optional[str],
    end_date: Optional[str],
    session: AsyncSession,
) -> Dict[str, int]:
    date_range = parse_date_range(start_date, end_date)
    if date_range is None:
        return {"count": 0}

    start, end = date_range
    key = _cache_key(name, start, end)
    cached = await _cached(key)
    if cached is not None:
        return cached

    kind, invalid = EVENT_COUNTERS[name]
    count = await analytics_service.count_events(session, kind, start, end, invalid=invalid)
    payload = {"count": count}
    await _store(key, payload)
    return payload


@router.get("/opens")
async def opens_count(
    start_date: Optional[str] = Query(default=None, alias="startDate"),
    end_date: Optional[str] = Query(default=None, alias="endDate"),
    session: AsyncSession = Depends(get_db_session),
    user: TokenData = Depends(require_admin),
):
    """Valid opens in the date range."""
    return await _count("opens", start_date, end_date, session)


@router.get("/clicks")
async def clicks_count(
    start_date: Optional[str] = Query(default=None, alias="startDate"),
    end_date: Optional[str] = Query(default=None, alias="endDate"),
    session: AsyncSession = Depends(get_db_session),
    user: TokenData = Depends(require_admin),
):
    """Valid clicks in the date range."""
    return await _count("clicks", start_date, end_date, session)


@router.get("/invalid-clicks")
async def invalid_clicks_count(
    start_date: Optional[str] = Query(default=None, alias="startDate"),
    end_date: Optional[str] = Query(default=None, alias="endDate"),
    session: AsyncSession = Depends(get_db_session),
    user: TokenData = Depends(require_admin),
):
    """Wrong-country clicks in the date range, fraud excluded."""
    return await _count("invalid-clicks", start_date, end_date, session)


@router.get("/unsubscribes")
async def unsubscribes_count(
    start_date: Optional[str] = Query(default=None, alias="startDate"),
    end_date: Optional[str] = Query(default=None, alias="endDate"),
    session: AsyncSession = Depends(get_db_session),
    user: TokenData = Depends(require_admin),
):
    """Valid unsubscribes in the date range."""
    return await _count("unsubscribes", start_date, end_date, session)


@router.get("/fraud")
async def fraud_counts(
    start_date: Optional[str] = Query(default=None, alias="startDate"),
    end_date: Optional[str] = Query(default=None, alias="endDate"),
    session: AsyncSession = Depends(get_db_session),
    user: TokenData = Depends(require_admin),
):
    """Fraud-blocked hits by event type."""
    date_range = parse_date_range(start_date, end_date)
    if date_range is None:
        return {"open": 0, "click": 0, "unsubscribe": 0, "total": 0}

    start, end = date_range
    key = _cache_key("fraud", start, end)
    cached = await _cached(key)
    if cached is not None:
        return cached

    counts = await analytics_service.fraud_counts(session, start, end)
    await _store(key, counts)
    return counts


@router.get("/campaigns")
async def campaigns_table(
    start_date: Optional[str] = Query(default=None, alias="startDate"),
    end_date: Optional[str] = Query(default=None, alias="endDate"),
    session: AsyncSession = Depends(get_db_session),
    user: TokenData = Depends(require_admin),
):
    """Per-campaign unique opens, clicks and unsubscribes."""
    date_range = parse_date_range(start_date, end_date)
    if date_range is None:
        return {"campaigns": []}

    start, end = date_range
    key = _cache_key("campaigns", start, end)
    cached = await _cached(key)
    if cached is not None:
        return cached

    payload = {"campaigns": await analytics_service.campaign_table(session, start, end)}
    await _store(key, payload)
    return payload
