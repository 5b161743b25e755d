"""
Per-campaign reporting endpoints: insights, segment counts, tracking links.
"""

from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from affitrack.core.config import settings
from affitrack.core.security import TokenData, require_admin
from affitrack.db.postgres import get_db_session
from affitrack.db.redis import redis_client
from affitrack.services.analytics_service import analytics_service
from affitrack.services.token_codec import build_tracking_links

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/campaigns", tags=["Campaigns"])


def _parse_campaign_id(campaign_id: str) -> UUID:
    try:
        return UUID(campaign_id)
    except ValueError:
        raise HTTPException(status_code=404, detail="Campaign not found")


@router.get("/{campaign_id}/insights")
async def campaign_insights(
    campaign_id: str,
    session: AsyncSession = Depends(get_db_session),
    user: TokenData = Depends(require_admin),
):
    """Breakdowns of every event of the campaign by device, location and domain."""
    cid = _parse_campaign_id(campaign_id)

    key = f"insights:{cid}"
    cached = await redis_client.get_json(key)
    if cached is not None:
        return cached

    campaign = await analytics_service.get_campaign(session, cid)
    if campaign is None:
        raise HTTPException(status_code=404, detail="Campaign not found")

    insights = await analytics_service.campaign_insights(session, campaign)
    await redis_client.set_json(key, insights, ex=settings.report_cache_ttl)
    return insights


@router.get("/{campaign_id}/segment-count")
async def segment_count(
    campaign_id: str,
    os: Optional[str] = Query(default=None),
    browser: Optional[str] = Query(default=None),
    country: Optional[str] = Query(default=None),
    device_type: Optional[str] = Query(default=None, alias="deviceType"),
    event_type: Optional[str] = Query(default=None, alias="eventType"),
    session: AsyncSession = Depends(get_db_session),
    user: TokenData = Depends(require_admin),
):
    """Distinct recipients among valid events matching the filters."""
    cid = _parse_campaign_id(campaign_id)
    filters = {
        "os": os,
        "browser": browser,
        "country": country,
        "device_type": device_type,
        "event_type": event_type,
    }
    count = await analytics_service.segment_count(session, cid, filters)
    return {"count": count}


@router.get("/{campaign_id}/links")
async def campaign_links(
    campaign_id: str,
    session: AsyncSession = Depends(get_db_session),
    user: TokenData = Depends(require_admin),
):
    """Tracking links for the mail sender. Generated and stored on first request."""
    cid = _parse_campaign_id(campaign_id)
    campaign = await analytics_service.get_campaign(session, cid)
    if campaign is None:
        raise HTTPException(status_code=404, detail="Campaign not found")

    if not (campaign.tracking_pixel_link and campaign.click_tracking_link and campaign.unsub_tracking_link):
        links = build_tracking_links(settings.tracking_base_url, str(campaign.offer_id), str(campaign.id))
        campaign.tracking_pixel_link = links.pixel
        campaign.click_tracking_link = links.click
        campaign.unsub_tracking_link = links.unsubscribe
        await session.flush()
        logger.info("Generated tracking links for campaign %s", campaign.id)

    return {
        "campaign_id": str(campaign.id),
        "tracking_pixel_link": campaign.tracking_pixel_link,
        "click_tracking_link": campaign.click_tracking_link,
        "unsub_tracking_link": campaign.unsub_tracking_link,
    }
