"""
Sponsor, offer and campaign models.

These rows are maintained by the admin/sponsor-sync side of the platform; the
tracking pipeline only reads redirect targets and allowed countries from them.
"""

from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, JSON, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from affitrack.db.postgres import Base


class Sponsor(Base):
    """Affiliate network account offers are imported from."""

    __tablename__ = "sponsors"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(255), nullable=False)
    api_driver = Column(String(50), nullable=True)  # everflow, cake, hitpath, hasoffers
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    offers = relationship("Offer", back_populates="sponsor")


class Offer(Base):
    """An affiliate offer with its geo restrictions."""

    __tablename__ = "offers"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    sponsor_id = Column(UUID(as_uuid=True), ForeignKey("sponsors.id"), nullable=True)
    external_offer_id = Column(String(100), unique=True, nullable=True)
    name = Column(String(255), nullable=False)

    offer_tracking_link = Column(Text, nullable=True)
    unsb_tracking_link = Column(Text, nullable=True)

    # Country display names, e.g. ["France", "Belgium"]
    allowed_countries = Column(JSON, default=list)

    payout_type = Column(String(50), nullable=True)
    payout_amount = Column(Float, default=0.0)
    payout_currency = Column(String(10), default="USD")
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    sponsor = relationship("Sponsor", back_populates="offers")
    campaigns = relationship("Campaign", back_populates="offer")


class Campaign(Base):
    """Mailing campaign promoting one offer.

    Ids are UUIDs; a tracking token naming any other campaign id resolves to
    no campaign.
    """

    __tablename__ = "campaigns"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    offer_id = Column(UUID(as_uuid=True), ForeignKey("offers.id"), nullable=False)
    name = Column(String(255), nullable=False)

    is_active = Column(Boolean, default=True)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    target_countries = Column(JSON, default=list)

    # Redirect destinations after a recorded click / unsubscribe
    cortex_click_tracking = Column(Text, nullable=True)
    cortex_unsb_tracking = Column(Text, nullable=True)

    # Generated tracking links (contain the %EMAIL% placeholder)
    tracking_pixel_link = Column(Text, nullable=True)
    click_tracking_link = Column(Text, nullable=True)
    unsub_tracking_link = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    offer = relationship("Offer", back_populates="campaigns")
