"""
Tracking event log and per-recipient aggregate.
"""

from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from affitrack.db.postgres import Base


class RecipientAggregate(Base):
    """Running per-email counters, keyed by the lower-cased address."""

    __tablename__ = "email_list"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    email = Column(String(320), unique=True, nullable=False, index=True)

    open_count = Column(Integer, default=0, nullable=False)
    click_count = Column(Integer, default=0, nullable=False)
    unsub_count = Column(Integer, default=0, nullable=False)
    last_event = Column(DateTime, nullable=True)

    # Last observed attributes
    country = Column(String(100), nullable=True)
    ip_address = Column(String(64), nullable=True)
    os = Column(String(100), nullable=True)
    browser = Column(String(100), nullable=True)
    timezone = Column(String(64), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    events = relationship("TrackingEvent", back_populates="recipient")


class TrackingEvent(Base):
    """One row per resolved tracking hit. Rows are never updated by the pipeline."""

    __tablename__ = "tracking_events"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    event_type = Column(String(20), nullable=False)  # open, click, unsubscribe

    campaign_id = Column(UUID(as_uuid=True), ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False)
    offer_id = Column(UUID(as_uuid=True), ForeignKey("offers.id", ondelete="CASCADE"), nullable=False)
    recipient_id = Column(UUID(as_uuid=True), ForeignKey("email_list.id", ondelete="SET NULL"), nullable=True)

    # sha256 of the lower-cased address, never the plaintext
    email_hash = Column(String(64), nullable=False, index=True)

    ip = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    referer = Column(Text, nullable=True)

    # Geolocation
    country = Column(String(100), nullable=True)
    city = Column(String(255), nullable=True)
    region = Column(String(255), nullable=True)
    isp = Column(String(255), nullable=True)
    organization = Column(String(255), nullable=True)
    asn = Column(Integer, nullable=True)
    timezone = Column(String(64), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    # Device
    device_type = Column(String(50), nullable=True)
    browser = Column(String(100), nullable=True)
    browser_version = Column(String(50), nullable=True)
    os = Column(String(100), nullable=True)

    # Classification
    is_invalid = Column(Boolean, default=False, nullable=False)
    is_fraud = Column(Boolean, default=False, nullable=False)
    fraud_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    recipient = relationship("RecipientAggregate", back_populates="events")

    __table_args__ = (
        Index("ix_tracking_events_campaign_created", "campaign_id", "created_at"),
        Index("ix_tracking_events_type_created", "event_type", "created_at"),
    )
