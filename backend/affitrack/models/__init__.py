"""
SQLAlchemy models for PostgreSQL persistence.
"""

from affitrack.models.campaign import Sponsor, Offer, Campaign
from affitrack.models.tracking import RecipientAggregate, TrackingEvent

__all__ = [
    "Sponsor",
    "Offer",
    "Campaign",
    "RecipientAggregate",
    "TrackingEvent",
]
