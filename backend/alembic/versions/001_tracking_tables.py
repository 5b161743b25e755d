"""Sponsors, offers, campaigns and tracking tables

Revision ID: 001_tracking
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_tracking"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "sponsors",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("api_driver", sa.String(50), nullable=True),
        sa.Column("is_active", sa.Boolean(), default=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "offers",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("sponsor_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("sponsors.id"), nullable=True),
        sa.Column("external_offer_id", sa.String(100), unique=True, nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("offer_tracking_link", sa.Text(), nullable=True),
        sa.Column("unsb_tracking_link", sa.Text(), nullable=True),
        sa.Column("allowed_countries", sa.JSON(), nullable=True),
        sa.Column("payout_type", sa.String(50), nullable=True),
        sa.Column("payout_amount", sa.Float(), default=0.0),
        sa.Column("payout_currency", sa.String(10), default="USD"),
        sa.Column("is_active", sa.Boolean(), default=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), onupdate=sa.func.now()),
    )

    op.create_table(
        "campaigns",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("offer_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("offers.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), default=True),
        sa.Column("start_date", sa.DateTime(), nullable=True),
        sa.Column("end_date", sa.DateTime(), nullable=True),
        sa.Column("target_countries", sa.JSON(), nullable=True),
        sa.Column("cortex_click_tracking", sa.Text(), nullable=True),
        sa.Column("cortex_unsb_tracking", sa.Text(), nullable=True),
        sa.Column("tracking_pixel_link", sa.Text(), nullable=True),
        sa.Column("click_tracking_link", sa.Text(), nullable=True),
        sa.Column("unsub_tracking_link", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), onupdate=sa.func.now()),
    )
    op.create_index("idx_campaigns_offer_id", "campaigns", ["offer_id"])

    # Per-recipient aggregate, one row per lower-cased address
    op.create_table(
        "email_list",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("open_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("click_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("unsub_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_event", sa.DateTime(), nullable=True),
        sa.Column("country", sa.String(100), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("os", sa.String(100), nullable=True),
        sa.Column("browser", sa.String(100), nullable=True),
        sa.Column("timezone", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_email_list_email", "email_list", ["email"], unique=True)

    # Append-only event log
    op.create_table(
        "tracking_events",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("event_type", sa.String(20), nullable=False),
        sa.Column("campaign_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False),
        sa.Column("offer_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("offers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("recipient_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("email_list.id", ondelete="SET NULL"), nullable=True),
        sa.Column("email_hash", sa.String(64), nullable=False),
        sa.Column("ip", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("referer", sa.Text(), nullable=True),
        sa.Column("country", sa.String(100), nullable=True),
        sa.Column("city", sa.String(255), nullable=True),
        sa.Column("region", sa.String(255), nullable=True),
        sa.Column("isp", sa.String(255), nullable=True),
        sa.Column("organization", sa.String(255), nullable=True),
        sa.Column("asn", sa.Integer(), nullable=True),
        sa.Column("timezone", sa.String(64), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("device_type", sa.String(50), nullable=True),
        sa.Column("browser", sa.String(100), nullable=True),
        sa.Column("browser_version", sa.String(50), nullable=True),
        sa.Column("os", sa.String(100), nullable=True),
        sa.Column("is_invalid", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_fraud", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("fraud_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_tracking_events_email_hash", "tracking_events", ["email_hash"])
    op.create_index("ix_tracking_events_created_at", "tracking_events", ["created_at"])
    op.create_index("ix_tracking_events_campaign_created", "tracking_events", ["campaign_id", "created_at"])
    op.create_index("ix_tracking_events_type_created", "tracking_events", ["event_type", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_tracking_events_type_created", "tracking_events")
    op.drop_index("ix_tracking_events_campaign_created", "tracking_events")
    op.drop_index("ix_tracking_events_created_at", "tracking_events")
    op.drop_index("ix_tracking_events_email_hash", "tracking_events")
    op.drop_table("tracking_events")

    op.drop_index("ix_email_list_email", "email_list")
    op.drop_table("email_list")

    op.drop_index("idx_campaigns_offer_id", "campaigns")
    op.drop_table("campaigns")
    op.drop_table("offers")
    op.drop_table("sponsors")
