"""
Reporting tests.
"""

import uuid
from datetime import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from affitrack.services.analytics_service import (
    AnalyticsService,
    aggregate_by,
    email_domain,
    parse_date_range,
    segment_conditions,
    summarize_events,
)
from affitrack.services.token_codec import EventKind


def _event(event_type, email_hash="h1", ip="1.1.1.1", is_invalid=False):
    return SimpleNamespace(event_type=event_type, email_hash=email_hash, ip=ip, is_invalid=is_invalid)


class TestParseDateRange:
    """Test cases for report date ranges."""

    def test_valid_range(self):
        """Test ISO dates parse into a naive range."""
        start, end = parse_date_range("2026-01-01", "2026-01-31T23:59:59")

        assert start == datetime(2026, 1, 1)
        assert end == datetime(2026, 1, 31, 23, 59, 59)

    def test_timezone_is_converted_to_utc(self):
        """Test offset-aware input is normalized to naive UTC."""
        start, _ = parse_date_range("2026-01-01T02:00:00+02:00", "2026-01-02")

        assert start == datetime(2026, 1, 1, 0, 0)
        assert start.tzinfo is None

    @pytest.mark.parametrize("start,end", [
        (None, "2026-01-01"),
        ("2026-01-01", ""),
        ("yesterday", "2026-01-01"),
        ("2026-02-01", "2026-01-01"),
    ])
    def test_unusable_range(self, start, end):
        """Test missing, garbage and reversed ranges yield None."""
        assert parse_date_range(start, end) is None


class TestSummarizeEvents:
    """Test cases for the campaign table counters."""

    def test_unique_duplicates_invalid(self):
        """Test unique is per (email hash, ip) and invalid is counted apart."""
        events = [
            _event("open", "h1", "1.1.1.1"),
            _event("open", "h1", "1.1.1.1"),
            _event("open", "h1", "2.2.2.2"),
            _event("open", "h2", "1.1.1.1", is_invalid=True),
            _event("click", "h1", "1.1.1.1"),
        ]

        summary = summarize_events(events)

        assert summary["open"] == {"total": 4, "unique": 2, "duplicates": 1, "invalid": 1}
        assert summary["click"] == {"total": 1, "unique": 1, "duplicates": 0, "invalid": 0}
        assert summary["unsubscribe"] == {"total": 0, "unique": 0, "duplicates": 0, "invalid": 0}

    def test_unknown_event_types_are_skipped(self):
        """Test rows with unexpected types do not break the summary."""
        summary = summarize_events([_event("bounce")])

        assert all(item["total"] == 0 for item in summary.values())


class TestAggregateBy:
    """Test cases for insight breakdowns."""

    def test_groups_and_percentages(self):
        """Test counts, shares and ordering by group size."""
        rows = [
            {"event_type": "open", "os": "Windows"},
            {"event_type": "click", "os": "Windows"},
            {"event_type": "open", "os": "Windows"},
            {"event_type": "open", "os": "iOS"},
            {"event_type": "open", "os": None},
        ]

        result = aggregate_by(rows, "os")

        assert [item["name"] for item in result][0] == "Windows"
        windows = result[0]
        assert windows["total_records"] == 3
        assert windows["opened"]["count"] == 2
        assert windows["clicked"]["percent"] == pytest.approx(100 / 3)
        assert windows["unsubscribed"] == {"count": 0, "percent": 0}
        assert {item["name"] for item in result} == {"Windows", "iOS", "Unknown"}

    def test_email_domain_dimension(self):
        """Test recipients are grouped by address domain."""
        rows = [
            {"event_type": "open", "email": "a@gmail.com"},
            {"event_type": "click", "email": "b@gmail.com"},
            {"event_type": "open", "email": None},
        ]

        result = aggregate_by(rows, "email_domain")

        assert result[0]["name"] == "gmail.com"
        assert result[0]["total_records"] == 2
        assert result[1]["name"] == "Unknown"

    def test_email_domain_helper(self):
        """Test malformed addresses fall into Unknown."""
        assert email_domain("x@example.org") == "example.org"
        assert email_domain("no-at-sign") == "Unknown"
        assert email_domain("trailing@") == "Unknown"


class TestSegmentConditions:
    """Test cases for segment filters."""

    def test_all_and_empty_are_ignored(self):
        """Test only concrete filter values add conditions."""
        conditions = segment_conditions(uuid.uuid4(), {"os": "all", "browser": "", "country": "France"})

        assert len(conditions) == 3

    def test_every_filter_applies(self):
        """Test all five filters can be combined."""
        filters = {"os": "iOS", "browser": "Safari", "country": "France", "device_type": "ios", "event_type": "open"}

        assert len(segment_conditions(uuid.uuid4(), filters)) == 7


class TestAnalyticsService:
    """Test cases for the reporting queries."""

    @pytest.fixture
    def session(self):
        result = MagicMock()
        result.scalar.return_value = 7
        session = AsyncMock()
        session.execute = AsyncMock(return_value=result)
        return session

    @pytest.mark.asyncio
    async def test_count_valid_clicks(self, session):
        """Test valid counts filter on is_invalid only."""
        count = await AnalyticsService().count_events(
            session, EventKind.CLICK, datetime(2026, 1, 1), datetime(2026, 1, 2)
        )
        sql = str(session.execute.call_args.args[0].compile(dialect=postgresql.dialect()))

        assert count == 7
        assert "tracking_events.is_invalid IS false" in sql
        assert "is_fraud" not in sql

    @pytest.mark.asyncio
    async def test_count_invalid_clicks_excludes_fraud(self, session):
        """Test invalid counts leave fraud-blocked hits out."""
        await AnalyticsService().count_events(
            session, EventKind.CLICK, datetime(2026, 1, 1), datetime(2026, 1, 2), invalid=True
        )
        sql = str(session.execute.call_args.args[0].compile(dialect=postgresql.dialect()))

        assert "tracking_events.is_invalid IS true" in sql
        assert "tracking_events.is_fraud IS false" in sql

    @pytest.mark.asyncio
    async def test_fraud_counts_fill_missing_kinds(self, session):
        """Test fraud counts report every kind plus a total."""
        session.execute.return_value.all.return_value = [("click", 3), ("open", 1)]

        counts = await AnalyticsService().fraud_counts(session, datetime(2026, 1, 1), datetime(2026, 1, 2))

        assert counts == {"open": 1, "click": 3, "unsubscribe": 0, "total": 4}

    @pytest.mark.asyncio
    async def test_campaign_table_empty(self, session):
        """Test no active campaigns means an empty table and a single query."""
        session.execute.return_value.all.return_value = []

        table = await AnalyticsService().campaign_table(session, datetime(2026, 1, 1), datetime(2026, 1, 2))

        assert table == []
        assert session.execute.await_count == 1
