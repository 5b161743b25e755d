"""
pytest configuration and fixtures for AffiTrack backend tests.
"""

import os
import uuid
from typing import Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import pytest_asyncio

# Set environment variables before importing app modules
os.environ["ENVIRONMENT"] = "test"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret-key-with-enough-length"
os.environ["ADMIN_EMAIL"] = "admin@affitrack.dev"
os.environ["USE_TEST_IP"] = "false"
os.environ["PROXYCHECK_API_KEY"] = ""
os.environ["EXTRA_BLOCKED_IPS"] = ""
os.environ["EXTRA_BLOCKED_RANGES"] = ""

from affitrack.services.client_ip import ClientIPResolver  # noqa: E402
from affitrack.services.device_classifier import HeuristicDeviceClassifier  # noqa: E402
from affitrack.services.fraud_detector import FraudDetector, default_blocklists  # noqa: E402
from affitrack.services.geolocation import GeoRecord  # noqa: E402
from affitrack.services.token_codec import EventKind  # noqa: E402
from affitrack.services.tracking_pipeline import TrackingPipeline  # noqa: E402
from affitrack.services.tracking_store import (  # noqa: E402
    AggregateUpdate,
    CampaignTarget,
    EventRecord,
    TrackingStore,
)

CAMPAIGN_ID = "6f1c2a7e-8a51-4c1b-9a57-0c1d2e3f4a5b"
OFFER_ID = "0b9d8c7a-6e5f-4a3b-8c2d-1e0f9a8b7c6d"
CLICK_TARGET = "https://offers.example.com/click?aff=42"
UNSUB_TARGET = "https://offers.example.com/optout?aff=42"

CHROME_WINDOWS_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class InMemoryTrackingStore(TrackingStore):
    """TrackingStore keeping everything in dicts and lists."""

    def __init__(self):
        self.campaigns: Dict[str, dict] = {}
        self.aggregates: Dict[str, dict] = {}
        self.events: List[EventRecord] = []
        self.record_hit_calls = 0
        self.upsert_calls = 0

    def add_campaign(
        self,
        campaign_id: str = CAMPAIGN_ID,
        offer_id: str = OFFER_ID,
        click_url: Optional[str] = CLICK_TARGET,
        unsub_url: Optional[str] = UNSUB_TARGET,
        allowed_countries: Optional[list] = None,
    ):
        self.campaigns[campaign_id] = {
            "offer_id": offer_id,
            "click": click_url,
            "unsubscribe": unsub_url,
            "allowed_countries": allowed_countries if allowed_countries is not None else ["France"],
        }

    async def find_campaign_target(self, campaign_id: str, kind: EventKind) -> Optional[CampaignTarget]:
        campaign = self.campaigns.get(campaign_id)
        if campaign is None:
            return None
        redirect = None
        if kind == EventKind.CLICK:
            redirect = campaign["click"]
        elif kind == EventKind.UNSUBSCRIBE:
            redirect = campaign["unsubscribe"]
        return CampaignTarget(
            campaign_id=campaign_id,
            offer_id=campaign["offer_id"],
            redirect_url=redirect,
            allowed_countries=list(campaign["allowed_countries"]),
        )

    async def upsert_recipient_aggregate(self, update: AggregateUpdate) -> str:
        self.upsert_calls += 1
        counter = {
            EventKind.OPEN: "open_count",
            EventKind.CLICK: "click_count",
            EventKind.UNSUBSCRIBE: "unsub_count",
        }[EventKind(update.kind)]
        row = self.aggregates.get(update.email)
        if row is None:
            row = {
                "id": str(uuid.uuid4()),
                "email": update.email,
                "open_count": 0,
                "click_count": 0,
                "unsub_count": 0,
            }
            self.aggregates[update.email] = row
        row[counter] += 1
        row.update(
            last_event=update.occurred_at,
            country=update.country,
            ip_address=update.ip_address,
            os=update.os,
            browser=update.browser,
            timezone=update.timezone,
        )
        return row["id"]

    async def create_tracking_event(self, event: EventRecord) -> str:
        self.events.append(event)
        return str(uuid.uuid4())

    async def record_hit(self, update: AggregateUpdate, event: EventRecord) -> str:
        self.record_hit_calls += 1
        event.recipient_id = await self.upsert_recipient_aggregate(update)
        return await self.create_tracking_event(event)


class StubGeoResolver:
    """GeoResolver stand-in returning canned records per IP."""

    def __init__(self, records: Optional[Dict[str, GeoRecord]] = None):
        self.records = records or {}
        self.lookups: List[str] = []

    async def lookup(self, ip: str) -> GeoRecord:
        self.lookups.append(ip)
        return self.records.get(ip, GeoRecord())

    async def aclose(self):
        pass


def public_ip_client(ip: str = "198.51.100.77") -> MagicMock:
    """httpx.AsyncClient mock answering the public-IP lookup."""
    response = MagicMock()
    response.status_code = 200
    response.json.return_value = {"ip": ip}
    client = MagicMock()
    client.get = AsyncMock(return_value=response)
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def store() -> InMemoryTrackingStore:
    store = InMemoryTrackingStore()
    store.add_campaign()
    return store


@pytest.fixture
def geo() -> StubGeoResolver:
    return StubGeoResolver({
        "81.2.69.142": GeoRecord(
            country="FR", city="Paris", region="Ile-de-France",
            isp="Orange", organization="Orange S.A.", asn=3215,
            timezone="Europe/Paris", latitude=48.85, longitude=2.35,
        ),
        "91.64.10.20": GeoRecord(
            country="DE", city="Berlin", region="Land Berlin",
            isp="Vodafone GmbH", organization="Vodafone GmbH", asn=3209,
            timezone="Europe/Berlin",
        ),
        "54.10.20.30": GeoRecord(
            country="US", city="Ashburn", region="Virginia",
            isp="Amazon AWS", organization="AMAZON-AES", asn=14618,
            timezone="America/New_York",
        ),
    })


@pytest.fixture
def blocklists():
    return default_blocklists()


@pytest.fixture
def ip_resolver() -> ClientIPResolver:
    return ClientIPResolver(client=public_ip_client(), use_test_ip=False)


@pytest_asyncio.fixture
async def pipeline(store, geo, blocklists, ip_resolver):
    pipeline = TrackingPipeline(
        store=store,
        ip_resolver=ip_resolver,
        geo_resolver=geo,
        fraud_detector=FraudDetector(blocklists),
        device_classifier=HeuristicDeviceClassifier(),
    )
    yield pipeline
    await pipeline.persistence.drain()


@pytest.fixture
def admin_token() -> str:
    from affitrack.core.config import settings
    from affitrack.core.security import create_access_token

    return create_access_token({"email": settings.admin_email, "role": "admin"})


@pytest.fixture
def auth_headers(admin_token) -> dict:
    return {"Authorization": f"Bearer {admin_token}"}


async def _no_db_session():
    yield AsyncMock()


@pytest_asyncio.fixture
async def client(pipeline, blocklists):
    """HTTP client against the app with in-memory tracking and no database."""
    from affitrack.api.v1.tracking import get_pipeline
    from affitrack.db.postgres import get_db_session
    from affitrack.main import app
    from affitrack.middleware.rate_limit import limiter

    app.dependency_overrides[get_pipeline] = lambda: pipeline
    app.dependency_overrides[get_db_session] = _no_db_session
    app.state.blocklists = blocklists
    limiter.reset()

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield http

    app.dependency_overrides.clear()
    del app.state.blocklists
