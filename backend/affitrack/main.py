"""
AffiTrack - FastAPI Backend

Main application entry point.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from affitrack.core.config import settings
from affitrack.db.postgres import init_db, close_db
from affitrack.db.redis import redis_client
from affitrack.middleware.rate_limit import setup_rate_limiting
from affitrack.services.client_ip import ClientIPResolver
from affitrack.services.device_classifier import HeuristicDeviceClassifier
from affitrack.services.fraud_detector import FraudDetector, default_blocklists
from affitrack.services.geolocation import GeoResolver
from affitrack.services.tracking_pipeline import TrackingPipeline
from affitrack.services.tracking_store import SqlTrackingStore

# Import routers
from affitrack.api.v1 import admin_fraud, auth, campaigns, health, statics, tracking

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def build_pipeline(app: FastAPI) -> TrackingPipeline:
    """Wire the tracking pipeline and expose it with the blocklists on app.state."""
    blocklists = default_blocklists()
    pipeline = TrackingPipeline(
        store=SqlTrackingStore(),
        ip_resolver=ClientIPResolver(),
        geo_resolver=GeoResolver(),
        fraud_detector=FraudDetector(blocklists),
        device_classifier=HeuristicDeviceClassifier(),
    )
    app.state.blocklists = blocklists
    app.state.pipeline = pipeline
    return pipeline


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    logger.info("Starting %s v%s", settings.app_name, settings.app_version)
    logger.info("Environment: %s", settings.environment)
    logger.info("PostgreSQL: %s:%s", settings.postgres_host, settings.postgres_port)

    # Validate production settings
    try:
        settings.validate_production_settings()
        logger.info("Production settings validated successfully")
    except ValueError as e:
        if settings.environment == "production":
            logger.error("CRITICAL: %s", e)
            raise  # Stop startup in production with invalid config
        else:
            logger.warning("Production settings validation: %s", e)

    # Initialize PostgreSQL
    try:
        await init_db()
        logger.info("PostgreSQL connected and tables created")
    except Exception as e:
        logger.error("PostgreSQL initialization failed: %s", e)
        logger.error("Tracking events will NOT be persisted without database!")

    pipeline = build_pipeline(app)
    logger.info("Blocklists: %s", app.state.blocklists.stats())

    if settings.proxycheck_api_key:
        logger.info("ProxyCheck API key configured - remote geo fallback enabled")
    else:
        logger.warning("PROXYCHECK_API_KEY not set - remote geo fallback disabled")

    if settings.use_test_ip:
        logger.warning("USE_TEST_IP is enabled - every hit resolves to %s", settings.test_ip)

    yield

    # Shutdown
    await pipeline.aclose()
    logger.info("Tracking pipeline drained")
    await redis_client.close()
    logger.info("Redis disconnected")
    await close_db()
    logger.info("PostgreSQL disconnected")
    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    AffiTrack API

    Email campaign tracking for affiliate offers.

    ## Tracking

    - `GET /api/rd/{token}={email}`: open pixel
    - `GET /api/ct/{token}={email}`: click redirect
    - `GET /api/us/{token}={email}`: unsubscribe redirect

    ## Authentication

    Use `/api/v1/auth/login` to get a JWT token.
    Include it in requests as: `Authorization: Bearer <token>`
    """,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
allowed_origins = [settings.frontend_url]
if settings.environment == "development":
    allowed_origins.extend([
        "http://localhost:3000",
        "http://localhost:5173",  # Vite default
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ])

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Requested-With", "Accept"],
)

# Rate limiting
setup_rate_limiting(app)


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """API root - returns basic info."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/health",
    }


# Include routers
app.include_router(health.router)  # Health check at /health (no prefix)
app.include_router(tracking.router, prefix=settings.api_prefix)
app.include_router(auth.router, prefix=settings.api_v1_prefix)
app.include_router(statics.router, prefix=settings.api_v1_prefix)
app.include_router(campaigns.router, prefix=settings.api_v1_prefix)
app.include_router(admin_fraud.router, prefix=settings.api_v1_prefix)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "affitrack.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
