"""
Application configuration using Pydantic Settings.
Loads from environment variables and .env file.
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "AffiTrack"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: str = "development"

    # API
    api_prefix: str = "/api"
    api_v1_prefix: str = "/api/v1"

    # PostgreSQL
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "affitrack"
    postgres_password: str = "affitrack_dev"
    postgres_db: str = "affitrack"

    # Redis (report cache, Celery broker)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str = ""
    redis_db: int = 0

    # JWT Authentication for the admin API
    jwt_secret_key: str = "your-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 1440  # 24 hours

    # Single admin account (bcrypt hash of the password)
    admin_email: str = "admin@affitrack.dev"
    admin_password_hash: str = ""

    frontend_url: str = "http://localhost:3000"  # Frontend URL for CORS

    # Public base URL used when generating tracking links
    tracking_base_url: str = "http://localhost:8000/api"

    # Client IP resolution
    use_test_ip: bool = False
    test_ip: str = ""
    public_ip_url: str = "https://api.ipify.org?format=json"
    public_ip_timeout: float = 3.0

    # Geolocation
    geoip_dir: str = os.path.join("public", "geoip")
    geoip_city_db: str = "GeoLite2-City.mmdb"
    geoip_asn_db: str = "GeoLite2-ASN.mmdb"
    geoip_isp_db: str = "GeoIP2-ISP.mmdb"
    proxycheck_api_key: str = ""
    proxycheck_base_url: str = "https://proxycheck.io/v3"
    geo_fallback_timeout: float = 3.0

    # Fraud blocklists (comma separated, merged with the built-in lists)
    extra_blocked_ips: str = ""
    extra_blocked_ranges: str = ""

    # Reporting
    report_cache_ttl: int = 60  # seconds

    # Celery
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/1"

    @property
    def redis_url(self) -> str:
        """Build Redis connection URL."""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    @property
    def postgres_url(self) -> str:
        """Build PostgreSQL async connection URL."""
        return f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"

    @property
    def geoip_paths(self) -> dict:
        """Absolute-or-relative paths of the three MaxMind databases."""
        return {
            "city": os.path.join(self.geoip_dir, self.geoip_city_db),
            "isp": os.path.join(self.geoip_dir, self.geoip_isp_db),
            "asn": os.path.join(self.geoip_dir, self.geoip_asn_db),
        }

    @staticmethod
    def _split_list(raw: str) -> List[str]:
        return [item.strip() for item in raw.split(",") if item.strip()]

    @property
    def extra_blocked_ip_list(self) -> List[str]:
        return self._split_list(self.extra_blocked_ips)

    @property
    def extra_blocked_range_list(self) -> List[str]:
        return self._split_list(self.extra_blocked_ranges)

    def validate_production_settings(self) -> None:
        """
        Validate critical settings for production deployment.
        Raises ValueError if any critical settings are using default/insecure values.
        """
        if self.environment == "production":
            errors = []

            if self.jwt_secret_key == "your-secret-key-change-in-production":
                errors.append("JWT_SECRET_KEY must be changed from default value in production")

            if len(self.jwt_secret_key) < 32:
                errors.append("JWT_SECRET_KEY must be at least 32 characters long")

            if not self.postgres_password or self.postgres_password == "affitrack_dev":
                errors.append("POSTGRES_PASSWORD must be set to a secure value in production")

            if not self.admin_password_hash:
                errors.append("ADMIN_PASSWORD_HASH must be set in production")

            # Test IP override must never leak into production traffic
            if self.use_test_ip:
                errors.append("USE_TEST_IP must be disabled in production")

            if errors:
                raise ValueError(
                    "Production configuration validation failed:\n" +
                    "\n".join(f"  - {error}" for error in errors)
                )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
