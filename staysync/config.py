from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    # Environment
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # Database - PostgreSQL for production, SQLite for development
    database_url: str = Field(
        default="sqlite:///./staysync.db",
        alias="DATABASE_URL"
    )

    # CORS - admin frontend URLs (comma-separated)
    allowed_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
        alias="ALLOWED_ORIGINS"
    )

    # Shared operator token for the /api ops endpoints (empty = disabled)
    admin_api_token: str = Field(default="", alias="ADMIN_API_TOKEN")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=False, alias="LOG_JSON")

    # ==============================================
    # Beds24 Integration Settings (Server-Side Only!)
    # ==============================================
    # Name used in the webhook path and signature header: /webhooks/beds24, X-Beds24-Signature
    booking_source: str = Field(default="beds24", alias="BOOKING_SOURCE")

    beds24_base_url: str = Field(
        default="https://beds24.com/api/v2",
        alias="BEDS24_BASE_URL"
    )

    # Bootstrap credentials, copied into the auth table on first start
    beds24_refresh_token: str = Field(default="", alias="BEDS24_REFRESH_TOKEN")
    beds24_access_token: str = Field(default="", alias="BEDS24_TOKEN")

    # HMAC secret for incoming webhooks (empty = signatures not checked)
    beds24_webhook_secret: str = Field(default="", alias="BEDS24_WEBHOOK_SECRET")

    # HTTP timeout for Beds24 requests
    beds24_timeout_seconds: int = Field(default=20, alias="BEDS24_TIMEOUT_SECONDS")

    # Access tokens expiring within this window are refreshed before use
    token_refresh_buffer_hours: float = Field(default=4, alias="TOKEN_REFRESH_BUFFER_HOURS")

    # Used when a booking carries neither a currency nor a known country code
    default_currency: str = Field(default="JPY", alias="DEFAULT_CURRENCY")

    # Scheduled pull sync + token keep-alive
    sync_enabled: bool = Field(default=False, alias="SYNC_ENABLED")
    sync_interval_minutes: int = Field(default=60, alias="SYNC_INTERVAL_MINUTES")
    sync_days_back: int = Field(default=7, alias="SYNC_DAYS_BACK")
    sync_days_ahead: int = Field(default=30, alias="SYNC_DAYS_AHEAD")
    token_keepalive_hours: int = Field(default=20, alias="TOKEN_KEEPALIVE_HOURS")
    scheduler_timezone: str = Field(default="Asia/Tokyo", alias="SCHEDULER_TIMEZONE")

    @field_validator('database_url')
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Hosted Postgres hands out postgres:// but SQLAlchemy needs postgresql://"""
        if v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql://", 1)
        return v

    @field_validator('default_currency')
    @classmethod
    def validate_currency(cls, v: str) -> str:
        v = v.strip().upper()
        if len(v) != 3:
            raise ValueError("DEFAULT_CURRENCY must be a 3-letter ISO code")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def signature_header(self) -> str:
        """Header carrying the webhook HMAC, e.g. X-Beds24-Signature"""
        return f"X-{self.booking_source.capitalize()}-Signature"

    @property
    def cors_origins(self) -> List[str]:
        """
        Parse allowed origins from comma-separated string.
        Returns a list suitable for CORSMiddleware.
        """
        origins = []
        for origin in self.allowed_origins.split(","):
            origin = origin.strip().rstrip("/")
            if origin and origin not in origins:
                origins.append(origin)
        return origins

    class Config:
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
