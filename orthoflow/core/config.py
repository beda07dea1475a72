"""Application configuration with environment variables."""

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    # Logging
    LOG_LEVEL: str = "INFO"

    # Persistence substrate (one JSON document per DOCUMENT_ID)
    DATABASE_URL: str = "sqlite:///./orthoflow.db"
    DOCUMENT_ID: str = "default"

    # "Today" for scheduling is evaluated in the clinic's local timezone
    CLINIC_TIMEZONE: str = "America/Sao_Paulo"

    # Clinics whose trade name matches receive internal ("A-") treatment codes
    INTERNAL_CLINIC_TRADE_NAME: str = "ARRIMO"

    # Workflow timings (days)
    REPLENISHMENT_LEAD_DAYS: int = 10
    ALERT_WARNING_DAYS: int = 15
    LAB_ORDER_DUE_DAYS: int = 7

    # Audit trail retention (most recent entries kept in the document)
    AUDIT_LOG_LIMIT: int = 2000

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173"

    # Rate Limiting (requests per minute, 0 disables)
    RATE_LIMIT_API: int = 120

    @field_validator("CLINIC_TIMEZONE")
    @classmethod
    def validate_clinic_timezone(cls, v: str) -> str:
        """Reject unknown IANA zones at startup."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown CLINIC_TIMEZONE: {v!r}") from exc
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


settings = Settings()
