"""
Application configuration

Carrier credentials and feature switches are read from the environment (or
a .env file). Nothing below the service layer reads the environment
directly: carrier adapters receive plain config objects built from these
settings.
"""
import logging
from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # App
    SERVICE_NAME: str = "delivro-logistic"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Shared transport
    CARRIER_HTTP_TIMEOUT_SECONDS: float = 30.0

    # Freightcom (async REST, submit-then-poll)
    FREIGHTCOM_ENABLED: bool = True
    FREIGHTCOM_USE_MOCK: bool = False
    FREIGHTCOM_API_KEY: Optional[str] = None
    FREIGHTCOM_BASE_URL: str = "https://api.freightcom.com/v1"
    FREIGHTCOM_PAYMENT_METHOD_ID: Optional[str] = None
    FREIGHTCOM_POLL_INTERVAL_SECONDS: float = 0.5
    FREIGHTCOM_POLL_TIMEOUT_SECONDS: float = 30.0

    # Canada Post (XML REST)
    CANADAPOST_ENABLED: bool = True
    CANADAPOST_USE_MOCK: bool = False
    CANADAPOST_API_KEY: Optional[str] = None
    CANADAPOST_API_SECRET: Optional[str] = None
    CANADAPOST_ACCOUNT_ID: Optional[str] = None
    CANADAPOST_BASE_URL: str = "https://soa-gw.canadapost.ca"

    # Purolator (SOAP)
    PUROLATOR_ENABLED: bool = True
    PUROLATOR_USE_MOCK: bool = False
    PUROLATOR_USERNAME: Optional[str] = None
    PUROLATOR_PASSWORD: Optional[str] = None
    PUROLATOR_ACCOUNT_NUMBER: Optional[str] = None
    PUROLATOR_BASE_URL: str = "https://webservices.purolator.com"

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        level = str(v or "INFO").strip().upper()
        if level == "WARN":
            level = "WARNING"
        if level not in VALID_LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {sorted(VALID_LOG_LEVELS)}, got {v!r}")
        return level

    @field_validator(
        "FREIGHTCOM_BASE_URL", "CANADAPOST_BASE_URL", "PUROLATOR_BASE_URL", mode="before"
    )
    @classmethod
    def strip_trailing_slash(cls, v):
        if isinstance(v, str):
            return v.strip().rstrip("/")
        return v

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """Load settings once per process."""
    settings = Settings()
    logger.debug(f"Loaded settings for {settings.SERVICE_NAME} ({settings.ENVIRONMENT})")
    return settings
