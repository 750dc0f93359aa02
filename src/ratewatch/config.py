"""
RateWatch Configuration Management

Settings are read from environment variables (or a local .env file).
Numeric cache and provider settings fall back to their defaults when the
configured value is not a finite positive number.
"""

import math
from functools import lru_cache
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

DEFAULT_CACHE_TTL_SECONDS = 600
DEFAULT_CACHE_MAX_SIZE = 1000
DEFAULT_PROVIDER_BASE_URL = "https://api.exchangerate.host"
DEFAULT_PROVIDER_TIMEOUT_MS = 5000


def coerce_positive(value: Any, default: float) -> float:
    """Return ``value`` as a float, or ``default`` if it is not finite and > 0."""
    if value is None or value == "":
        return default
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(parsed) or parsed <= 0:
        return default
    return parsed


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # === Exchange Rate Cache ===
    exchange_rates_cache_ttl_seconds: float = Field(
        default=DEFAULT_CACHE_TTL_SECONDS,
        description="Seconds a cached rate stays valid"
    )
    exchange_rates_cache_max_size: int = Field(
        default=DEFAULT_CACHE_MAX_SIZE,
        description="Maximum number of cached currency pairs"
    )

    # === Exchange Rate Provider ===
    exchange_rates_provider_base_url: str = Field(
        default=DEFAULT_PROVIDER_BASE_URL,
        description="Upstream rate provider base URL"
    )
    exchange_rates_provider_api_key: str = Field(
        default="",
        description="Optional provider access key"
    )
    exchange_rates_provider_timeout_ms: int = Field(
        default=DEFAULT_PROVIDER_TIMEOUT_MS,
        description="Provider request timeout in milliseconds"
    )

    # === Currencies ===
    supported_currencies: str = Field(
        default="NGN,USD",
        description="Comma separated list of supported currency codes"
    )

    # === Alert Sweep ===
    alert_check_interval_seconds: int = Field(
        default=300,
        description="Interval between alert sweeps run by the host process"
    )

    # === Database Configuration ===
    database_host: str = Field(default="localhost")
    database_port: int = Field(default=5432)
    database_name: str = Field(default="ratewatch")
    database_user: str = Field(default="ratewatch")
    database_password: str = Field(default="")
    database_ssl_mode: str = Field(default="prefer")

    # === Logging ===
    log_level: str = Field(default="INFO")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }

    @field_validator("exchange_rates_cache_ttl_seconds", mode="before")
    @classmethod
    def coerce_ttl(cls, v: Any) -> float:
        return coerce_positive(v, DEFAULT_CACHE_TTL_SECONDS)

    @field_validator("exchange_rates_cache_max_size", mode="before")
    @classmethod
    def coerce_max_size(cls, v: Any) -> int:
        return math.floor(coerce_positive(v, DEFAULT_CACHE_MAX_SIZE)) or DEFAULT_CACHE_MAX_SIZE

    @field_validator("exchange_rates_provider_timeout_ms", mode="before")
    @classmethod
    def coerce_timeout(cls, v: Any) -> int:
        return math.floor(coerce_positive(v, DEFAULT_PROVIDER_TIMEOUT_MS)) or DEFAULT_PROVIDER_TIMEOUT_MS

    @field_validator("exchange_rates_provider_base_url", mode="before")
    @classmethod
    def default_blank_base_url(cls, v: Any) -> str:
        if v is None or not str(v).strip():
            return DEFAULT_PROVIDER_BASE_URL
        return str(v).strip()

    @property
    def supported_currency_codes(self) -> set[str]:
        """Normalized set of supported currency codes."""
        return {
            code.strip().upper()
            for code in self.supported_currencies.split(",")
            if code.strip()
        }

    @property
    def provider_timeout_seconds(self) -> float:
        return self.exchange_rates_provider_timeout_ms / 1000


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
