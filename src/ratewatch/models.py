"""
RateWatch Data Models

All rates and amounts are decimal.Decimal. Inputs arriving as float or str
are converted through their string form, never through binary float math.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator, model_validator


def utc_now() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def to_decimal(value: Any) -> Decimal:
    """Convert ``value`` to an exact Decimal using its string form."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError("Boolean is not a valid decimal value")
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid decimal value: {value!r}") from e


# === Enums ===

class AlertCondition(str, Enum):
    """Direction in which the current rate must cross the target."""
    ABOVE = "above"
    BELOW = "below"


class NotificationType(str, Enum):
    SYSTEM = "system"


class AuditAction(str, Enum):
    RATE_ALERT_TRIGGERED = "RATE_ALERT_TRIGGERED"


# === Rates ===

class RateCacheEntry(BaseModel):
    """
    Cached rate for one currency pair. The pair key ("FROM_TO") is the
    cache map key and is not repeated on the entry.

    Invariant: expires_at == fetched_at + ttl. An entry with
    expires_at <= now is treated as absent.
    """
    rate: Decimal = Field(gt=Decimal("0"))
    fetched_at: datetime
    expires_at: datetime

    def is_valid(self, now: datetime) -> bool:
        return now < self.expires_at


class ProviderRate(BaseModel):
    """Rate as returned by an upstream provider."""
    rate: Decimal = Field(gt=Decimal("0"))
    fetched_at: str
    source: str

    @field_validator("rate", mode="before")
    @classmethod
    def convert_to_decimal(cls, v: Any) -> Decimal:
        return to_decimal(v)


class RateResult(BaseModel):
    from_currency: str
    to_currency: str
    rate: Decimal
    fetched_at: datetime | None = None
    expires_at: datetime | None = None


class ConversionResult(BaseModel):
    rate: Decimal
    converted_amount: Decimal
    fetched_at: datetime | None = None
    expires_at: datetime | None = None


# === Alerts ===

class CreateRateAlert(BaseModel):
    """User request to create a rate alert."""
    from_currency: str = Field(min_length=3, max_length=10)
    to_currency: str = Field(min_length=3, max_length=10)
    target_rate: Decimal = Field(gt=Decimal("0"))
    condition: AlertCondition
    recurring: bool = False

    @field_validator("target_rate", mode="before")
    @classmethod
    def convert_to_decimal(cls, v: Any) -> Decimal:
        return to_decimal(v)


class RateAlert(BaseModel):
    """
    A user-defined threshold alert on a currency pair.

    Lifecycle:
        created       -> is_active=True, triggered_at=None
        triggered     -> is_active=False, triggered_at=<sweep time>
        reactivated   -> is_active=True (recurring only, 24h after trigger;
                         triggered_at is kept until the next trigger)
    """
    id: UUID = Field(default_factory=uuid4)
    user_id: str
    from_currency: str
    to_currency: str
    target_rate: Decimal = Field(gt=Decimal("0"))
    condition: AlertCondition
    is_active: bool = True
    recurring: bool = False
    triggered_at: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("target_rate", mode="before")
    @classmethod
    def convert_to_decimal(cls, v: Any) -> Decimal:
        return to_decimal(v)

    @field_validator("from_currency", "to_currency")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("triggered_at", "created_at")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        # naive values (e.g. from datetime.utcnow()) are taken as UTC
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @model_validator(mode="after")
    def validate_distinct_currencies(self) -> "RateAlert":
        if self.from_currency == self.to_currency:
            raise ValueError("from_currency and to_currency must be different")
        return self

    @property
    def pair(self) -> tuple[str, str]:
        return self.from_currency, self.to_currency


class AlertCheckResult(BaseModel):
    """Outcome of one alert sweep."""
    checked: int = 0
    triggered: int = 0
    reactivated: int = 0


# === Side channels ===

class Notification(BaseModel):
    user_id: str
    type: NotificationType = NotificationType.SYSTEM
    title: str
    message: str
    related_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
