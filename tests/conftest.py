"""Shared fixtures: controllable clock, scripted provider and recording sinks."""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

import pytest

from ratewatch.alerts import AlertEngine, AuditSink, InMemoryAlertStore, NotificationSink
from ratewatch.currencies import SupportedCurrencyValidator
from ratewatch.models import AuditAction, Notification, ProviderRate
from ratewatch.providers.base import BaseRateProvider, RateProviderError
from ratewatch.rates import RateCache, RateService

SWEEP_TIME = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = SWEEP_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeProvider(BaseRateProvider):
    """Returns scripted rates per pair; an Exception value is raised instead."""

    PROVIDER_NAME = "fake"

    def __init__(self, clock: FakeClock, rates: dict[tuple[str, str], Any] | None = None):
        self.clock = clock
        self.rates: dict[tuple[str, str], Any] = rates or {}
        self.calls: list[tuple[str, str]] = []
        self.delay = 0.0

    async def fetch_rate(self, from_currency: str, to_currency: str) -> ProviderRate:
        self.calls.append((from_currency, to_currency))
        if self.delay:
            await asyncio.sleep(self.delay)

        value = self.rates.get((from_currency, to_currency))
        if value is None:
            raise RateProviderError("no rate", self.PROVIDER_NAME, "INVALID_RATE")
        if isinstance(value, Exception):
            raise value
        return ProviderRate(
            rate=Decimal(str(value)),
            fetched_at=self.clock().isoformat(),
            source="fake",
        )

    async def health_check(self) -> bool:
        return True


class RecordingNotificationSink(NotificationSink):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.notifications: list[Notification] = []

    async def create(self, notification: Notification) -> None:
        if self.fail:
            raise RuntimeError("notification service down")
        self.notifications.append(notification)


class RecordingAuditSink(AuditSink):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.events: list[tuple[AuditAction, str, dict[str, Any]]] = []

    async def log_event(self, action: AuditAction, entity_id: str, metadata: dict[str, Any]) -> None:
        if self.fail:
            raise RuntimeError("audit store down")
        self.events.append((action, entity_id, metadata))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock) -> RateCache:
    return RateCache(ttl_seconds=600, max_size=1000, clock=clock)


@pytest.fixture
def provider(clock) -> FakeProvider:
    return FakeProvider(clock)


@pytest.fixture
def validator() -> SupportedCurrencyValidator:
    return SupportedCurrencyValidator(["USD", "NGN", "EUR", "GBP"])


@pytest.fixture
def rate_service(cache, provider, validator, clock) -> RateService:
    return RateService(cache=cache, provider=provider, validator=validator, clock=clock)


@pytest.fixture
def store() -> InMemoryAlertStore:
    return InMemoryAlertStore()


@pytest.fixture
def notifications() -> RecordingNotificationSink:
    return RecordingNotificationSink()


@pytest.fixture
def audit() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def engine(store, rate_service, notifications, audit, clock) -> AlertEngine:
    return AlertEngine(
        store=store,
        rate_service=rate_service,
        notifications=notifications,
        audit=audit,
        clock=clock,
    )
