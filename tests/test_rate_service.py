"""Tests for RateService resolution, caching, error mapping and conversion."""

import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest

from ratewatch.errors import (
    InvalidInputError,
    ProviderUnavailableError,
    UnsupportedCurrencyError,
)
from ratewatch.providers.base import RateProviderError
from ratewatch.rates import RateService, pair_key

from conftest import SWEEP_TIME


class TestNormalize:
    """Currency code normalization."""

    def test_trims_and_uppercases(self):
        """Codes are trimmed and upper-cased."""
        assert RateService.normalize("  usd ") == "USD"

    @pytest.mark.parametrize("code", ["", "   ", None, 123])
    def test_rejects_blank(self, code):
        """Blank or non-string codes are invalid."""
        with pytest.raises(InvalidInputError):
            RateService.normalize(code)


class TestGetRate:
    """Rate lookup through the cache."""

    @pytest.mark.asyncio
    async def test_same_currency_returns_one_and_caches(self, rate_service, provider, cache):
        """Identity pair is 1 without a fetch."""
        result = await rate_service.get_rate("usd", "USD")

        assert result.rate == Decimal("1")
        assert result.from_currency == "USD"
        assert result.to_currency == "USD"
        assert result.fetched_at == SWEEP_TIME
        assert "USD_USD" in cache

        again = await rate_service.get_rate("USD", "USD")
        assert again.rate == Decimal("1")
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_caches_provider_result_within_ttl(self, rate_service, provider):
        """Second lookup is served from cache."""
        provider.rates[("USD", "NGN")] = "1610.5"

        first = await rate_service.get_rate("USD", "NGN")
        second = await rate_service.get_rate(" usd ", "ngn")

        assert first.rate == Decimal("1610.5")
        assert second.rate == Decimal("1610.5")
        assert provider.calls == [("USD", "NGN")]

    @pytest.mark.asyncio
    async def test_refetches_after_ttl(self, rate_service, provider, clock):
        """Expired entries are refetched."""
        provider.rates[("USD", "NGN")] = "1610"
        await rate_service.get_rate("USD", "NGN")

        clock.advance(seconds=600)
        provider.rates[("USD", "NGN")] = "1620"
        result = await rate_service.get_rate("USD", "NGN")

        assert result.rate == Decimal("1620")
        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_result_carries_cache_timestamps(self, rate_service, provider):
        """Result carries fetched_at and expires_at."""
        provider.rates[("USD", "NGN")] = "1610"

        result = await rate_service.get_rate("USD", "NGN")

        assert result.fetched_at == SWEEP_TIME
        assert result.expires_at == SWEEP_TIME + timedelta(seconds=600)

    @pytest.mark.asyncio
    async def test_unsupported_currency_is_client_error(self, rate_service, provider):
        """Unsupported codes are a 400."""
        with pytest.raises(UnsupportedCurrencyError) as exc_info:
            await rate_service.get_rate("XYZ", "USD")

        assert isinstance(exc_info.value, InvalidInputError)
        assert exc_info.value.status_code == 400
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_blank_code_is_invalid_input(self, rate_service):
        """Blank code is invalid input."""
        with pytest.raises(InvalidInputError):
            await rate_service.get_rate(" ", "USD")

    @pytest.mark.asyncio
    async def test_provider_error_maps_to_unavailable(self, rate_service, provider, cache):
        """Provider errors become a 502."""
        provider.rates[("NGN", "USD")] = RateProviderError(
            "Provider request timed out", "fake", "TIMEOUT"
        )

        with pytest.raises(ProviderUnavailableError) as exc_info:
            await rate_service.get_rate("NGN", "USD")

        assert exc_info.value.status_code == 502
        assert exc_info.value.details["error_type"] == "TIMEOUT"
        assert pair_key("NGN", "USD") not in cache

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self, rate_service, provider):
        """A failed fetch is retried next time."""
        provider.rates[("NGN", "USD")] = RateProviderError("down", "fake", "HTTP_503")
        with pytest.raises(ProviderUnavailableError):
            await rate_service.get_rate("NGN", "USD")

        provider.rates[("NGN", "USD")] = "0.00062"
        result = await rate_service.get_rate("NGN", "USD")

        assert result.rate == Decimal("0.00062")
        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_unexpected_provider_exception_maps_to_unavailable(self, rate_service, provider):
        """Unexpected errors also become a 502."""
        provider.rates[("NGN", "USD")] = RuntimeError("socket closed")

        with pytest.raises(ProviderUnavailableError):
            await rate_service.get_rate("NGN", "USD")

    @pytest.mark.asyncio
    async def test_concurrent_calls_share_one_fetch(self, rate_service, provider):
        """Concurrent lookups share one fetch."""
        provider.rates[("USD", "EUR")] = "0.92"
        provider.delay = 0.01

        results = await asyncio.gather(
            rate_service.get_rate("USD", "EUR"),
            rate_service.get_rate("USD", "EUR"),
            rate_service.get_rate("usd", "eur"),
        )

        assert [r.rate for r in results] == [Decimal("0.92")] * 3
        assert provider.calls == [("USD", "EUR")]

    @pytest.mark.asyncio
    async def test_pair_locks_are_released(self, rate_service, provider):
        """Pair locks are dropped once idle."""
        provider.rates[("USD", "EUR")] = "0.92"
        provider.rates[("NGN", "USD")] = RateProviderError("down", "fake", "HTTP_503")
        provider.delay = 0.01

        await asyncio.gather(
            rate_service.get_rate("USD", "EUR"),
            rate_service.get_rate("USD", "EUR"),
            rate_service.get_rate("NGN", "USD"),
            return_exceptions=True,
        )

        assert rate_service._pair_locks == {}
        assert rate_service._lock_users == {}


class TestConvert:
    """Amount conversion."""

    @pytest.mark.asyncio
    async def test_ngn_to_usd_is_exact(self, rate_service, cache, clock, provider):
        """Conversion is exact for small rates."""
        cache.set("NGN_USD", Decimal("0.00062"), clock())

        result = await rate_service.convert("NGN", "USD", 25000)

        assert result.converted_amount == Decimal("15.5")
        assert result.rate == Decimal("0.00062")
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_converts_using_fetched_rate(self, rate_service, provider):
        """Conversion uses the fetched rate."""
        provider.rates[("USD", "NGN")] = "1.5"

        result = await rate_service.convert("USD", "NGN", 10)

        assert result.rate == Decimal("1.5")
        assert result.converted_amount == Decimal("15")
        assert result.expires_at == SWEEP_TIME + timedelta(seconds=600)

    @pytest.mark.asyncio
    async def test_zero_amount(self, rate_service, provider):
        """Zero converts to zero."""
        provider.rates[("USD", "NGN")] = "1610"

        result = await rate_service.convert("USD", "NGN", 0)

        assert result.converted_amount == Decimal("0")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [-1, float("nan"), float("inf"), "abc", Decimal("-0.01")])
    async def test_rejects_invalid_amount(self, rate_service, provider, amount):
        """Negative or non-finite amounts are rejected."""
        with pytest.raises(InvalidInputError):
            await rate_service.convert("USD", "NGN", amount)

        assert provider.calls == []
