"""
Exchange Rate Service

Resolves a current or cached rate for a currency pair and converts amounts
with exact decimal arithmetic.

Resolution order for get_rate():
    normalize -> validate both codes -> cache -> identity pair (rate 1)
    -> provider (result cached, failures never cached)
"""

import asyncio
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable

from ratewatch.currencies import CurrencyValidator
from ratewatch.errors import (
    CurrencyNotFoundError,
    InvalidInputError,
    ProviderUnavailableError,
    UnsupportedCurrencyError,
)
from ratewatch.models import (
    ConversionResult,
    RateCacheEntry,
    RateResult,
    to_decimal,
    utc_now,
)
from ratewatch.providers.base import BaseRateProvider, RateProviderError
from ratewatch.rates.arithmetic import multiply_decimal
from ratewatch.rates.cache import RateCache

logger = logging.getLogger(__name__)


def pair_key(from_currency: str, to_currency: str) -> str:
    """Cache key for a normalized currency pair."""
    return f"{from_currency}_{to_currency}"


class RateService:
    """
    Orchestrates currency validation, cache lookup and provider fallback.

    Concurrent get_rate() calls for the same uncached pair share a single
    provider fetch.
    """

    def __init__(
        self,
        cache: RateCache,
        provider: BaseRateProvider,
        validator: CurrencyValidator,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.cache = cache
        self.provider = provider
        self.validator = validator
        self._clock = clock
        self._pair_locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @staticmethod
    def normalize(code: Any, field: str = "currency") -> str:
        """
        Trim and upper-case a currency code.

        Raises:
            InvalidInputError: If the code is missing or blank
        """
        if not isinstance(code, str) or not code.strip():
            raise InvalidInputError(f"Currency '{field}' is required")
        return code.strip().upper()

    async def validate_pair(self, from_currency: str, to_currency: str) -> None:
        """Validate both codes; unknown currencies become client errors."""
        try:
            await asyncio.gather(
                self.validator.validate_currency(from_currency),
                self.validator.validate_currency(to_currency),
            )
        except CurrencyNotFoundError as e:
            raise UnsupportedCurrencyError(str(e), {"code": e.code}) from e

    async def get_rate(self, from_currency: str, to_currency: str) -> RateResult:
        """
        Get the current rate for a currency pair.

        Args:
            from_currency: Base currency code
            to_currency: Quote currency code

        Returns:
            RateResult with fetched_at / expires_at of the cache entry

        Raises:
            InvalidInputError: Blank code or unsupported currency
            ProviderUnavailableError: Upstream fetch failed
        """
        from_code = self.normalize(from_currency, "from")
        to_code = self.normalize(to_currency, "to")

        await self.validate_pair(from_code, to_code)

        key = pair_key(from_code, to_code)
        cached = self.cache.get(key)
        if cached is not None:
            return self._to_result(from_code, to_code, cached)

        lock = self._pair_locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                return await self._fetch_and_cache(from_code, to_code, key)
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._pair_locks[key]

    async def _fetch_and_cache(self, from_code: str, to_code: str, key: str) -> RateResult:
        """Re-check the cache, then fetch and store. Caller holds the pair lock."""
        # another caller may have filled the cache while we waited
        cached = self.cache.get(key)
        if cached is not None:
            return self._to_result(from_code, to_code, cached)

        if from_code == to_code:
            entry = self.cache.set(key, Decimal("1"), self._clock())
            return self._to_result(from_code, to_code, entry)

        try:
            provider_rate = await self.provider.fetch_rate(from_code, to_code)
        except RateProviderError as e:
            logger.error(
                f"Failed to fetch rate {from_code}->{to_code}: "
                f"{e.error_type} {e}"
            )
            raise ProviderUnavailableError(
                str(e),
                {"provider": e.provider, "error_type": e.error_type}
            ) from e
        except Exception as e:
            logger.exception(f"Failed to fetch rate {from_code}->{to_code}")
            raise ProviderUnavailableError("Failed to fetch exchange rate") from e

        entry = self.cache.set(key, provider_rate.rate, provider_rate.fetched_at)
        return self._to_result(from_code, to_code, entry)

    async def convert(
        self,
        from_currency: str,
        to_currency: str,
        amount: Decimal | int | float | str,
    ) -> ConversionResult:
        """
        Convert ``amount`` of from_currency into to_currency.

        Raises:
            InvalidInputError: Blank code, unsupported currency, or an amount
                that is not a finite number >= 0
            ProviderUnavailableError: Upstream fetch failed
        """
        from_code = self.normalize(from_currency, "from")
        to_code = self.normalize(to_currency, "to")
        value = self._validate_amount(amount)

        rate_result = await self.get_rate(from_code, to_code)
        converted = multiply_decimal(value, rate_result.rate)

        return ConversionResult(
            rate=rate_result.rate,
            converted_amount=converted,
            fetched_at=rate_result.fetched_at,
            expires_at=rate_result.expires_at,
        )

    @staticmethod
    def _validate_amount(amount: Any) -> Decimal:
        try:
            value = to_decimal(amount)
        except ValueError as e:
            raise InvalidInputError("Amount must be a finite number") from e

        if not value.is_finite():
            raise InvalidInputError("Amount must be a finite number")
        if value < 0:
            raise InvalidInputError("Amount must be greater than or equal to 0")
        return value

    @staticmethod
    def _to_result(
        from_currency: str,
        to_currency: str,
        entry: RateCacheEntry,
    ) -> RateResult:
        return RateResult(
            from_currency=from_currency,
            to_currency=to_currency,
            rate=entry.rate,
            fetched_at=entry.fetched_at,
            expires_at=entry.expires_at,
        )
