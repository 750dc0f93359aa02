"""
Base Rate Provider Interface

All rates MUST be returned as decimal.Decimal type.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any

from ratewatch.models import ProviderRate


class RateProviderError(Exception):
    """Base exception for rate provider errors."""

    def __init__(
        self,
        message: str,
        provider: str,
        error_type: str = "UNKNOWN",
        details: dict[str, Any] | None = None
    ):
        super().__init__(message)
        self.provider = provider
        self.error_type = error_type
        self.details = details or {}


class BaseRateProvider(ABC):
    """
    Abstract base class for exchange rate providers.

    Implementations MUST fail with RateProviderError on timeout, non-success
    responses, malformed payloads and non-positive or non-finite rates.
    """

    PROVIDER_NAME: str = "base"

    @abstractmethod
    async def fetch_rate(self, from_currency: str, to_currency: str) -> ProviderRate:
        """
        Fetch the latest rate for one currency pair.

        Args:
            from_currency: Normalized base currency code (e.g., "USD")
            to_currency: Normalized quote currency code (e.g., "NGN")

        Returns:
            ProviderRate with a positive Decimal rate

        Raises:
            RateProviderError: If fetching fails
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if provider is reachable and responding."""
        pass

    def _to_decimal(self, value: Any) -> Decimal | None:
        """
        Convert value to exact Decimal.

        NEVER use float conversion - always use str intermediate.
        Returns None when the value is missing or not a finite number.
        """
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, Decimal):
            return value if value.is_finite() else None
        try:
            parsed = Decimal(str(value))
        except ArithmeticError:
            return None
        return parsed if parsed.is_finite() else None
