"""
Currency Validation

A validator confirms that a normalized currency code is supported and active.
Unknown codes raise CurrencyNotFoundError.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable

from ratewatch.errors import CurrencyNotFoundError


class CurrencyValidator(ABC):
    """Port for checking that a currency code is supported."""

    @abstractmethod
    async def validate_currency(self, code: str) -> None:
        """
        Raises:
            CurrencyNotFoundError: If the code is not supported
        """
        pass


class SupportedCurrencyValidator(CurrencyValidator):
    """Validates codes against a fixed set of supported currencies."""

    def __init__(self, supported: Iterable[str]):
        self.supported = frozenset(code.strip().upper() for code in supported)

    async def validate_currency(self, code: str) -> None:
        if code.strip().upper() not in self.supported:
            raise CurrencyNotFoundError(
                code,
                f"Currency {code} is not supported. "
                f"Only {', '.join(sorted(self.supported))} are supported"
            )
