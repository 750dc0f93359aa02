"""
RateWatch Rate Providers
"""

from ratewatch.providers.base import BaseRateProvider, RateProviderError
from ratewatch.providers.exchangerate_host import ExchangeRateHostClient

__all__ = [
    "BaseRateProvider",
    "RateProviderError",
    "ExchangeRateHostClient",
]
