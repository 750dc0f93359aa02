"""
Exchange Rate Module

RateCache memoizes rates per pair; RateService validates, resolves and
converts.
"""

from ratewatch.rates.arithmetic import multiply_decimal
from ratewatch.rates.cache import RateCache
from ratewatch.rates.service import RateService, pair_key

__all__ = [
    "RateCache",
    "RateService",
    "multiply_decimal",
    "pair_key",
]
