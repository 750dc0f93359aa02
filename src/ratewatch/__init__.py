"""
RateWatch - Exchange Rate Cache and Rate Alert Engine

Memoizes FX rates per currency pair, converts amounts with exact decimal
arithmetic and sweeps user rate alerts on an external schedule.
"""

__version__ = "1.0.0"
