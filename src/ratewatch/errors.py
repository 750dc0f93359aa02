"""
RateWatch Error Taxonomy

Each error carries the HTTP-equivalent status a hosting transport should
surface: 4xx for client-caused failures, 5xx for upstream or storage ones.
"""

from typing import Any


class RateWatchError(Exception):
    """Base exception for all RateWatch errors."""

    status_code: int = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidInputError(RateWatchError):
    """Malformed currency code, bad amount or invalid alert definition."""

    status_code = 400


class UnsupportedCurrencyError(InvalidInputError):
    """Currency failed external validation."""


class CurrencyNotFoundError(RateWatchError):
    """Raised by currency validators when a code is unknown or inactive."""

    status_code = 404

    def __init__(self, code: str, message: str | None = None):
        super().__init__(message or f"Currency {code} is not supported", {"code": code})
        self.code = code


class AlertNotFoundError(RateWatchError):
    """Rate alert does not exist or is not owned by the caller."""

    status_code = 404


class ProviderUnavailableError(RateWatchError):
    """Upstream rate provider failed (timeout, bad response, invalid rate)."""

    status_code = 502


class AlertStoreError(RateWatchError):
    """Alert persistence failed."""

    status_code = 500
