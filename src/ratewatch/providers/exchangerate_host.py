"""
exchangerate.host API Client

Fetches the latest rate for a single currency pair.
Endpoint: GET {base_url}/latest?base=USD&symbols=NGN[&access_key=...]
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import httpx

from ratewatch.config import Settings, get_settings
from ratewatch.models import ProviderRate
from ratewatch.providers.base import BaseRateProvider, RateProviderError

logger = logging.getLogger(__name__)


class ExchangeRateHostClient(BaseRateProvider):
    """
    Client for exchangerate.host compatible APIs.

    Accepted response shapes (first match wins):
        {"rates": {"NGN": 1610.5}}
        {"result": 1610.5}
        {"info": {"rate": 1610.5}}
    A payload with "success": false is an error; its "error.info" text is
    used as the message.
    """

    PROVIDER_NAME = "exchangerate_host"

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self.base_url = self.settings.exchange_rates_provider_base_url.rstrip("/")
        self.api_key = self.settings.exchange_rates_provider_api_key or None
        self.timeout = self.settings.provider_timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def _build_params(self, from_currency: str, to_currency: str) -> dict[str, str]:
        params = {"base": from_currency, "symbols": to_currency}
        if self.api_key:
            params["access_key"] = self.api_key
        return params

    async def fetch_rate(self, from_currency: str, to_currency: str) -> ProviderRate:
        """
        Fetch the latest rate from the provider.

        Raises:
            RateProviderError: timeout, HTTP error, error payload or invalid rate
        """
        try:
            async with self._client() as client:
                response = await client.get(
                    f"{self.base_url}/latest",
                    params=self._build_params(from_currency, to_currency)
                )
                response.raise_for_status()
                data = response.json()

            if not isinstance(data, dict) or data.get("success") is False:
                error = data.get("error") if isinstance(data, dict) else None
                message = (
                    error.get("info") if isinstance(error, dict) else None
                ) or "Provider returned an error"
                raise RateProviderError(
                    message=message,
                    provider=self.PROVIDER_NAME,
                    error_type="PROVIDER_ERROR",
                    details={"response": data}
                )

            rate = self._extract_rate(data, to_currency)
            if rate is None or rate <= 0:
                raise RateProviderError(
                    message="Provider returned invalid rate",
                    provider=self.PROVIDER_NAME,
                    error_type="INVALID_RATE",
                    details={"pair": f"{from_currency}/{to_currency}"}
                )

            logger.info(f"Fetched {from_currency}/{to_currency}={rate} from {self.PROVIDER_NAME}")

            return ProviderRate(
                rate=rate,
                fetched_at=datetime.now(timezone.utc).isoformat(),
                source=self.base_url
            )

        except httpx.HTTPStatusError as e:
            raise RateProviderError(
                message=f"Provider responded with status {e.response.status_code}",
                provider=self.PROVIDER_NAME,
                error_type=f"HTTP_{e.response.status_code}",
                details={"url": str(e.request.url)}
            ) from e

        except httpx.TimeoutException as e:
            raise RateProviderError(
                message="Provider request timed out",
                provider=self.PROVIDER_NAME,
                error_type="TIMEOUT",
                details={"timeout_seconds": self.timeout}
            ) from e

        except ValueError as e:
            raise RateProviderError(
                message="Provider returned malformed payload",
                provider=self.PROVIDER_NAME,
                error_type="PARSE_ERROR",
                details={}
            ) from e

        except Exception as e:
            if isinstance(e, RateProviderError):
                raise
            raise RateProviderError(
                message="Failed to fetch exchange rate",
                provider=self.PROVIDER_NAME,
                error_type="UNKNOWN",
                details={"error": str(e)}
            ) from e

    def _extract_rate(self, data: dict[str, Any], to_currency: str) -> Decimal | None:
        symbol = to_currency.upper()

        rates = data.get("rates")
        if isinstance(rates, dict) and symbol in rates:
            return self._to_decimal(rates[symbol])

        if "result" in data:
            return self._to_decimal(data["result"])

        info = data.get("info")
        if isinstance(info, dict) and "rate" in info:
            return self._to_decimal(info["rate"])

        return None

    async def health_check(self) -> bool:
        """Check if the provider is reachable."""
        try:
            async with self._client() as client:
                response = await client.get(
                    f"{self.base_url}/latest",
                    params=self._build_params("USD", "EUR")
                )
                return response.status_code == 200
        except Exception:
            return False
