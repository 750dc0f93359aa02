"""Tests for the exchangerate.host provider client."""

from decimal import Decimal

import httpx
import pytest
import respx
from httpx import Response

from ratewatch.config import Settings
from ratewatch.providers import ExchangeRateHostClient, RateProviderError

BASE_URL = "https://rates.test"
LATEST_URL = f"{BASE_URL}/latest"


@pytest.fixture
def client() -> ExchangeRateHostClient:
    settings = Settings(
        exchange_rates_provider_base_url=f"{BASE_URL}/",
        exchange_rates_provider_api_key="",
        exchange_rates_provider_timeout_ms=2000,
    )
    return ExchangeRateHostClient(settings)


class TestFetchRate:
    """Fetching a single rate."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_reads_rates_map(self, client):
        """Rate taken from rates[TO]."""
        route = respx.get(LATEST_URL, params={"base": "USD", "symbols": "NGN"}).mock(
            return_value=Response(200, json={"base": "USD", "rates": {"NGN": 1610.5}})
        )

        result = await client.fetch_rate("USD", "NGN")

        assert route.called
        assert result.rate == Decimal("1610.5")
        assert isinstance(result.rate, Decimal)
        assert result.source == BASE_URL
        assert result.fetched_at

    @respx.mock
    @pytest.mark.asyncio
    async def test_reads_result_field(self, client):
        """Rate taken from result."""
        respx.get(LATEST_URL).mock(return_value=Response(200, json={"result": "0.00062"}))

        result = await client.fetch_rate("NGN", "USD")

        assert result.rate == Decimal("0.00062")

    @respx.mock
    @pytest.mark.asyncio
    async def test_reads_info_rate(self, client):
        """Rate taken from info.rate."""
        respx.get(LATEST_URL).mock(return_value=Response(200, json={"info": {"rate": 0.92}}))

        result = await client.fetch_rate("USD", "EUR")

        assert result.rate == Decimal("0.92")

    @respx.mock
    @pytest.mark.asyncio
    async def test_sends_access_key_when_configured(self):
        """API key goes in access_key."""
        settings = Settings(
            exchange_rates_provider_base_url=BASE_URL,
            exchange_rates_provider_api_key="secret",
        )
        route = respx.get(LATEST_URL).mock(
            return_value=Response(200, json={"rates": {"NGN": 1610}})
        )

        await ExchangeRateHostClient(settings).fetch_rate("USD", "NGN")

        assert route.calls.last.request.url.params["access_key"] == "secret"

    @respx.mock
    @pytest.mark.asyncio
    async def test_omits_access_key_by_default(self, client):
        """No key, no access_key param."""
        route = respx.get(LATEST_URL).mock(
            return_value=Response(200, json={"rates": {"NGN": 1610}})
        )

        await client.fetch_rate("USD", "NGN")

        assert "access_key" not in route.calls.last.request.url.params

    @respx.mock
    @pytest.mark.asyncio
    async def test_success_false_uses_error_info(self, client):
        """Provider error message is surfaced."""
        respx.get(LATEST_URL).mock(
            return_value=Response(
                200,
                json={"success": False, "error": {"code": 101, "info": "Invalid access key"}},
            )
        )

        with pytest.raises(RateProviderError) as exc_info:
            await client.fetch_rate("USD", "NGN")

        assert str(exc_info.value) == "Invalid access key"
        assert exc_info.value.error_type == "PROVIDER_ERROR"

    @respx.mock
    @pytest.mark.asyncio
    async def test_http_error(self, client):
        """Non-2xx maps to HTTP_<code>."""
        respx.get(LATEST_URL).mock(return_value=Response(503))

        with pytest.raises(RateProviderError) as exc_info:
            await client.fetch_rate("USD", "NGN")

        assert exc_info.value.error_type == "HTTP_503"
        assert "503" in str(exc_info.value)

    @respx.mock
    @pytest.mark.asyncio
    async def test_timeout(self, client):
        """Timeouts map to TIMEOUT."""
        respx.get(LATEST_URL).mock(side_effect=httpx.ConnectTimeout)

        with pytest.raises(RateProviderError) as exc_info:
            await client.fetch_rate("USD", "NGN")

        assert exc_info.value.error_type == "TIMEOUT"
        assert exc_info.value.provider == "exchangerate_host"

    @respx.mock
    @pytest.mark.asyncio
    async def test_malformed_body(self, client):
        """Non-JSON body maps to PARSE_ERROR."""
        respx.get(LATEST_URL).mock(return_value=Response(200, text="<html>oops</html>"))

        with pytest.raises(RateProviderError) as exc_info:
            await client.fetch_rate("USD", "NGN")

        assert exc_info.value.error_type == "PARSE_ERROR"

    @respx.mock
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"rates": {"NGN": 0}},
            {"rates": {"NGN": -3.2}},
            {"rates": {"NGN": "abc"}},
            {"rates": {"EUR": 0.92}},
            {},
        ],
    )
    async def test_invalid_rate(self, client, payload):
        """Missing or non-positive rates map to INVALID_RATE."""
        respx.get(LATEST_URL).mock(return_value=Response(200, json=payload))

        with pytest.raises(RateProviderError) as exc_info:
            await client.fetch_rate("USD", "NGN")

        assert exc_info.value.error_type == "INVALID_RATE"


class TestHealthCheck:
    """Provider reachability."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_healthy(self, client):
        """200 response is healthy."""
        respx.get(LATEST_URL).mock(return_value=Response(200, json={"rates": {"EUR": 0.92}}))

        assert await client.health_check() is True

    @respx.mock
    @pytest.mark.asyncio
    async def test_unreachable(self, client):
        """Connection errors are unhealthy."""
        respx.get(LATEST_URL).mock(side_effect=httpx.ConnectError)

        assert await client.health_check() is False
