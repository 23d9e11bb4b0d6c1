"""Live exchange rates from an HTTP currency API."""
import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

import httpx

from balance.adapters.base import RateProvider, RateProviderError

logger = logging.getLogger(__name__)


class HttpRateProvider(RateProvider):
    """
    Queries an amdoren-style endpoint.

    The API answers `{"error": 0, "amount": <rate>}` for
    `?api_key=..&from=..&to=..&amount=1`; any other `error` code is a failure.
    """

    name = "http"

    def __init__(
        self,
        api_url: str,
        api_key: str = "",
        timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.api_url = api_url
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    def fetch_rate(self, from_currency: str, to_currency: str) -> Decimal:
        params = {
            "api_key": self.api_key,
            "from": from_currency,
            "to": to_currency,
            "amount": 1,
        }
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                r = client.get(self.api_url, params=params, headers={"Accept": "application/json"})
                r.raise_for_status()
                data = r.json()
        except (httpx.HTTPError, ValueError) as e:
            raise RateProviderError(f"Rate request failed: {e}") from e

        if not isinstance(data, dict) or data.get("error") != 0:
            message = data.get("error_message") if isinstance(data, dict) else None
            raise RateProviderError(f"API Error: {message or 'Unknown error'}")

        try:
            rate = Decimal(str(data["amount"]))
        except (KeyError, InvalidOperation) as e:
            raise RateProviderError("API response carries no rate") from e

        logger.info("Fetched rate %s -> %s = %s", from_currency, to_currency, rate)
        return rate
