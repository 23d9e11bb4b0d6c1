"""Built-in rate table used when no live rates are available."""
from decimal import Decimal
from typing import Dict

from balance.adapters.base import RateProvider

FALLBACK_RATES: Dict[str, Dict[str, str]] = {
    "USD": {
        "EUR": "0.85", "GBP": "0.73", "JPY": "110", "MDL": "18.5",
        "RUB": "75.0", "CHF": "0.88", "CAD": "1.25", "AUD": "1.35",
    },
    "EUR": {
        "USD": "1.18", "GBP": "0.86", "JPY": "129", "MDL": "21.8",
        "RUB": "88.0", "CHF": "1.04", "CAD": "1.47", "AUD": "1.59",
    },
    "GBP": {
        "USD": "1.37", "EUR": "1.16", "JPY": "150", "MDL": "25.3",
        "RUB": "102.0", "CHF": "1.20", "CAD": "1.71", "AUD": "1.85",
    },
    "JPY": {
        "USD": "0.0091", "EUR": "0.0077", "GBP": "0.0067", "MDL": "0.17",
        "RUB": "0.68", "CHF": "0.008", "CAD": "0.011", "AUD": "0.012",
    },
    "MDL": {
        "USD": "0.054", "EUR": "0.046", "GBP": "0.04", "JPY": "5.9",
        "RUB": "4.05", "CHF": "0.048", "CAD": "0.068", "AUD": "0.074",
    },
}


def fallback_rate(from_currency: str, to_currency: str) -> Decimal:
    """Rate from the built-in table. Unknown pairs convert 1:1."""
    if from_currency == to_currency:
        return Decimal("1")
    rate = FALLBACK_RATES.get(from_currency, {}).get(to_currency)
    return Decimal(rate) if rate is not None else Decimal("1")


class StaticRateProvider(RateProvider):
    """Serves rates from the built-in table without network access."""

    name = "static"

    def fetch_rate(self, from_currency: str, to_currency: str) -> Decimal:
        return fallback_rate(from_currency, to_currency)
