"""Currency conversion with rate caching and a circuit breaker."""
import logging
import time
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from balance.adapters import RateProvider, RateProviderError, fallback_rate, get_rate_provider
from balance.config import settings

logger = logging.getLogger(__name__)

MAX_FAILURES = 3
FAILURE_COOLDOWN_SECONDS = 5 * 60
CENT = Decimal("0.01")

SUPPORTED_CURRENCIES = [
    "USD", "EUR", "GBP", "JPY", "MDL", "RUB", "CHF", "CAD", "AUD", "NZD",
    "CNY", "HKD", "SGD", "KRW", "INR", "BRL", "MXN", "ZAR", "TRY", "PLN",
    "CZK", "HUF", "RON", "BGN", "HRK", "SEK", "NOK", "DKK", "ISK", "THB",
    "PHP", "IDR", "MYR", "VND", "ILS", "AED", "SAR", "QAR", "KWD", "BHD",
    "OMR", "JOD", "LBP", "EGP", "MAD", "TND", "DZD", "LYD", "ETB", "KES",
    "UGX", "TZS", "ZMW", "BWP", "NAD", "SZL", "LSL", "MUR", "SCR", "MVR",
    "PKR", "BDT", "LKR", "NPR", "AFN", "IRR", "IQD", "SYP", "YER", "JMD",
    "TTD", "BBD", "BZD", "GYD", "SRD", "XCD", "AWG", "ANG", "CUP", "DOP",
    "HTG", "PAB", "CRC", "NIO", "HNL", "GTQ", "BMD", "KYD", "BSD",
]

CURRENCY_SYMBOLS = {
    "USD": "$", "EUR": "€", "GBP": "£", "JPY": "¥", "MDL": "L", "RUB": "₽",
    "CHF": "CHF", "CAD": "C$", "AUD": "A$", "NZD": "NZ$", "CNY": "¥",
    "HKD": "HK$", "SGD": "S$", "KRW": "₩", "INR": "₹", "BRL": "R$",
    "MXN": "$", "ZAR": "R", "TRY": "₺", "PLN": "zł", "CZK": "Kč",
    "HUF": "Ft", "RON": "lei", "BGN": "лв", "HRK": "kn", "SEK": "kr",
    "NOK": "kr", "DKK": "kr", "ISK": "kr", "THB": "฿", "PHP": "₱",
    "IDR": "Rp", "MYR": "RM", "VND": "₫", "ILS": "₪", "AED": "د.إ",
    "SAR": "﷼", "QAR": "﷼", "KWD": "د.ك", "BHD": "د.ب", "OMR": "﷼",
    "JOD": "د.ا", "LBP": "ل.ل", "EGP": "£", "MAD": "د.م.", "TND": "د.ت",
    "DZD": "د.ج", "LYD": "ل.د", "ETB": "Br", "KES": "KSh", "UGX": "USh",
    "TZS": "TSh", "ZMW": "ZK", "BWP": "P", "NAD": "N$", "SZL": "L",
    "LSL": "L", "MUR": "₨", "SCR": "₨", "MVR": "ރ", "PKR": "₨",
    "BDT": "৳", "LKR": "₨", "NPR": "₨", "AFN": "؋", "IRR": "﷼",
    "IQD": "د.ع", "SYP": "£", "YER": "﷼", "JMD": "J$", "TTD": "TT$",
    "BBD": "Bds$", "BZD": "BZ$", "GYD": "G$", "SRD": "SRD", "XCD": "EC$",
    "AWG": "ƒ", "ANG": "ƒ", "CUP": "$", "DOP": "RD$", "HTG": "G",
    "PAB": "B/.", "CRC": "₡", "NIO": "C$", "HNL": "L", "GTQ": "Q",
    "BMD": "BD$", "KYD": "CI$", "BSD": "B$",
}


class CurrencyService:
    """
    Converts amounts between currencies.

    Rates come from a provider and are cached for `cache_ttl` seconds. After
    MAX_FAILURES consecutive provider failures the service stops calling out
    and serves the built-in table until the cooldown has passed since the
    last failure. A failed lookup caches the fallback rate too.
    """

    def __init__(
        self,
        provider: Optional[RateProvider] = None,
        cache_ttl: float = None,
        clock=time.time,
    ):
        self.provider = provider or get_rate_provider()
        self.cache_ttl = settings.rate_cache_ttl_seconds if cache_ttl is None else cache_ttl
        self._clock = clock
        self._cache: Dict[Tuple[str, str], Tuple[Decimal, float]] = {}
        self.failure_count = 0
        self.last_failure_time = 0.0

    @property
    def circuit_open(self) -> bool:
        return (
            self.failure_count >= MAX_FAILURES
            and self._clock() - self.last_failure_time < FAILURE_COOLDOWN_SECONDS
        )

    def get_exchange_rate(self, from_currency: str, to_currency: str) -> Decimal:
        from_currency = from_currency.upper()
        to_currency = to_currency.upper()
        if from_currency == to_currency:
            return Decimal("1")

        key = (from_currency, to_currency)
        now = self._clock()
        cached = self._cache.get(key)
        if cached and now - cached[1] < self.cache_ttl:
            return cached[0]

        if self.circuit_open:
            logger.warning("Rate provider circuit open, using fallback rates")
            return fallback_rate(from_currency, to_currency)

        try:
            rate = self.provider.fetch_rate(from_currency, to_currency)
            self.failure_count = 0
        except RateProviderError as e:
            self.failure_count += 1
            self.last_failure_time = now
            rate = fallback_rate(from_currency, to_currency)
            logger.warning(
                "Rate provider failure %s/%s (%s), using fallback %s -> %s = %s",
                self.failure_count, MAX_FAILURES, e, from_currency, to_currency, rate,
            )

        self._cache[key] = (rate, now)
        return rate

    def convert_amount(self, amount: Decimal, from_currency: str, to_currency: str) -> Decimal:
        """Convert `amount`, rounded to cents."""
        rate = self.get_exchange_rate(from_currency, to_currency)
        return (Decimal(amount) * rate).quantize(CENT, rounding=ROUND_HALF_UP)

    def convert_amounts(
        self,
        items: Iterable[Tuple[Decimal, str]],
        to_currency: str,
    ) -> List[Decimal]:
        """Convert (amount, currency) pairs, preserving order."""
        return [self.convert_amount(amount, currency, to_currency) for amount, currency in items]

    @staticmethod
    def supported_currencies() -> List[str]:
        return list(SUPPORTED_CURRENCIES)

    @staticmethod
    def currency_symbol(currency: str) -> str:
        return CURRENCY_SYMBOLS.get(currency.upper(), currency)

    def clear_cache(self):
        self._cache.clear()


# Global instance
_currency_service = None


def get_currency_service() -> CurrencyService:
    global _currency_service
    if _currency_service is None:
        _currency_service = CurrencyService()
    return _currency_service
