"""Factory for creating exchange-rate providers."""
from balance.adapters.base import RateProvider
from balance.adapters.http_rates import HttpRateProvider
from balance.adapters.static import StaticRateProvider
from balance.config import settings


def get_rate_provider(name: str = None, **kwargs) -> RateProvider:
    """
    Create the rate provider named `name` ("http" or "static").

    Without an API key there is nothing to query, so "http" degrades to the
    static table. Unknown names also get the static table.
    """
    name = (name or settings.rate_provider).lower()
    if name == "http":
        api_key = kwargs.pop("api_key", settings.currency_api_key)
        if api_key:
            return HttpRateProvider(
                kwargs.pop("api_url", settings.currency_api_url),
                api_key=api_key,
                **kwargs,
            )
    return StaticRateProvider(**kwargs)
