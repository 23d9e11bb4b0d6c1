from .base import RateProvider, RateProviderError
from .static import StaticRateProvider, fallback_rate
from .http_rates import HttpRateProvider
from .factory import get_rate_provider

__all__ = [
    "RateProvider",
    "RateProviderError",
    "StaticRateProvider",
    "HttpRateProvider",
    "fallback_rate",
    "get_rate_provider",
]
