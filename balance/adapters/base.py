"""Base exchange-rate provider interface."""
from abc import ABC, abstractmethod
from decimal import Decimal


class RateProviderError(Exception):
    """A provider could not produce a rate."""


class RateProvider(ABC):
    """Abstract base class for exchange-rate providers."""

    name = "base"

    def __init__(self, **kwargs):
        """
        Initialize the provider.

        Args:
            **kwargs: Provider-specific configuration
        """
        self.config = kwargs

    @abstractmethod
    def fetch_rate(self, from_currency: str, to_currency: str) -> Decimal:
        """
        Fetch the rate converting one unit of `from_currency` into `to_currency`.

        Raises:
            RateProviderError: If no rate is available
        """
        pass
