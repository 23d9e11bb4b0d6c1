"""Balance personal-finance service."""

__version__ = "1.0.0"
