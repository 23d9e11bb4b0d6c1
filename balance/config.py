"""Configuration settings for the application."""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    app_name: str = "Balance Finance API"
    debug: bool = False
    database_path: str = "balance.db"

    # Local backups
    max_backups: int = 10
    backup_max_age_days: int = 0
    auto_backup_interval_seconds: int = 15 * 60

    # Currency conversion
    default_base_currency: str = "EUR"
    rate_provider: str = "http"
    currency_api_url: str = "https://www.amdoren.com/api/currency.php"
    currency_api_key: str = ""
    rate_cache_ttl_seconds: int = 60 * 60

    # Hosted backend (Supabase)
    supabase_url: str = ""
    supabase_anon_key: str = ""
    http_timeout_seconds: float = 10.0

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
