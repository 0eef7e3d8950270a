"""
Centralized configuration management for the Market Terminal backend.

All configuration values should be defined here and imported elsewhere.
Supports environment variable overrides.
"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Application
    app_name: str = "Market Terminal API"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: Optional[str] = None  # e.g. LOG_LEVEL=DEBUG; falls back to debug flag
    upstream_log_level: str = "WARNING"  # httpx/httpcore request chatter

    # CORS
    allowed_origins: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173"
    ]

    # Upstream endpoints
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    yahoo_seed_url: str = "https://fc.yahoo.com/"
    yahoo_crumb_url: str = "https://query2.finance.yahoo.com/v1/test/getcrumb"
    yahoo_quote_url: str = "https://query2.finance.yahoo.com/v7/finance/quote"
    yahoo_chart_url: str = "https://query1.finance.yahoo.com/v8/finance/chart/{symbol}"
    yahoo_summary_url: str = "https://query2.finance.yahoo.com/v10/finance/quoteSummary/{symbol}"
    yahoo_timeseries_url: str = (
        "https://query2.finance.yahoo.com/ws/fundamentals-timeseries/v1/finance/timeseries/{symbol}"
    )
    yahoo_search_url: str = "https://query2.finance.yahoo.com/v1/finance/search"
    http_timeout: float = 15.0

    # Cache settings
    cache_ttl_seconds: int = 300  # Quote-like data (quotes, charts, news, fundamentals)
    commentary_ttl_seconds: int = 3600

    # Session (cookie + crumb) settings
    session_ttl_seconds: int = 1800
    auth_max_attempts: int = 2
    auth_retry_delay: float = 2.0
    auth_rate_limit_delay: float = 30.0  # Handshake 429s back off longer than data calls

    # Resilient fetch settings
    yahoo_max_attempts: int = 3
    yahoo_retry_delay: float = 1.0
    yahoo_rate_limit_delay: float = 5.0
    operation_timeout: float = 90.0  # Overall deadline for one logical upstream call

    # Batch / bulk orchestration
    quote_batch_delay: float = 0.2
    bars_window_size: int = 5
    five_day_window_size: int = 10
    sparkline_window_size: int = 10
    news_window_size: int = 5
    bulk_window_delay: float = 0.2
    news_window_delay: float = 0.3
    news_per_symbol: int = 5
    sparkline_range: str = "1mo"
    sparkline_interval: str = "1d"
    financials_years: int = 5

    # Commentary generation
    commentary_command: str = "claude -p"

    # Watchlists
    watchlist_path: str = "./data/watchlists.json"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        # Allow environment variables to override
        # e.g., CACHE_TTL_SECONDS=120 overrides cache_ttl_seconds


# Singleton instance
settings = Settings()


def get_settings() -> Settings:
    """Get the settings instance. Useful for dependency injection."""
    return settings
