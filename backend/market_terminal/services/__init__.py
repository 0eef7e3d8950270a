"""
Services package for the Market Terminal API.

This package contains the market-data acquisition layer, separated from the API layer.
"""
from .cache import CacheRegistry, TTLCache
from .calculations import StockCalculations
from .commentary import CommentaryGenerationError, CommentaryService, build_market_summary
from .context import MarketDataContext, get_market_data_context
from .news_service import NewsService
from .retry import ResilientFetcher, RetryPolicy
from .session import SessionAuthenticator
from .stock_fetcher import StockFetcher
from .watchlist import WatchlistNotFoundError, WatchlistStore, get_watchlist_store

__all__ = [
    "CacheRegistry",
    "TTLCache",
    "StockCalculations",
    "CommentaryGenerationError",
    "CommentaryService",
    "build_market_summary",
    "MarketDataContext",
    "get_market_data_context",
    "NewsService",
    "ResilientFetcher",
    "RetryPolicy",
    "SessionAuthenticator",
    "StockFetcher",
    "WatchlistNotFoundError",
    "WatchlistStore",
    "get_watchlist_store",
]
