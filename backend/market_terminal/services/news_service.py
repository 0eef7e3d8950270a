"""
News headlines per symbol, from Yahoo's v1 search endpoint.
"""
import asyncio
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from ..config import Settings, settings as default_settings
from ..logging_config import get_logger
from ..schemas import NewsItem
from .bulk import fetch_in_windows, normalize_symbols
from .cache import CacheRegistry, symbols_key
from .normalize import normalize_news
from .retry import ResilientFetcher, RetryPolicy

logger = get_logger(__name__)


class NewsService:
    """Fetches recent headlines for a set of symbols, five at a time."""

    def __init__(
        self,
        fetcher: ResilientFetcher,
        caches: CacheRegistry,
        config: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._fetcher = fetcher
        self._settings = config or default_settings
        self._sleep = sleep
        self._cache = caches.namespace("news", self._settings.cache_ttl_seconds)
        # No headlines is a normal answer, so an empty news array is not retried
        self._policy = RetryPolicy(
            max_attempts=self._settings.yahoo_max_attempts,
            retry_delay=self._settings.yahoo_retry_delay,
            rate_limit_delay=self._settings.yahoo_rate_limit_delay,
            retry_on_empty=False,
        )

    async def get_news_for_symbols(self, symbols: Sequence[str]) -> Dict[str, List[NewsItem]]:
        """
        Get headlines for each symbol.

        Returns:
            Mapping of symbol to its headlines. A symbol whose request failed
            is absent; one with no coverage maps to an empty list.
        """
        symbols = normalize_symbols(symbols)
        if not symbols:
            return {}

        cache_key = symbols_key("news", symbols)
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        result = await fetch_in_windows(
            symbols,
            self._fetch_news_for_symbol,
            window_size=self._settings.news_window_size,
            delay=self._settings.news_window_delay,
            sleep=self._sleep,
            description="news",
        )
        self._cache.set(cache_key, result)
        return result

    async def _fetch_news_for_symbol(self, symbol: str) -> Optional[List[NewsItem]]:
        payload = await self._fetcher.get_json(
            self._settings.yahoo_search_url,
            params={
                "q": symbol,
                "newsCount": self._settings.news_per_symbol,
                "quotesCount": 0,
            },
            authenticated=True,
            policy=self._policy,
            description=f"news for {symbol}",
        )
        if payload is None:
            return None
        return normalize_news(payload)
