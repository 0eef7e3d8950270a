"""
Process-wide wiring of the market-data layer.

One MarketDataContext owns the shared HTTP client, the cache registry and the
upstream session; every service built from it shares all three.
"""
import asyncio
import time
from typing import Awaitable, Callable, Optional

import httpx

from ..config import Settings, settings as default_settings
from ..logging_config import get_logger
from .cache import CacheRegistry
from .commentary import CommentaryRunner, CommentaryService
from .news_service import NewsService
from .retry import ResilientFetcher
from .session import SessionAuthenticator
from .stock_fetcher import StockFetcher

logger = get_logger(__name__)


class MarketDataContext:
    """
    Bundles the acquisition stack.

    Tests pass a mock transport, a no-op sleep, a fake clock and a scripted
    commentary runner; production uses the defaults.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
        commentary_runner: Optional[CommentaryRunner] = None,
    ):
        self.settings = config or default_settings
        self.client = httpx.AsyncClient(
            transport=transport,
            timeout=self.settings.http_timeout,
            headers={"User-Agent": self.settings.user_agent},
        )
        self.caches = CacheRegistry(clock=clock)
        self.authenticator = SessionAuthenticator(self.client, self.settings, sleep=sleep, clock=clock)
        self.fetcher = ResilientFetcher(self.client, self.authenticator, self.settings, sleep=sleep)
        self.stocks = StockFetcher(self.fetcher, self.caches, self.settings, sleep=sleep, clock=clock)
        self.news = NewsService(self.fetcher, self.caches, self.settings, sleep=sleep)
        self.commentary = CommentaryService(self.caches, commentary_runner, self.settings)

    def clear_cache(self) -> int:
        """
        Wipe every cache namespace, commentary included.

        The upstream session is kept; it is renewed on its own schedule.
        """
        return self.caches.clear()

    async def aclose(self) -> None:
        await self.client.aclose()
        logger.info("Market data HTTP client closed")


_market_data_context: Optional[MarketDataContext] = None


def get_market_data_context() -> MarketDataContext:
    """Get the singleton market data context."""
    global _market_data_context
    if _market_data_context is None:
        _market_data_context = MarketDataContext()
    return _market_data_context


async def close_market_data_context() -> None:
    """Close and forget the singleton, if it was ever built."""
    global _market_data_context
    if _market_data_context is not None:
        await _market_data_context.aclose()
        _market_data_context = None
