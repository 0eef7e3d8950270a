"""
Stock data fetching service.

Talks to the Yahoo Finance HTTP API directly:
- v7 quote: batch quotes, 50 symbols per call, crumb required
- v8 chart: OHLCV bars (single symbol per call, no crumb)
- v10 quoteSummary: company profile and key statistics, crumb required
- fundamentals-timeseries: annual/quarterly income statement series

Every public method is best effort: upstream failures are logged and come
back as empty results (or None for single-symbol fundamentals), never as
exceptions. Results are memoized in TTL caches so UI refreshes do not
re-hit the network.
"""
import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence
from urllib.parse import quote as url_quote

from ..config import Settings, settings as default_settings
from ..logging_config import get_logger
from ..schemas import ChartPoint, FinancialsSnapshot, Quote, QuoteSummary
from .bulk import fetch_in_windows, normalize_symbols
from .cache import CacheRegistry, symbols_key
from .calculations import StockCalculations
from .normalize import (
    TIMESERIES_TYPES,
    extract_closes,
    normalize_chart,
    normalize_financials,
    normalize_quote,
    normalize_quote_summary,
    quote_results,
)
from .retry import ResilientFetcher

logger = get_logger(__name__)

# Upstream limit on symbols per v7 quote call
QUOTE_BATCH_SIZE = 50

# Calendar days of daily bars fetched for the 5-day change
FIVE_DAY_RANGE = "10d"

QUOTE_SUMMARY_MODULES = "price,summaryDetail,defaultKeyStatistics,financialData,assetProfile"

# UI period names that differ from Yahoo's range names
PERIOD_TO_RANGE = {
    "1w": "5d",
}


class StockFetcher:
    """
    Quote, chart and fundamentals fetching on top of ResilientFetcher.

    Quote batches run strictly one after another; per-symbol chart requests
    fan out in bounded windows (see bulk.fetch_in_windows).
    """

    def __init__(
        self,
        fetcher: ResilientFetcher,
        caches: CacheRegistry,
        config: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the stock fetcher.

        Args:
            fetcher: Resilient request wrapper (owns the session).
            caches: Cache registry; one namespace per data kind is used.
            config: Settings instance.
            sleep: Sleep coroutine used for inter-batch and inter-window pauses.
            clock: Epoch clock used for fundamentals period bounds.
        """
        self._fetcher = fetcher
        self._settings = config or default_settings
        self._sleep = sleep
        self._clock = clock

        ttl = self._settings.cache_ttl_seconds
        self._quote_cache = caches.namespace("quotes", ttl)
        self._chart_cache = caches.namespace("charts", ttl)
        self._bars_cache = caches.namespace("bars", ttl)
        self._five_day_cache = caches.namespace("five_day", ttl)
        self._sparkline_cache = caches.namespace("sparklines", ttl)
        self._summary_cache = caches.namespace("summaries", ttl)
        self._financials_cache = caches.namespace("financials", ttl)

    # ============ Batch Quotes ============

    async def get_quotes(self, symbols: Sequence[str]) -> List[Quote]:
        """
        Get quotes for any number of symbols.

        Symbols are deduplicated and sorted, so the same set in any order hits
        the same cache entry. Unknown symbols are silently absent.

        Args:
            symbols: Ticker symbols.

        Returns:
            Normalized quotes, at most one per distinct symbol.
        """
        symbols = normalize_symbols(symbols)
        if not symbols:
            return []

        cache_key = symbols_key("quotes", symbols)
        cached = self._quote_cache.get(cache_key)
        if cached is not None:
            return cached

        results: List[Quote] = []
        failed_batches = 0
        batches = [
            symbols[i:i + QUOTE_BATCH_SIZE]
            for i in range(0, len(symbols), QUOTE_BATCH_SIZE)
        ]

        for index, batch in enumerate(batches):
            if index > 0:
                await self._sleep(self._settings.quote_batch_delay)
            quotes = await self._fetch_quote_batch(batch)
            if quotes is None:
                failed_batches += 1
                continue
            results.extend(quotes)

        logger.info(
            f"Fetched {len(results)} quotes for {len(symbols)} symbols "
            f"in {len(batches)} batches ({failed_batches} failed)"
        )

        # A total failure is not cached so the next refresh tries again
        if failed_batches < len(batches):
            self._quote_cache.set(cache_key, results)
        return results

    async def _fetch_quote_batch(self, batch: List[str]) -> Optional[List[Quote]]:
        """Fetch one batch. Returns None if the request failed."""
        payload = await self._fetcher.get_json(
            self._settings.yahoo_quote_url,
            params={"symbols": ",".join(batch)},
            authenticated=True,
            is_empty=lambda data: not quote_results(data),
            description=f"batch quotes for {len(batch)} tickers",
        )
        if payload is None:
            return None

        requested = set(batch)
        quotes = []
        for raw in quote_results(payload):
            try:
                quote = normalize_quote(raw)
            except (ValueError, TypeError, OverflowError, OSError) as e:
                logger.warning(f"Dropping malformed quote record in batch: {e!r}")
                continue
            if quote is None:
                continue
            if quote.symbol.upper() not in requested:
                logger.debug(f"Ignoring unrequested symbol {quote.symbol} in quote response")
                continue
            requested.discard(quote.symbol.upper())
            quotes.append(quote)
        return quotes

    # ============ Charts ============

    async def _fetch_chart_payload(self, symbol: str, range_: str, interval: str) -> Optional[Any]:
        url = self._settings.yahoo_chart_url.format(symbol=url_quote(symbol, safe=""))
        return await self._fetcher.get_json(
            url,
            params={"range": range_, "interval": interval, "includePrePost": "false"},
            description=f"chart {symbol} {range_}/{interval}",
        )

    async def get_chart_data(
        self,
        symbol: str,
        period: str = "1mo",
        interval: str = "1d",
    ) -> List[ChartPoint]:
        """
        Get OHLCV bars for one symbol.

        Args:
            symbol: Ticker symbol.
            period: Range ('1d', '1w', '1mo', '3mo', '6mo', '1y', '5y').
            interval: Bar size ('5m', '1h', '1d', '1wk', ...).

        Returns:
            Bars oldest first; empty on failure. Only a failed request is left
            uncached.
        """
        symbol = symbol.strip().upper()
        cache_key = f"chart:{symbol}:{period}:{interval}"
        cached = self._chart_cache.get(cache_key)
        if cached is not None:
            return cached

        range_ = PERIOD_TO_RANGE.get(period, period)
        payload = await self._fetch_chart_payload(symbol, range_, interval)
        if payload is None:
            return []

        # An answered request with no usable bars is cached too, so unknown
        # symbols do not go back upstream on every refresh
        points = normalize_chart(payload, interval)
        self._chart_cache.set(cache_key, points)
        return points

    async def get_bars(
        self,
        symbols: Sequence[str],
        period: str = "1mo",
        interval: str = "1d",
    ) -> Dict[str, List[ChartPoint]]:
        """
        Get bars for many symbols.

        Returns:
            Mapping of symbol to bars. Symbols that failed or returned no bars
            are absent.
        """
        symbols = normalize_symbols(symbols)
        if not symbols:
            return {}

        cache_key = symbols_key(f"bars:{period}:{interval}", symbols)
        cached = self._bars_cache.get(cache_key)
        if cached is not None:
            return cached

        async def fetch_one(symbol: str) -> Optional[List[ChartPoint]]:
            points = await self.get_chart_data(symbol, period, interval)
            return points or None

        result = await fetch_in_windows(
            symbols,
            fetch_one,
            window_size=self._settings.bars_window_size,
            delay=self._settings.bulk_window_delay,
            sleep=self._sleep,
            description=f"bars {period}/{interval}",
        )
        self._bars_cache.set(cache_key, result)
        return result

    async def get_5day_changes(self, symbols: Sequence[str]) -> Dict[str, float]:
        """
        Percent change over the last five trading days, per symbol.

        Symbols with fewer than two valid daily closes are absent.
        """
        symbols = normalize_symbols(symbols)
        if not symbols:
            return {}

        cache_key = symbols_key("5d", symbols)
        cached = self._five_day_cache.get(cache_key)
        if cached is not None:
            return cached

        async def fetch_one(symbol: str) -> Optional[float]:
            payload = await self._fetch_chart_payload(symbol, FIVE_DAY_RANGE, "1d")
            if payload is None:
                return None
            return StockCalculations.calculate_five_day_change(extract_closes(payload))

        result = await fetch_in_windows(
            symbols,
            fetch_one,
            window_size=self._settings.five_day_window_size,
            delay=self._settings.bulk_window_delay,
            sleep=self._sleep,
            description="5-day changes",
        )
        self._five_day_cache.set(cache_key, result)
        return result

    async def get_sparklines(self, symbols: Sequence[str]) -> Dict[str, List[float]]:
        """
        Closing-price series for table sparklines, per symbol.

        Symbols with fewer than two valid closes are absent.
        """
        symbols = normalize_symbols(symbols)
        if not symbols:
            return {}

        cache_key = symbols_key("spark", symbols)
        cached = self._sparkline_cache.get(cache_key)
        if cached is not None:
            return cached

        async def fetch_one(symbol: str) -> Optional[List[float]]:
            payload = await self._fetch_chart_payload(
                symbol,
                self._settings.sparkline_range,
                self._settings.sparkline_interval,
            )
            if payload is None:
                return None
            closes = extract_closes(payload)
            return closes if len(closes) >= 2 else None

        result = await fetch_in_windows(
            symbols,
            fetch_one,
            window_size=self._settings.sparkline_window_size,
            delay=self._settings.bulk_window_delay,
            sleep=self._sleep,
            description="sparklines",
        )
        self._sparkline_cache.set(cache_key, result)
        return result

    # ============ Fundamentals ============

    async def get_quote_summary(self, symbol: str) -> Optional[QuoteSummary]:
        """Company profile and key statistics, or None if unavailable."""
        symbol = symbol.strip().upper()
        cache_key = f"summary:{symbol}"
        cached = self._summary_cache.get(cache_key)
        if cached is not None:
            return cached

        url = self._settings.yahoo_summary_url.format(symbol=url_quote(symbol, safe=""))
        payload = await self._fetcher.get_json(
            url,
            params={"modules": QUOTE_SUMMARY_MODULES},
            authenticated=True,
            description=f"quote summary for {symbol}",
        )
        if payload is None:
            return None

        summary = normalize_quote_summary(payload)
        if summary is None:
            logger.warning(f"No quote summary in response for {symbol}")
            return None
        self._summary_cache.set(cache_key, summary)
        return summary

    async def get_financials(self, symbol: str) -> Optional[FinancialsSnapshot]:
        """Annual and quarterly income statements, or None if unavailable."""
        symbol = symbol.strip().upper()
        cache_key = f"financials:{symbol}"
        cached = self._financials_cache.get(cache_key)
        if cached is not None:
            return cached

        period2 = int(self._clock())
        period1 = period2 - self._settings.financials_years * 366 * 24 * 60 * 60
        url = self._settings.yahoo_timeseries_url.format(symbol=url_quote(symbol, safe=""))
        payload = await self._fetcher.get_json(
            url,
            params={
                "type": ",".join(TIMESERIES_TYPES),
                "period1": period1,
                "period2": period2,
            },
            description=f"financials for {symbol}",
        )
        if payload is None:
            return None

        financials = normalize_financials(payload)
        if financials is None:
            logger.warning(f"No financial statements in response for {symbol}")
            return None
        self._financials_cache.set(cache_key, financials)
        return financials
