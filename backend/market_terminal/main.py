"""
Market Terminal API

Main FastAPI application with versioned API endpoints.
"""
from fastapi import FastAPI, Depends, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from contextlib import asynccontextmanager
from typing import Dict, List, Optional
import json

from .config import Settings, get_settings, settings
from .logging_config import setup_logging, get_logger
from .schemas import (
    CacheClearResponse,
    ChartPoint,
    CommentaryRequest,
    Constituent,
    FinancialsSnapshot,
    NewsItem,
    Quote,
    QuoteSummary,
    WatchlistCreate,
    WatchlistSymbols,
    WatchlistsData,
)
from .services import (
    CommentaryGenerationError,
    MarketDataContext,
    WatchlistNotFoundError,
    WatchlistStore,
    build_market_summary,
    get_market_data_context,
    get_watchlist_store,
)
from .services.context import close_market_data_context
from .services.sector_data import (
    get_constituents,
    get_market_name,
    get_sector_for_symbol,
    get_sectors_for_symbols,
)

# Setup logging
setup_logging()
logger = get_logger(__name__)

WATCHLIST_MARKET_PREFIX = "watchlist:"

# Movers whose headlines are attached to server-built commentary
NEWS_MOVERS_PER_SIDE = 5


def parse_symbols(symbols: str) -> List[str]:
    """Split a comma-separated symbols query parameter."""
    return [s.strip().upper() for s in symbols.split(',') if s.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info(f"{settings.app_name} {settings.app_version} starting")

    yield

    # Close the shared upstream HTTP client
    await close_market_data_context()
    logger.info("Application shutdown complete")


app = FastAPI(
    title=settings.app_name,
    description="Market data, news and AI commentary for the market terminal",
    version=settings.app_version,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# API v1 Endpoints
# ============================================================================

@app.get("/api/v1/health")
async def health_check(config: Settings = Depends(get_settings)):
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": config.app_name,
        "version": config.app_version
    }


# ============ Constituents ============

@app.get("/api/v1/constituents/{market}", response_model=List[Constituent])
async def get_market_constituents(
    market: str,
    store: WatchlistStore = Depends(get_watchlist_store)
):
    """
    Members of a market tab.

    Args:
        market: 'sp500', 'nasdaq100', or 'watchlist:<list id>'.
    """
    if market.startswith(WATCHLIST_MARKET_PREFIX):
        list_id = market[len(WATCHLIST_MARKET_PREFIX):]
        try:
            watchlist = store.get_list(list_id)
        except WatchlistNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return [
            Constituent(symbol=symbol, name=symbol, sector=get_sector_for_symbol(symbol))
            for symbol in watchlist.symbols
        ]
    return get_constituents(market)


# ============ Market Data Endpoints ============

@app.get("/api/v1/quotes", response_model=List[Quote])
async def get_quotes(
    symbols: str,
    ctx: MarketDataContext = Depends(get_market_data_context)
):
    """
    Get quotes for many symbols in batched upstream calls.

    Args:
        symbols: Comma-separated list of ticker symbols (e.g., "AAPL,MSFT,GOOG")
    """
    symbol_list = parse_symbols(symbols)
    if not symbol_list:
        return []
    return await ctx.stocks.get_quotes(symbol_list)


@app.get("/api/v1/chart/{symbol}", response_model=List[ChartPoint])
async def get_chart(
    symbol: str,
    period: str = "1mo",
    interval: str = "1d",
    ctx: MarketDataContext = Depends(get_market_data_context)
):
    """OHLCV bars for one symbol. Empty when unavailable."""
    return await ctx.stocks.get_chart_data(symbol, period, interval)


@app.get("/api/v1/bars", response_model=Dict[str, List[ChartPoint]])
async def get_bars(
    symbols: str,
    period: str = "1mo",
    interval: str = "1d",
    ctx: MarketDataContext = Depends(get_market_data_context)
):
    """OHLCV bars for many symbols, keyed by symbol."""
    return await ctx.stocks.get_bars(parse_symbols(symbols), period, interval)


@app.get("/api/v1/five-day", response_model=Dict[str, float])
async def get_five_day_changes(
    symbols: str,
    ctx: MarketDataContext = Depends(get_market_data_context)
):
    """Five-trading-day percent change per symbol."""
    return await ctx.stocks.get_5day_changes(parse_symbols(symbols))


@app.get("/api/v1/sparklines", response_model=Dict[str, List[float]])
async def get_sparklines(
    symbols: str,
    ctx: MarketDataContext = Depends(get_market_data_context)
):
    """Recent closing prices per symbol."""
    return await ctx.stocks.get_sparklines(parse_symbols(symbols))


@app.get("/api/v1/news", response_model=Dict[str, List[NewsItem]])
async def get_news(
    symbols: str,
    ctx: MarketDataContext = Depends(get_market_data_context)
):
    """Recent headlines per symbol."""
    return await ctx.news.get_news_for_symbols(parse_symbols(symbols))


@app.get("/api/v1/sectors", response_model=Dict[str, str])
async def get_sectors(symbols: str):
    """GICS sector per classified symbol."""
    return get_sectors_for_symbols(parse_symbols(symbols))


@app.get("/api/v1/summary/{symbol}", response_model=Optional[QuoteSummary])
async def get_quote_summary(
    symbol: str,
    ctx: MarketDataContext = Depends(get_market_data_context)
):
    """Company profile and key statistics (null when unavailable)."""
    return await ctx.stocks.get_quote_summary(symbol)


@app.get("/api/v1/financials/{symbol}", response_model=Optional[FinancialsSnapshot])
async def get_financials(
    symbol: str,
    ctx: MarketDataContext = Depends(get_market_data_context)
):
    """Annual and quarterly income statements (null when unavailable)."""
    return await ctx.stocks.get_financials(symbol)


# ============ Cache Management ============

@app.post("/api/v1/cache/clear", response_model=CacheClearResponse)
async def clear_cache(ctx: MarketDataContext = Depends(get_market_data_context)):
    """Drop every cached result so the next requests go upstream."""
    cleared = ctx.clear_cache()
    logger.info(f"Cache cleared on request ({cleared} entries)")
    return CacheClearResponse(cleared=cleared)


# ============ AI Commentary ============

def _sse(payload: dict) -> str:
    return f"data: {json.dumps(payload)}\n\n"


@app.post("/api/v1/commentary")
async def stream_commentary(
    request: CommentaryRequest,
    ctx: MarketDataContext = Depends(get_market_data_context)
):
    """
    Stream market commentary via Server-Sent Events (SSE).

    Events are formatted as:
    data: {"type": "chunk", "text": "..."}

    Types: chunk, done, error

    The request carries either a prebuilt summary, or a market name and
    symbols from which the summary is built here.
    """
    if request.summary is None and not request.symbols:
        raise HTTPException(status_code=400, detail="Either summary or symbols is required")

    async def event_generator():
        try:
            summary = request.summary
            if summary is None:
                quotes = await ctx.stocks.get_quotes(request.symbols)
                market_name = get_market_name(request.market_name or "Watchlist")
                summary = build_market_summary(market_name, quotes)

            news = request.news
            if news is None and request.include_news:
                movers = (
                    summary.top_gainers[:NEWS_MOVERS_PER_SIDE]
                    + summary.top_losers[:NEWS_MOVERS_PER_SIDE]
                )
                news = await ctx.news.get_news_for_symbols([m.symbol for m in movers])

            async for fragment in ctx.commentary.generate_commentary(summary, news):
                yield _sse({"type": "chunk", "text": fragment})
            yield _sse({"type": "done"})
        except CommentaryGenerationError as e:
            logger.error(f"[SSE] Commentary generation failed: {e}")
            yield _sse({"type": "error", "message": str(e)})
        except Exception as e:
            logger.exception(f"[SSE] Unexpected commentary error: {e}")
            yield _sse({"type": "error", "message": str(e)})

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no"  # Disable nginx buffering
        }
    )


# ============ Watchlists ============

@app.get("/api/v1/watchlists", response_model=WatchlistsData)
async def get_watchlists(store: WatchlistStore = Depends(get_watchlist_store)):
    return store.load()


@app.get("/api/v1/watchlists/export", response_model=WatchlistsData)
async def export_watchlists(store: WatchlistStore = Depends(get_watchlist_store)):
    """Export every watchlist as JSON."""
    return store.export_data()


@app.post("/api/v1/watchlists/import", response_model=WatchlistsData)
async def import_watchlists(
    data: WatchlistsData,
    store: WatchlistStore = Depends(get_watchlist_store)
):
    """Replace all watchlists with previously exported data."""
    return store.import_data(data)


@app.post("/api/v1/watchlists", response_model=WatchlistsData)
async def create_watchlist(
    body: WatchlistCreate,
    store: WatchlistStore = Depends(get_watchlist_store)
):
    return store.create_list(body.name)


@app.put("/api/v1/watchlists/{list_id}", response_model=WatchlistsData)
async def rename_watchlist(
    list_id: str,
    body: WatchlistCreate,
    store: WatchlistStore = Depends(get_watchlist_store)
):
    try:
        return store.rename_list(list_id, body.name)
    except WatchlistNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.delete("/api/v1/watchlists/{list_id}", response_model=WatchlistsData)
async def delete_watchlist(
    list_id: str,
    store: WatchlistStore = Depends(get_watchlist_store)
):
    try:
        return store.delete_list(list_id)
    except WatchlistNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.post("/api/v1/watchlists/{list_id}/symbols", response_model=WatchlistsData)
async def add_watchlist_symbols(
    list_id: str,
    body: WatchlistSymbols,
    store: WatchlistStore = Depends(get_watchlist_store)
):
    try:
        return store.add_symbols(list_id, body.symbols)
    except WatchlistNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.delete("/api/v1/watchlists/{list_id}/symbols/{symbol}", response_model=WatchlistsData)
async def remove_watchlist_symbol(
    list_id: str,
    symbol: str,
    store: WatchlistStore = Depends(get_watchlist_store)
):
    try:
        return store.remove_symbol(list_id, symbol)
    except WatchlistNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

