"""
AI market commentary.

Builds a market-brief prompt from a MarketSummary (plus optional headlines),
streams the generated text from an external command-line LLM process, and
caches the complete output for an hour per (market, with/without news).

A cache hit is replayed as a single fragment, so consumers always see a
stream regardless of cache state. A failed generation raises
CommentaryGenerationError and caches nothing.
"""
import asyncio
import codecs
import shlex
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import AsyncIterator, Dict, List, Optional, Protocol, Sequence

import pytz

from ..config import Settings, settings as default_settings
from ..logging_config import get_logger
from ..schemas import (
    EarningsItem,
    MarketSummary,
    MoverItem,
    NewsItem,
    Quote,
    SectorPerformance,
    VolumeLeader,
)
from .cache import CacheRegistry

logger = get_logger(__name__)

MARKET_TZ = pytz.timezone('US/Eastern')

TOP_N = 10
EARNINGS_WINDOW_DAYS = 7
READ_CHUNK_BYTES = 4096

SYSTEM_INSTRUCTION = """You are a senior market analyst at a hedge fund.
Write a market briefing for terminal users.

Rules:
- Professional, concise and objective tone
- Use short sections and bullet points
- Roughly 300-500 words
- No investment recommendations (analysis and facts only)
- Mention sector rotation and the day's themes
- Plain text only, no markdown
- When news headlines are provided, cite them explicitly ("according to reports...")
  to explain the moves of the stocks they cover
- For stocks with news, base the analysis on the reported facts rather than speculation"""


class CommentaryGenerationError(Exception):
    """The external generator failed; nothing was cached."""
    pass


class CommentaryRunner(Protocol):
    """Anything that turns a prompt into a stream of text fragments."""

    def stream(self, prompt: str) -> AsyncIterator[str]:
        ...


class SubprocessCommentaryRunner:
    """
    Runs a command-line LLM (default `claude -p`), feeding the prompt on stdin
    and yielding stdout as it arrives.
    """

    def __init__(self, command: str):
        self._argv = shlex.split(command)

    async def stream(self, prompt: str) -> AsyncIterator[str]:
        try:
            proc = await asyncio.create_subprocess_exec(
                *self._argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise CommentaryGenerationError(f"Could not start {self._argv[0]}: {e}") from e

        stderr_task = asyncio.create_task(proc.stderr.read())
        try:
            proc.stdin.write(prompt.encode("utf-8"))
            await proc.stdin.drain()
            proc.stdin.close()

            # Multi-byte characters may be split across reads
            decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
            while True:
                chunk = await proc.stdout.read(READ_CHUNK_BYTES)
                if not chunk:
                    break
                text = decoder.decode(chunk)
                if text:
                    yield text
            tail = decoder.decode(b"", final=True)
            if tail:
                yield tail

            return_code = await proc.wait()
            stderr_text = (await stderr_task).decode("utf-8", errors="replace").strip()
            if return_code != 0:
                raise CommentaryGenerationError(
                    stderr_text or f"{self._argv[0]} exited with code {return_code}"
                )
        finally:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            if not stderr_task.done():
                stderr_task.cancel()


# ============ Cache key ============

def has_news(news: Optional[Dict[str, List[NewsItem]]]) -> bool:
    """True when at least one symbol has at least one headline."""
    return bool(news) and any(items for items in news.values())


def commentary_cache_key(market_name: str, with_news: bool) -> str:
    return f"{market_name}:with-news" if with_news else market_name


# ============ Summary & prompt ============

def build_market_summary(
    market_name: str,
    quotes: Sequence[Quote],
    today: Optional[date] = None,
) -> MarketSummary:
    """
    Aggregate quotes into the summary the commentary prompt is built from.

    Args:
        market_name: Display name ('S&P 500', 'NASDAQ 100', 'Watchlist').
        quotes: Quotes of the market's members.
        today: Reference date for upcoming earnings (defaults to today, US/Eastern).
    """
    today = today or datetime.now(MARKET_TZ).date()
    quotes = list(quotes)
    count = len(quotes)

    sector_totals: Dict[str, List[float]] = defaultdict(list)
    for q in quotes:
        sector_totals[q.sector or 'Unknown'].append(q.change_percent)
    sectors = sorted(
        (
            SectorPerformance(name=name, avg_change=sum(changes) / len(changes), count=len(changes))
            for name, changes in sector_totals.items()
        ),
        key=lambda s: s.avg_change,
        reverse=True,
    )

    by_change = sorted(quotes, key=lambda q: q.change_percent, reverse=True)
    by_volume = sorted(quotes, key=lambda q: q.volume, reverse=True)

    def mover(q: Quote) -> MoverItem:
        return MoverItem(symbol=q.symbol, name=q.short_name, price=q.price, change_percent=q.change_percent)

    window_end = today + timedelta(days=EARNINGS_WINDOW_DAYS)
    upcoming = []
    for q in quotes:
        if not q.earnings_date:
            continue
        try:
            earnings_day = date.fromisoformat(q.earnings_date)
        except ValueError:
            continue
        if today <= earnings_day <= window_end:
            upcoming.append(EarningsItem(symbol=q.symbol, name=q.short_name, date=q.earnings_date))
    upcoming.sort(key=lambda e: e.date)

    return MarketSummary(
        market_name=market_name,
        total_count=count,
        advancers=sum(1 for q in quotes if q.change_percent > 0),
        decliners=sum(1 for q in quotes if q.change_percent < 0),
        avg_change_percent=sum(q.change_percent for q in quotes) / count if count else 0,
        sectors=sectors,
        top_gainers=[mover(q) for q in by_change[:TOP_N]],
        top_losers=[mover(q) for q in reversed(by_change[-TOP_N:])],
        top_volume=[
            VolumeLeader(symbol=q.symbol, name=q.short_name, volume=q.volume, change_percent=q.change_percent)
            for q in by_volume[:TOP_N]
        ],
        upcoming_earnings=upcoming,
    )


def _signed(value: float) -> str:
    return f"+{value:.2f}" if value >= 0 else f"{value:.2f}"


def build_prompt(
    summary: MarketSummary,
    news: Optional[Dict[str, List[NewsItem]]] = None,
    today: Optional[date] = None,
) -> str:
    """Render the analyst instructions, market data and headlines as one prompt."""
    today = today or datetime.now(MARKET_TZ).date()
    lines = [SYSTEM_INSTRUCTION, "", "---", ""]
    lines.append("Write today's market brief based on the following data.")
    lines.append("")
    lines.append(f"[{summary.market_name}] {today.strftime('%Y/%m/%d')}")
    lines.append(
        f"Stocks: {summary.total_count} | Advancers: {summary.advancers} | "
        f"Decliners: {summary.decliners} | Avg change: {summary.avg_change_percent:.2f}%"
    )

    lines.append("")
    lines.append("[Sector performance]")
    for s in summary.sectors:
        lines.append(f"{s.name}: {_signed(s.avg_change)}% ({s.count} stocks)")

    lines.append("")
    lines.append("[Top gainers]")
    for i, g in enumerate(summary.top_gainers, 1):
        lines.append(f"{i}. {g.symbol} {_signed(g.change_percent)}% (${g.price:.2f}) - {g.name}")

    lines.append("")
    lines.append("[Top losers]")
    for i, l in enumerate(summary.top_losers, 1):
        lines.append(f"{i}. {l.symbol} {_signed(l.change_percent)}% (${l.price:.2f}) - {l.name}")

    lines.append("")
    lines.append("[Most active]")
    for i, v in enumerate(summary.top_volume, 1):
        lines.append(
            f"{i}. {v.symbol} {_signed(v.change_percent)}% "
            f"(volume: {v.volume / 1e6:.1f}M) - {v.name}"
        )

    if summary.upcoming_earnings:
        lines.append("")
        lines.append("[Earnings this week]")
        lines.append(", ".join(f"{e.symbol} ({e.date})" for e in summary.upcoming_earnings))

    if has_news(news):
        lines.append("")
        lines.append("[Headlines for key stocks]")
        for symbol, items in news.items():
            if not items:
                continue
            lines.append(f"{symbol}:")
            for item in items:
                published = f", {item.published_at}" if item.published_at else ""
                lines.append(f'- "{item.title}" ({item.publisher}{published})')

    return "\n".join(lines) + "\n"


# ============ Service ============

class CommentaryService:
    """Serves cached commentary or streams and caches a fresh generation."""

    def __init__(
        self,
        caches: CacheRegistry,
        runner: Optional[CommentaryRunner] = None,
        config: Optional[Settings] = None,
    ):
        self._settings = config or default_settings
        self._cache = caches.namespace("commentary", self._settings.commentary_ttl_seconds)
        self._runner = runner or SubprocessCommentaryRunner(self._settings.commentary_command)

    async def generate_commentary(
        self,
        summary: MarketSummary,
        news: Optional[Dict[str, List[NewsItem]]] = None,
    ) -> AsyncIterator[str]:
        """
        Stream commentary for a market summary.

        Yields:
            Text fragments. A cache hit yields the whole text once.

        Raises:
            CommentaryGenerationError: if the generator fails.
        """
        cache_key = commentary_cache_key(summary.market_name, has_news(news))
        cached = self._cache.get(cache_key)
        if cached is not None:
            logger.info(f"Serving cached commentary for {cache_key}")
            yield cached
            return

        logger.info(f"Generating commentary for {cache_key}")
        prompt = build_prompt(summary, news)
        fragments: List[str] = []
        async for fragment in self._runner.stream(prompt):
            fragments.append(fragment)
            yield fragment

        full_text = "".join(fragments)
        if full_text:
            self._cache.set(cache_key, full_text)
