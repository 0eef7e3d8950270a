"""
Bounded-concurrency fan-out for per-symbol requests.

Symbols are processed in fixed-size windows. Every request in a window runs
concurrently and the window is joined with a settle-all gather, so one
failing symbol never cancels its siblings. The next window starts only after
the previous one has fully completed (plus a small pause), which keeps the
aggregate request rate under Yahoo's limits.
"""
import asyncio
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

from ..logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def normalize_symbols(symbols: Sequence[str]) -> List[str]:
    """Upper-case, strip, dedupe and sort a symbol list."""
    return sorted({s.strip().upper() for s in symbols if s and s.strip()})


async def fetch_in_windows(
    symbols: Sequence[str],
    fetch_one: Callable[[str], Awaitable[Optional[T]]],
    window_size: int,
    delay: float,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    description: str = "bulk fetch",
) -> Dict[str, T]:
    """
    Run fetch_one for every symbol, window_size at a time.

    Args:
        symbols: Symbols to fetch.
        fetch_one: Coroutine returning the symbol's result, or None for "no data".
        window_size: Requests in flight at once.
        delay: Pause between windows, in seconds.
        sleep: Sleep coroutine (injectable for tests).
        description: Description for logging purposes.

    Returns:
        Mapping of symbol to result. Symbols that raised or returned None
        are absent.
    """
    window_size = max(1, window_size)
    results: Dict[str, T] = {}
    failed = 0

    for start in range(0, len(symbols), window_size):
        window = symbols[start:start + window_size]
        settled = await asyncio.gather(
            *(fetch_one(symbol) for symbol in window),
            return_exceptions=True,
        )
        for symbol, outcome in zip(window, settled):
            if isinstance(outcome, BaseException):
                failed += 1
                logger.warning(f"{description}: {symbol} failed: {outcome!r}")
            elif outcome is None:
                failed += 1
            else:
                results[symbol] = outcome

        if start + window_size < len(symbols):
            await sleep(delay)

    logger.info(f"{description}: {len(results)}/{len(symbols)} symbols returned data, {failed} without")
    return results
