"""
Shared fixtures: a scriptable fake of the Yahoo endpoints behind
httpx.MockTransport, a controllable clock, a recording sleep, and an API
client wired to a fresh MarketDataContext.
"""
from typing import Callable, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio

from market_terminal.config import Settings
from market_terminal.main import app
from market_terminal.services.context import MarketDataContext, get_market_data_context
from market_terminal.services.watchlist import WatchlistStore, get_watchlist_store

START_TIME = 1_700_000_000.0  # 2023-11-14 22:13:20 UTC


class FakeClock:
    def __init__(self, start: float = START_TIME):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Records requested pauses instead of sleeping."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class ScriptedRunner:
    """Commentary runner that yields fixed fragments, optionally failing at the end."""

    def __init__(self, fragments=("Stocks rallied ", "on strong earnings."), error: Optional[Exception] = None):
        self.fragments = list(fragments)
        self.error = error
        self.prompts: List[str] = []

    async def stream(self, prompt: str):
        self.prompts.append(prompt)
        for fragment in self.fragments:
            yield fragment
        if self.error is not None:
            raise self.error


def quote_record(symbol: str, price: float = 100.0, change_percent: float = 1.0, **extra) -> dict:
    record = {
        "symbol": symbol,
        "shortName": f"{symbol} Inc.",
        "regularMarketPrice": price,
        "regularMarketChange": price * change_percent / 100,
        "regularMarketChangePercent": change_percent,
        "regularMarketVolume": 1_000_000,
        "regularMarketPreviousClose": price,
        "marketCap": 1e9,
    }
    record.update(extra)
    return record


def chart_payload(
    timestamps: List[int],
    closes: List[Optional[float]],
    opens: Optional[List[Optional[float]]] = None,
    gmtoffset: int = -18000,
    timezone: str = "America/New_York",
) -> dict:
    opens = opens if opens is not None else list(closes)
    return {
        "chart": {
            "result": [{
                "meta": {"gmtoffset": gmtoffset, "exchangeTimezoneName": timezone},
                "timestamp": timestamps,
                "indicators": {"quote": [{
                    "open": opens,
                    "high": [c + 1 if c is not None else None for c in closes],
                    "low": [c - 1 if c is not None else None for c in closes],
                    "close": closes,
                    "volume": [1000] * len(closes),
                }]},
            }],
            "error": None,
        }
    }


def daily_chart(closes: List[Optional[float]]) -> dict:
    # 14:30 UTC market opens on consecutive days
    timestamps = [1_699_972_200 + i * 86_400 for i in range(len(closes))]
    return chart_payload(timestamps, closes)


Override = Callable[[httpx.Request], Optional[httpx.Response]]


class FakeYahoo:
    """
    Routes requests by host and path to canned Yahoo-shaped responses.

    Overrides are consulted first; the first one returning a response wins.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.overrides: List[Override] = []
        self.crumb = "crumb-1"
        self.quotes: Dict[str, dict] = {}
        self.charts: Dict[str, dict] = {}
        self.news: Dict[str, list] = {}
        self.summaries: Dict[str, dict] = {}
        self.timeseries: Dict[str, dict] = {}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for override in self.overrides:
            response = override(request)
            if response is not None:
                return response

        path = request.url.path
        if request.url.host == "fc.yahoo.com":
            return httpx.Response(404, headers=[
                ("set-cookie", "A3=d=AQAB; Path=/; Domain=.yahoo.com; Secure"),
                ("set-cookie", "B=xyz; Path=/"),
            ])
        if path == "/v1/test/getcrumb":
            return httpx.Response(200, text=self.crumb)
        if path == "/v7/finance/quote":
            symbols = request.url.params["symbols"].split(",")
            result = [self.quotes[s] for s in symbols if s in self.quotes]
            return httpx.Response(200, json={"quoteResponse": {"result": result, "error": None}})
        if path.startswith("/v8/finance/chart/"):
            symbol = path.rsplit("/", 1)[-1]
            if symbol in self.charts:
                return httpx.Response(200, json=self.charts[symbol])
            return httpx.Response(404, json={"chart": {"result": None, "error": {"code": "Not Found"}}})
        if path == "/v1/finance/search":
            return httpx.Response(200, json={"news": self.news.get(request.url.params["q"], [])})
        if path.startswith("/v10/finance/quoteSummary/"):
            symbol = path.rsplit("/", 1)[-1]
            if symbol in self.summaries:
                return httpx.Response(200, json=self.summaries[symbol])
            return httpx.Response(404, json={"quoteSummary": {"result": None, "error": {"code": "Not Found"}}})
        if "/timeseries/" in path:
            symbol = path.rsplit("/", 1)[-1]
            return httpx.Response(200, json=self.timeseries.get(symbol, {"timeseries": {"result": []}}))
        return httpx.Response(404)

    def calls_to(self, path_prefix: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path.startswith(path_prefix)]

    def seed_calls(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.host == "fc.yahoo.com"]


@pytest.fixture
def yahoo() -> FakeYahoo:
    return FakeYahoo()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def runner() -> ScriptedRunner:
    return ScriptedRunner()


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(_env_file=None, watchlist_path=str(tmp_path / "watchlists.json"))


@pytest_asyncio.fixture
async def context(yahoo, clock, sleeps, runner, test_settings):
    ctx = MarketDataContext(
        config=test_settings,
        transport=httpx.MockTransport(yahoo.handler),
        sleep=sleeps,
        clock=clock,
        commentary_runner=runner,
    )
    yield ctx
    await ctx.aclose()


@pytest_asyncio.fixture
async def client(context, test_settings):
    store = WatchlistStore(test_settings.watchlist_path)
    app.dependency_overrides[get_market_data_context] = lambda: context
    app.dependency_overrides[get_watchlist_store] = lambda: store
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
