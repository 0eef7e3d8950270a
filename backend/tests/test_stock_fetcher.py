"""
Tests for batch quotes, chart bars and bulk per-symbol fetchers.
"""
import httpx
import pytest

from conftest import chart_payload, daily_chart, quote_record

QUOTE_PATH = "/v7/finance/quote"
CHART_PATH = "/v8/finance/chart/"


@pytest.mark.asyncio
class TestBatchQuotes:
    """Tests for StockFetcher.get_quotes."""

    async def test_quotes_are_normalized(self, context, yahoo):
        yahoo.quotes["AAPL"] = quote_record("AAPL", price=190.5, change_percent=1.25, regularMarketOpen=None)

        quotes = await context.stocks.get_quotes(["AAPL"])

        assert len(quotes) == 1
        quote = quotes[0]
        assert quote.symbol == "AAPL"
        assert quote.price == 190.5
        assert quote.change_percent == 1.25
        assert quote.open == 0
        assert quote.sector == "Technology"

    async def test_earnings_date_in_eastern_time(self, context, yahoo):
        # 2023-11-15 02:00 UTC is still the 14th in New York
        yahoo.quotes["AAPL"] = quote_record("AAPL", earningsTimestamp=1_700_013_600)

        quotes = await context.stocks.get_quotes(["AAPL"])

        assert quotes[0].earnings_date == "2023-11-14"

    async def test_out_of_range_earnings_date_keeps_batch(self, context, yahoo):
        yahoo.quotes["AAPL"] = quote_record("AAPL", earningsTimestamp=1e18)
        yahoo.quotes["MSFT"] = quote_record("MSFT")

        quotes = await context.stocks.get_quotes(["AAPL", "MSFT"])

        by_symbol = {q.symbol: q for q in quotes}
        assert set(by_symbol) == {"AAPL", "MSFT"}
        assert by_symbol["AAPL"].earnings_date is None

    async def test_120_symbols_run_in_three_sequential_batches(self, context, yahoo, sleeps):
        symbols = [f"S{i:03d}" for i in range(120)]
        for symbol in symbols:
            yahoo.quotes[symbol] = quote_record(symbol)

        quotes = await context.stocks.get_quotes(symbols)

        batches = [r.url.params["symbols"].split(",") for r in yahoo.calls_to(QUOTE_PATH)]
        assert [len(b) for b in batches] == [50, 50, 20]
        assert sleeps.calls == [0.2, 0.2]
        assert len(quotes) == 120

    async def test_failing_middle_batch_does_not_stop_the_last(self, context, yahoo, sleeps):
        symbols = [f"S{i:03d}" for i in range(120)]
        for symbol in symbols:
            yahoo.quotes[symbol] = quote_record(symbol)

        def fail_middle(request):
            if request.url.path == QUOTE_PATH and "S050" in request.url.params["symbols"]:
                return httpx.Response(500)
            return None
        yahoo.overrides.append(fail_middle)

        quotes = await context.stocks.get_quotes(symbols)

        assert len(quotes) == 70
        assert {q.symbol for q in quotes} == set(symbols[:50] + symbols[100:])
        # 1 + 3 attempts + 1
        assert len(yahoo.calls_to(QUOTE_PATH)) == 5
        assert sleeps.calls.count(0.2) == 2

    async def test_cache_key_is_order_independent(self, context, yahoo):
        yahoo.quotes["AAPL"] = quote_record("AAPL")
        yahoo.quotes["MSFT"] = quote_record("MSFT")

        await context.stocks.get_quotes(["MSFT", "AAPL"])
        second = await context.stocks.get_quotes(["aapl", "MSFT", "AAPL"])

        assert len(yahoo.calls_to(QUOTE_PATH)) == 1
        assert {q.symbol for q in second} == {"AAPL", "MSFT"}

    async def test_cache_expires_after_ttl(self, context, yahoo, clock):
        yahoo.quotes["AAPL"] = quote_record("AAPL")

        await context.stocks.get_quotes(["AAPL"])
        clock.advance(300)
        await context.stocks.get_quotes(["AAPL"])

        assert len(yahoo.calls_to(QUOTE_PATH)) == 2

    async def test_total_failure_is_not_cached(self, context, yahoo):
        yahoo.overrides.append(
            lambda request: httpx.Response(500) if request.url.path == QUOTE_PATH else None
        )

        assert await context.stocks.get_quotes(["AAPL"]) == []
        await context.stocks.get_quotes(["AAPL"])

        assert len(yahoo.calls_to(QUOTE_PATH)) == 6

    async def test_unknown_symbols_are_absent(self, context, yahoo):
        yahoo.quotes["AAPL"] = quote_record("AAPL")

        quotes = await context.stocks.get_quotes(["AAPL", "ZZZZ"])

        assert [q.symbol for q in quotes] == ["AAPL"]

    async def test_unrequested_symbols_are_ignored(self, context, yahoo):
        def extra_symbol(request):
            if request.url.path == QUOTE_PATH:
                result = [quote_record("AAPL"), quote_record("EXTRA")]
                return httpx.Response(200, json={"quoteResponse": {"result": result}})
            return None
        yahoo.overrides.append(extra_symbol)

        quotes = await context.stocks.get_quotes(["AAPL"])

        assert [q.symbol for q in quotes] == ["AAPL"]

    async def test_empty_input(self, context, yahoo):
        assert await context.stocks.get_quotes([]) == []
        assert yahoo.requests == []


@pytest.mark.asyncio
class TestChartData:
    """Tests for StockFetcher.get_chart_data."""

    async def test_daily_bars_keyed_by_exchange_date(self, context, yahoo):
        yahoo.charts["AAPL"] = daily_chart([10.0, 11.0, 12.0])

        points = await context.stocks.get_chart_data("AAPL", "1mo", "1d")

        assert [p.time for p in points] == ["2023-11-14", "2023-11-15", "2023-11-16"]
        assert [p.close for p in points] == [10.0, 11.0, 12.0]

    async def test_null_open_drops_exactly_that_bar(self, context, yahoo):
        closes = [10.0, 11.0, 12.0, 13.0, 14.0]
        opens = [10.0, 11.0, None, 13.0, 14.0]
        payload = daily_chart(closes)
        payload["chart"]["result"][0]["indicators"]["quote"][0]["open"] = opens
        yahoo.charts["AAPL"] = payload

        points = await context.stocks.get_chart_data("AAPL")

        assert len(points) == 4
        assert [p.close for p in points] == [10.0, 11.0, 13.0, 14.0]

    async def test_intraday_time_is_shifted_unix_seconds(self, context, yahoo):
        yahoo.charts["AAPL"] = chart_payload([1_700_000_000, 1_700_000_300], [1.0, 2.0], gmtoffset=-18000)

        points = await context.stocks.get_chart_data("AAPL", "1d", "5m")

        assert [p.time for p in points] == [1_700_000_000 - 18000, 1_700_000_300 - 18000]

    async def test_week_period_maps_to_five_day_range(self, context, yahoo):
        yahoo.charts["AAPL"] = daily_chart([1.0, 2.0])

        await context.stocks.get_chart_data("AAPL", "1w", "1h")

        assert yahoo.calls_to(CHART_PATH)[0].url.params["range"] == "5d"

    async def test_unknown_symbol_returns_empty(self, context):
        assert await context.stocks.get_chart_data("NOPE") == []

    async def test_result_is_cached(self, context, yahoo):
        yahoo.charts["AAPL"] = daily_chart([1.0, 2.0])

        await context.stocks.get_chart_data("AAPL")
        await context.stocks.get_chart_data("aapl")

        assert len(yahoo.calls_to(CHART_PATH)) == 1

    async def test_unconvertible_bar_timestamp_is_skipped(self, context, yahoo):
        yahoo.charts["AAPL"] = chart_payload([1_699_972_200, 1e18], [1.0, 2.0])

        points = await context.stocks.get_chart_data("AAPL", "1mo", "1d")

        assert [p.close for p in points] == [1.0]
        assert points[0].time == "2023-11-14"

    async def test_answered_request_without_bars_is_cached(self, context, yahoo):
        yahoo.charts["AAPL"] = chart_payload([], [])

        assert await context.stocks.get_chart_data("AAPL") == []
        assert await context.stocks.get_chart_data("AAPL") == []

        assert len(yahoo.calls_to(CHART_PATH)) == 1

    async def test_failed_request_is_not_cached(self, context, yahoo):
        await context.stocks.get_chart_data("NOPE")
        await context.stocks.get_chart_data("NOPE")

        assert len(yahoo.calls_to(CHART_PATH)) == 2


@pytest.mark.asyncio
class TestBulkFetchers:
    """Tests for bars, 5-day changes and sparklines across many symbols."""

    async def test_five_day_change(self, context, yahoo):
        yahoo.charts["AAPL"] = daily_chart([100.0, 105.0, 110.0])

        changes = await context.stocks.get_5day_changes(["AAPL"])

        assert changes == {"AAPL": pytest.approx(10.0)}
        assert yahoo.calls_to(CHART_PATH)[0].url.params["range"] == "10d"

    async def test_partial_failure_omits_failing_symbol(self, context, yahoo):
        yahoo.charts["AAPL"] = daily_chart([100.0, 105.0, 110.0])
        yahoo.charts["MSFT"] = daily_chart([200.0, 190.0])

        changes = await context.stocks.get_5day_changes(["AAPL", "BAD1", "MSFT"])

        assert set(changes) == {"AAPL", "MSFT"}
        assert changes["MSFT"] == pytest.approx(-5.0)

    async def test_windows_pause_between_them(self, context, sleeps):
        symbols = [f"X{i:02d}" for i in range(12)]

        await context.stocks.get_5day_changes(symbols)

        # Window of 10 then 2; chart 404s are not retried
        assert sleeps.calls == [0.2]

    async def test_sparklines_need_two_closes(self, context, yahoo):
        yahoo.charts["AAPL"] = daily_chart([1.0, 2.0, None, 3.0])
        yahoo.charts["ONE"] = daily_chart([5.0])

        sparklines = await context.stocks.get_sparklines(["AAPL", "ONE"])

        assert sparklines == {"AAPL": [1.0, 2.0, 3.0]}

    async def test_bars_for_many_symbols(self, context, yahoo):
        yahoo.charts["AAPL"] = daily_chart([1.0, 2.0])
        yahoo.charts["MSFT"] = daily_chart([3.0, 4.0])

        bars = await context.stocks.get_bars(["MSFT", "AAPL", "BAD1"])

        assert set(bars) == {"AAPL", "MSFT"}
        assert [p.close for p in bars["MSFT"]] == [3.0, 4.0]

    async def test_bulk_results_are_cached(self, context, yahoo):
        yahoo.charts["AAPL"] = daily_chart([1.0, 2.0])

        await context.stocks.get_sparklines(["AAPL"])
        await context.stocks.get_sparklines(["AAPL"])

        assert len(yahoo.calls_to(CHART_PATH)) == 1


@pytest.mark.asyncio
class TestFundamentals:
    """Tests for quote summary and financial statements."""

    async def test_quote_summary(self, context, yahoo):
        yahoo.summaries["AAPL"] = {"quoteSummary": {"result": [{
            "price": {"shortName": "Apple Inc.", "marketCap": {"raw": 3.0e12, "fmt": "3T"}},
            "summaryDetail": {"trailingPE": {"raw": 30.5, "fmt": "30.50"}, "beta": {"raw": 1.2}},
            "assetProfile": {"sector": "Technology", "industry": "Consumer Electronics",
                             "fullTimeEmployees": 161000},
        }], "error": None}}

        summary = await context.stocks.get_quote_summary("AAPL")

        assert summary.short_name == "Apple Inc."
        assert summary.market_cap == 3.0e12
        assert summary.trailing_pe == 30.5
        assert summary.beta == 1.2
        assert summary.full_time_employees == 161000
        assert summary.forward_pe is None
        assert yahoo.calls_to("/v10/finance/quoteSummary/")[0].url.params["crumb"] == "crumb-1"

    async def test_quote_summary_unavailable(self, context):
        assert await context.stocks.get_quote_summary("NOPE") is None

    async def test_financials_window(self, context, yahoo, clock):
        yahoo.timeseries["AAPL"] = {"timeseries": {"result": [{
            "meta": {"symbol": ["AAPL"], "type": ["annualTotalRevenue"]},
            "annualTotalRevenue": [{"asOfDate": "2023-09-30", "reportedValue": {"raw": 383e9}}],
        }]}}

        financials = await context.stocks.get_financials("AAPL")

        assert financials.annual[0].total_revenue == 383e9
        params = yahoo.calls_to("/ws/fundamentals-timeseries/")[0].url.params
        assert int(params["period2"]) == int(clock())
        assert int(params["period2"]) - int(params["period1"]) == 5 * 366 * 86400

    async def test_financials_unavailable(self, context):
        assert await context.stocks.get_financials("NOPE") is None

    async def test_mistyped_financials_series(self, context, yahoo):
        yahoo.timeseries["AAPL"] = {"timeseries": {"result": [{
            "meta": {"symbol": ["AAPL"], "type": ["annualTotalRevenue"]},
            "annualTotalRevenue": 5,
        }]}}

        assert await context.stocks.get_financials("AAPL") is None
