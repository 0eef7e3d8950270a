"""
Tests for payload normalization.
"""
from market_terminal.models import lenient_number
from market_terminal.services.normalize import (
    extract_closes,
    is_intraday,
    normalize_chart,
    normalize_financials,
    normalize_news,
    normalize_quote,
    quote_results,
)

from conftest import daily_chart


class TestLenientNumber:

    def test_unwraps_raw(self):
        assert lenient_number({"raw": 1.5, "fmt": "1.50"}) == 1.5

    def test_unusable_values(self):
        assert lenient_number(True) is None
        assert lenient_number("n/a") is None
        assert lenient_number(float("nan")) is None
        assert lenient_number(None) is None

    def test_numeric_text(self):
        assert lenient_number("42") == 42.0


class TestQuotes:

    def test_malformed_payload_has_no_results(self):
        assert quote_results({"unexpected": True}) == []
        assert quote_results(None) == []

    def test_missing_numbers_default_to_zero(self):
        quote = normalize_quote({"symbol": "ZZZZ", "regularMarketPrice": "bad"})

        assert quote.price == 0
        assert quote.volume == 0
        assert quote.short_name == "ZZZZ"
        assert quote.sector == ""
        assert quote.earnings_date is None

    def test_record_without_symbol_is_dropped(self):
        assert normalize_quote({"regularMarketPrice": 1.0}) is None


class TestCharts:

    def test_interval_classification(self):
        assert is_intraday("5m")
        assert is_intraday("1h")
        assert not is_intraday("1d")
        assert not is_intraday("1mo")
        assert not is_intraday("1wk")

    def test_null_close_is_dropped(self):
        points = normalize_chart(daily_chart([1.0, None, 3.0]), "1d")

        assert [p.close for p in points] == [1.0, 3.0]

    def test_out_of_range_daily_timestamp_is_dropped(self):
        payload = daily_chart([1.0, 2.0])
        payload["chart"]["result"][0]["timestamp"][1] = 1e18

        points = normalize_chart(payload, "1d")

        assert [p.time for p in points] == ["2023-11-14"]

    def test_missing_result(self):
        assert normalize_chart({"chart": {"result": None, "error": {"code": "Not Found"}}}, "1d") == []
        assert extract_closes({}) == []

    def test_missing_high_low_default_to_zero(self):
        payload = daily_chart([1.0])
        quote = payload["chart"]["result"][0]["indicators"]["quote"][0]
        quote["high"] = [None]
        del quote["low"]

        points = normalize_chart(payload, "1d")

        assert points[0].high == 0
        assert points[0].low == 0


class TestNews:

    def test_news_items(self):
        payload = {"news": [
            {"title": "Apple beats", "publisher": "Reuters", "providerPublishTime": 1_700_000_000},
            {"title": "No time", "publisher": "AP"},
        ]}

        items = normalize_news(payload)

        assert items[0].title == "Apple beats"
        assert items[0].published_at == "11/14"
        assert items[0].provider_publish_time == 1_700_000_000
        assert items[1].published_at == ""

    def test_out_of_range_publish_time(self):
        items = normalize_news({"news": [{"title": "Far future", "providerPublishTime": 1e18}]})

        assert items[0].published_at == ""

    def test_no_news_key(self):
        assert normalize_news({"quotes": []}) == []


class TestFinancials:
    """Outer join of income-statement series on report date."""

    def payload(self):
        return {"timeseries": {"result": [
            {
                "meta": {"symbol": ["AAPL"], "type": ["annualTotalRevenue"]},
                "annualTotalRevenue": [
                    {"asOfDate": "2022-09-30", "reportedValue": {"raw": 394e9}},
                    {"asOfDate": "2023-09-30", "reportedValue": {"raw": 383e9}},
                ],
            },
            {
                "meta": {"symbol": ["AAPL"], "type": ["annualNetIncome"]},
                "annualNetIncome": [
                    {"asOfDate": "2023-09-30", "reportedValue": {"raw": 97e9}},
                ],
            },
            {
                "meta": {"symbol": ["AAPL"], "type": ["quarterlyTotalRevenue"]},
                "quarterlyTotalRevenue": [
                    None,
                    {"asOfDate": "2023-12-31", "reportedValue": {"raw": 119e9}},
                ],
            },
            {
                "meta": {"symbol": ["AAPL"], "type": ["quarterlyEBIT"]},
            },
        ]}}

    def test_annual_rows_sorted_newest_first(self):
        financials = normalize_financials(self.payload())

        assert [s.end_date for s in financials.annual] == ["2023-09-30", "2022-09-30"]

    def test_series_joined_on_date(self):
        latest, previous = normalize_financials(self.payload()).annual

        assert latest.total_revenue == 383e9
        assert latest.net_income == 97e9
        assert previous.total_revenue == 394e9
        assert previous.net_income is None
        assert latest.ebit is None

    def test_quarterly_kept_separate(self):
        financials = normalize_financials(self.payload())

        assert len(financials.quarterly) == 1
        assert financials.quarterly[0].total_revenue == 119e9

    def test_mistyped_series_is_skipped(self):
        payload = self.payload()
        payload["timeseries"]["result"][1]["annualNetIncome"] = {"raw": 97e9}

        latest, previous = normalize_financials(payload).annual

        assert latest.total_revenue == 383e9
        assert latest.net_income is None

    def test_no_data(self):
        assert normalize_financials({"timeseries": {"result": []}}) is None
        assert normalize_financials({"finance": {"error": "bad"}}) is None
