"""
Normalization of Yahoo payloads into the records served to the UI.

Every "missing becomes zero / None" decision lives here. Payloads are first
parsed into the optional-field DTOs in models.py; anything that does not even
parse as the expected envelope yields an empty result.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

import pandas as pd
import pytz
from pydantic import ValidationError

from ..logging_config import get_logger
from ..models import (
    ChartEnvelopeDTO,
    ChartResultDTO,
    NewsItemDTO,
    QuoteDTO,
    QuoteEnvelopeDTO,
    QuoteSummaryEnvelopeDTO,
    SearchEnvelopeDTO,
    TimeseriesEntryDTO,
    TimeseriesEnvelopeDTO,
    TimeseriesMetaDTO,
    lenient_number,
)
from ..schemas import (
    ChartPoint,
    FinancialsSnapshot,
    IncomeStatement,
    NewsItem,
    Quote,
    QuoteSummary,
)
from .calculations import StockCalculations
from .sector_data import get_sector_for_symbol, normalize_sector_name

logger = get_logger(__name__)

# US Eastern timezone for market dates
MARKET_TZ = pytz.timezone('US/Eastern')

# Timeseries name suffix -> IncomeStatement field
FINANCIAL_SERIES = {
    'TotalRevenue': 'total_revenue',
    'OperatingIncome': 'operating_income',
    'NetIncome': 'net_income',
    'GrossProfit': 'gross_profit',
    'EBIT': 'ebit',
}
FINANCIAL_PERIODS = ('annual', 'quarterly')
TIMESERIES_TYPES = [
    f"{period}{series}" for period in FINANCIAL_PERIODS for series in FINANCIAL_SERIES
]


def _format_timestamp(epoch_seconds: float, tz, fmt: str) -> Optional[str]:
    """Format a provider timestamp, or None when it is outside the platform's range."""
    try:
        return datetime.fromtimestamp(epoch_seconds, tz).strftime(fmt)
    except (OverflowError, OSError, ValueError):
        logger.debug(f"Unusable timestamp {epoch_seconds!r}")
        return None


def _market_date(epoch_seconds: float, fmt: str) -> Optional[str]:
    return _format_timestamp(epoch_seconds, MARKET_TZ, fmt)


# ============ Quotes ============

def quote_results(payload: Any) -> List[Any]:
    """Raw quote records of a v7 quote payload (empty when malformed)."""
    try:
        envelope = QuoteEnvelopeDTO.model_validate(payload)
    except ValidationError:
        return []
    if envelope.quoteResponse is None:
        return []
    return envelope.quoteResponse.result or []


def normalize_quote(raw: Any) -> Optional[Quote]:
    """
    Map one v7 quote record to a Quote.

    Missing numbers become 0. Records without a symbol are dropped.
    """
    try:
        dto = QuoteDTO.model_validate(raw)
    except ValidationError:
        return None
    if not dto.symbol:
        return None

    calc = StockCalculations()
    earnings_date = None
    if dto.earningsTimestamp:
        earnings_date = _market_date(dto.earningsTimestamp, '%Y-%m-%d')

    return Quote(
        symbol=dto.symbol,
        short_name=dto.shortName or dto.longName or dto.symbol,
        sector=get_sector_for_symbol(dto.symbol),
        price=calc.safe_float(dto.regularMarketPrice),
        change=calc.safe_float(dto.regularMarketChange),
        change_percent=calc.safe_float(dto.regularMarketChangePercent),
        volume=calc.safe_int(dto.regularMarketVolume),
        previous_close=calc.safe_float(dto.regularMarketPreviousClose),
        open=calc.safe_float(dto.regularMarketOpen),
        day_high=calc.safe_float(dto.regularMarketDayHigh),
        day_low=calc.safe_float(dto.regularMarketDayLow),
        fifty_two_week_high=calc.safe_float(dto.fiftyTwoWeekHigh),
        fifty_two_week_low=calc.safe_float(dto.fiftyTwoWeekLow),
        market_cap=calc.safe_float(dto.marketCap),
        earnings_date=earnings_date,
    )


# ============ Charts ============

def is_intraday(interval: str) -> bool:
    """'5m', '60m', '1h' are intraday; '1d', '1wk', '1mo' are not."""
    return interval.endswith(('m', 'h')) and not interval.endswith('mo')


def _chart_result(payload: Any) -> Optional[ChartResultDTO]:
    try:
        envelope = ChartEnvelopeDTO.model_validate(payload)
    except ValidationError:
        return None
    if envelope.chart is None or not envelope.chart.result:
        return None
    return envelope.chart.result[0]


def _at(values: Optional[List[Optional[float]]], index: int) -> Optional[float]:
    if values is None or index >= len(values):
        return None
    return values[index]


def normalize_chart(payload: Any, interval: str) -> List[ChartPoint]:
    """
    Map a v8 chart payload to ChartPoints.

    Bars with a null open or close are dropped, never filled in. Intraday bars
    are keyed by unix time shifted by the exchange's UTC offset; daily and
    coarser bars by their calendar date on the exchange.
    """
    result = _chart_result(payload)
    if result is None or not result.timestamp:
        return []
    if result.indicators is None or not result.indicators.quote:
        return []
    quote = result.indicators.quote[0]
    meta = result.meta

    intraday = is_intraday(interval)
    gmtoffset = (meta.gmtoffset if meta else None) or 0
    exchange_tz = pytz.utc
    if meta and meta.exchangeTimezoneName:
        try:
            exchange_tz = pytz.timezone(meta.exchangeTimezoneName)
        except pytz.UnknownTimeZoneError:
            logger.debug(f"Unknown exchange timezone {meta.exchangeTimezoneName}, using UTC")

    calc = StockCalculations()
    points: List[ChartPoint] = []
    for i, ts in enumerate(result.timestamp):
        open_val = _at(quote.open, i)
        close_val = _at(quote.close, i)
        if ts is None or open_val is None or close_val is None:
            continue

        if intraday:
            time_val: Any = int(ts) + gmtoffset
        else:
            time_val = _format_timestamp(ts, exchange_tz, '%Y-%m-%d')
            if time_val is None:
                continue

        points.append(ChartPoint(
            time=time_val,
            open=open_val,
            high=calc.safe_float(_at(quote.high, i)),
            low=calc.safe_float(_at(quote.low, i)),
            close=close_val,
            volume=calc.safe_int(_at(quote.volume, i)),
        ))
    return points


def extract_closes(payload: Any) -> List[float]:
    """Valid (non-null) closes of a chart payload, oldest first."""
    result = _chart_result(payload)
    if result is None or result.indicators is None or not result.indicators.quote:
        return []
    closes = result.indicators.quote[0].close or []
    return StockCalculations.valid_closes(closes)


# ============ News ============

def normalize_news(payload: Any) -> List[NewsItem]:
    """Map the news array of a v1 search payload to NewsItems."""
    try:
        envelope = SearchEnvelopeDTO.model_validate(payload)
    except ValidationError:
        return []

    items: List[NewsItem] = []
    for raw in envelope.news or []:
        try:
            dto = NewsItemDTO.model_validate(raw)
        except ValidationError:
            continue
        publish_time = int(dto.providerPublishTime) if dto.providerPublishTime else None
        items.append(NewsItem(
            title=dto.title or '',
            publisher=dto.publisher or '',
            published_at=(_market_date(publish_time, '%m/%d') or '') if publish_time else '',
            provider_publish_time=publish_time,
        ))
    return items


# ============ Fundamentals ============

def _module_value(modules: Dict[str, Any], module: str, field: str) -> Any:
    section = modules.get(module)
    if not isinstance(section, dict):
        return None
    value = section.get(field)
    if isinstance(value, dict):
        return value.get('raw')
    return value


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def normalize_quote_summary(payload: Any) -> Optional[QuoteSummary]:
    """Map a v10 quoteSummary payload (price, summaryDetail, defaultKeyStatistics,
    financialData, assetProfile modules) to a QuoteSummary."""
    try:
        envelope = QuoteSummaryEnvelopeDTO.model_validate(payload)
    except ValidationError:
        return None
    if envelope.quoteSummary is None or not envelope.quoteSummary.result:
        return None
    modules = envelope.quoteSummary.result[0]

    def number(module: str, field: str) -> Optional[float]:
        return lenient_number(_module_value(modules, module, field))

    employees = number('assetProfile', 'fullTimeEmployees')
    sector = _text(_module_value(modules, 'assetProfile', 'sector'))

    return QuoteSummary(
        short_name=_text(_module_value(modules, 'price', 'shortName')),
        long_name=_text(_module_value(modules, 'price', 'longName')),
        sector=normalize_sector_name(sector) if sector else None,
        industry=_text(_module_value(modules, 'assetProfile', 'industry')),
        trailing_pe=number('summaryDetail', 'trailingPE'),
        forward_pe=number('summaryDetail', 'forwardPE'),
        price_to_book=number('defaultKeyStatistics', 'priceToBook'),
        eps_trailing_twelve_months=number('defaultKeyStatistics', 'trailingEps'),
        eps_forward=number('defaultKeyStatistics', 'forwardEps'),
        dividend_yield=number('summaryDetail', 'dividendYield'),
        trailing_annual_dividend_rate=number('summaryDetail', 'trailingAnnualDividendRate'),
        fifty_two_week_high=number('summaryDetail', 'fiftyTwoWeekHigh'),
        fifty_two_week_low=number('summaryDetail', 'fiftyTwoWeekLow'),
        market_cap=number('price', 'marketCap') or number('summaryDetail', 'marketCap'),
        enterprise_value=number('defaultKeyStatistics', 'enterpriseValue'),
        revenue_per_share=number('financialData', 'revenuePerShare'),
        profit_margins=number('financialData', 'profitMargins'),
        return_on_equity=number('financialData', 'returnOnEquity'),
        debt_to_equity=number('financialData', 'debtToEquity'),
        beta=number('summaryDetail', 'beta') or number('defaultKeyStatistics', 'beta'),
        long_business_summary=_text(_module_value(modules, 'assetProfile', 'longBusinessSummary')),
        full_time_employees=int(employees) if employees is not None else None,
        website=_text(_module_value(modules, 'assetProfile', 'website')),
        country=_text(_module_value(modules, 'assetProfile', 'country')),
        city=_text(_module_value(modules, 'assetProfile', 'city')),
    )


def _timeseries_records(payload: Any) -> List[Dict[str, Any]]:
    try:
        envelope = TimeseriesEnvelopeDTO.model_validate(payload)
    except ValidationError:
        return []
    if envelope.timeseries is None:
        return []

    records = []
    for series in envelope.timeseries.result or []:
        try:
            meta = TimeseriesMetaDTO.model_validate(series.get('meta') or {})
        except ValidationError:
            continue
        if not meta.type:
            continue
        type_name = meta.type[0]
        period = next((p for p in FINANCIAL_PERIODS if type_name.startswith(p)), None)
        field = FINANCIAL_SERIES.get(type_name[len(period):]) if period else None
        if field is None:
            continue

        entries = series.get(type_name)
        if not isinstance(entries, list):
            continue

        for raw in entries:
            if not isinstance(raw, dict):
                continue
            try:
                entry = TimeseriesEntryDTO.model_validate(raw)
            except ValidationError:
                continue
            if not entry.asOfDate or entry.reportedValue is None or entry.reportedValue.raw is None:
                continue
            records.append({
                'period': period,
                'end_date': entry.asOfDate,
                'field': field,
                'value': entry.reportedValue.raw,
            })
    return records


def _statements(frame: pd.DataFrame, period: str) -> List[IncomeStatement]:
    subset = frame[frame['period'] == period]
    if subset.empty:
        return []
    # Outer join of the named series on report date
    table = subset.pivot_table(index='end_date', columns='field', values='value', aggfunc='last')
    table = table.reindex(columns=list(FINANCIAL_SERIES.values())).sort_index(ascending=False)

    calc = StockCalculations()
    return [
        IncomeStatement(
            end_date=str(end_date),
            **{field: calc.optional_float(row[field]) for field in FINANCIAL_SERIES.values()},
        )
        for end_date, row in table.iterrows()
    ]


def normalize_financials(payload: Any) -> Optional[FinancialsSnapshot]:
    """
    Assemble annual and quarterly income statements from a timeseries payload.

    Returns:
        Snapshot sorted by end date descending, or None if no series had data.
    """
    records = _timeseries_records(payload)
    if not records:
        return None
    frame = pd.DataFrame.from_records(records)
    return FinancialsSnapshot(
        annual=_statements(frame, 'annual'),
        quarterly=_statements(frame, 'quarterly'),
    )
