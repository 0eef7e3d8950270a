"""
Upstream payload models for the Yahoo Finance endpoints.

Every field is optional and unknown keys are ignored: the provider omits,
nulls and occasionally mistypes fields. Numeric fields that fail to coerce
become None instead of failing the whole record. Turning these into the
fully-defaulted records in schemas.py is done in services/normalize.py.
"""
import math
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, field_validator


def lenient_number(value: Any) -> Optional[float]:
    """Coerce to float, mapping anything unusable (bool, text, NaN) to None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, dict):
        # quoteSummary style {"raw": 1.23, "fmt": "1.23"}
        value = value.get("raw")
        if value is None or isinstance(value, bool):
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def lenient_number_list(value: Any) -> Optional[List[Optional[float]]]:
    if value is None:
        return None
    if not isinstance(value, list):
        return None
    return [lenient_number(v) for v in value]


# ============ v7 quote ============

class QuoteDTO(BaseModel):
    symbol: Optional[str] = None
    shortName: Optional[str] = None
    longName: Optional[str] = None
    regularMarketPrice: Optional[float] = None
    regularMarketChange: Optional[float] = None
    regularMarketChangePercent: Optional[float] = None
    regularMarketVolume: Optional[float] = None
    regularMarketPreviousClose: Optional[float] = None
    regularMarketOpen: Optional[float] = None
    regularMarketDayHigh: Optional[float] = None
    regularMarketDayLow: Optional[float] = None
    fiftyTwoWeekHigh: Optional[float] = None
    fiftyTwoWeekLow: Optional[float] = None
    marketCap: Optional[float] = None
    earningsTimestamp: Optional[float] = None

    @field_validator(
        'regularMarketPrice', 'regularMarketChange', 'regularMarketChangePercent',
        'regularMarketVolume', 'regularMarketPreviousClose', 'regularMarketOpen',
        'regularMarketDayHigh', 'regularMarketDayLow', 'fiftyTwoWeekHigh',
        'fiftyTwoWeekLow', 'marketCap', 'earningsTimestamp',
        mode='before',
    )
    @classmethod
    def coerce_number(cls, v: Any) -> Optional[float]:
        return lenient_number(v)

    @field_validator('symbol', 'shortName', 'longName', mode='before')
    @classmethod
    def lenient_text(cls, v: Any) -> Optional[str]:
        return v if isinstance(v, str) else None


class QuoteResponseBodyDTO(BaseModel):
    result: Optional[List[Any]] = None
    error: Optional[Any] = None


class QuoteEnvelopeDTO(BaseModel):
    quoteResponse: Optional[QuoteResponseBodyDTO] = None


# ============ v8 chart ============

class ChartMetaDTO(BaseModel):
    symbol: Optional[str] = None
    currency: Optional[str] = None
    gmtoffset: Optional[int] = None
    exchangeTimezoneName: Optional[str] = None

    @field_validator('gmtoffset', mode='before')
    @classmethod
    def lenient_offset(cls, v: Any) -> Optional[int]:
        number = lenient_number(v)
        return int(number) if number is not None else None


class ChartQuoteDTO(BaseModel):
    open: Optional[List[Optional[float]]] = None
    high: Optional[List[Optional[float]]] = None
    low: Optional[List[Optional[float]]] = None
    close: Optional[List[Optional[float]]] = None
    volume: Optional[List[Optional[float]]] = None

    @field_validator('open', 'high', 'low', 'close', 'volume', mode='before')
    @classmethod
    def lenient_series(cls, v: Any) -> Optional[List[Optional[float]]]:
        return lenient_number_list(v)


class ChartIndicatorsDTO(BaseModel):
    quote: Optional[List[ChartQuoteDTO]] = None


class ChartResultDTO(BaseModel):
    meta: Optional[ChartMetaDTO] = None
    timestamp: Optional[List[Optional[float]]] = None
    indicators: Optional[ChartIndicatorsDTO] = None

    @field_validator('timestamp', mode='before')
    @classmethod
    def lenient_timestamps(cls, v: Any) -> Optional[List[Optional[float]]]:
        return lenient_number_list(v)


class ChartBodyDTO(BaseModel):
    result: Optional[List[ChartResultDTO]] = None
    error: Optional[Any] = None


class ChartEnvelopeDTO(BaseModel):
    chart: Optional[ChartBodyDTO] = None


# ============ v1 search (news) ============

class NewsItemDTO(BaseModel):
    title: Optional[str] = None
    publisher: Optional[str] = None
    providerPublishTime: Optional[float] = None

    @field_validator('providerPublishTime', mode='before')
    @classmethod
    def lenient_time(cls, v: Any) -> Optional[float]:
        return lenient_number(v)

    @field_validator('title', 'publisher', mode='before')
    @classmethod
    def lenient_text(cls, v: Any) -> Optional[str]:
        return v if isinstance(v, str) else None


class SearchEnvelopeDTO(BaseModel):
    news: Optional[List[Any]] = None


# ============ v10 quoteSummary ============

class QuoteSummaryBodyDTO(BaseModel):
    result: Optional[List[Dict[str, Any]]] = None
    error: Optional[Any] = None


class QuoteSummaryEnvelopeDTO(BaseModel):
    quoteSummary: Optional[QuoteSummaryBodyDTO] = None


# ============ fundamentals timeseries ============

class ReportedValueDTO(BaseModel):
    raw: Optional[float] = None

    @field_validator('raw', mode='before')
    @classmethod
    def lenient_raw(cls, v: Any) -> Optional[float]:
        return lenient_number(v)


class TimeseriesEntryDTO(BaseModel):
    asOfDate: Optional[str] = None
    periodType: Optional[str] = None
    reportedValue: Optional[ReportedValueDTO] = None


class TimeseriesMetaDTO(BaseModel):
    type: Optional[List[str]] = None
    symbol: Optional[List[str]] = None


class TimeseriesBodyDTO(BaseModel):
    result: Optional[List[Dict[str, Any]]] = None
    error: Optional[Any] = None


class TimeseriesEnvelopeDTO(BaseModel):
    timeseries: Optional[TimeseriesBodyDTO] = None
