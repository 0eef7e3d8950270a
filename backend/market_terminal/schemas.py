from pydantic import BaseModel, Field
from typing import Dict, List, Optional, Union


# Quote Schemas
class Quote(BaseModel):
    """Normalized per-symbol snapshot. Numbers default to 0, never None."""
    symbol: str
    short_name: str = ""
    sector: str = ""
    price: float = 0
    change: float = 0
    change_percent: float = 0
    volume: int = 0
    previous_close: float = 0
    open: float = 0
    day_high: float = 0
    day_low: float = 0
    fifty_two_week_high: float = 0
    fifty_two_week_low: float = 0
    market_cap: float = 0
    earnings_date: Optional[str] = None  # YYYY-MM-DD


# Chart Schemas
class ChartPoint(BaseModel):
    time: Union[str, int]  # YYYY-MM-DD for daily bars, shifted unix seconds for intraday
    open: float
    high: float = 0
    low: float = 0
    close: float
    volume: int = 0


# News Schemas
class NewsItem(BaseModel):
    title: str = ""
    publisher: str = ""
    published_at: str = ""  # MM/DD, US/Eastern
    provider_publish_time: Optional[int] = None


# Fundamentals Schemas
class QuoteSummary(BaseModel):
    short_name: Optional[str] = None
    long_name: Optional[str] = None
    sector: Optional[str] = None
    industry: Optional[str] = None
    trailing_pe: Optional[float] = None
    forward_pe: Optional[float] = None
    price_to_book: Optional[float] = None
    eps_trailing_twelve_months: Optional[float] = None
    eps_forward: Optional[float] = None
    dividend_yield: Optional[float] = None
    trailing_annual_dividend_rate: Optional[float] = None
    fifty_two_week_high: Optional[float] = None
    fifty_two_week_low: Optional[float] = None
    market_cap: Optional[float] = None
    enterprise_value: Optional[float] = None
    revenue_per_share: Optional[float] = None
    profit_margins: Optional[float] = None
    return_on_equity: Optional[float] = None
    debt_to_equity: Optional[float] = None
    beta: Optional[float] = None
    long_business_summary: Optional[str] = None
    full_time_employees: Optional[int] = None
    website: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None


class IncomeStatement(BaseModel):
    end_date: str
    total_revenue: Optional[float] = None
    operating_income: Optional[float] = None
    net_income: Optional[float] = None
    gross_profit: Optional[float] = None
    ebit: Optional[float] = None


class FinancialsSnapshot(BaseModel):
    annual: List[IncomeStatement] = []
    quarterly: List[IncomeStatement] = []


# Market Summary Schemas (commentary input)
class SectorPerformance(BaseModel):
    name: str
    avg_change: float
    count: int


class MoverItem(BaseModel):
    symbol: str
    name: str
    price: float
    change_percent: float


class VolumeLeader(BaseModel):
    symbol: str
    name: str
    volume: int
    change_percent: float


class EarningsItem(BaseModel):
    symbol: str
    name: str
    date: str


class MarketSummary(BaseModel):
    market_name: str
    total_count: int = 0
    advancers: int = 0
    decliners: int = 0
    avg_change_percent: float = 0
    sectors: List[SectorPerformance] = []
    top_gainers: List[MoverItem] = []
    top_losers: List[MoverItem] = []
    top_volume: List[VolumeLeader] = []
    upcoming_earnings: List[EarningsItem] = []


class CommentaryRequest(BaseModel):
    """Either a prebuilt summary, or a market name + symbols to summarize server-side."""
    summary: Optional[MarketSummary] = None
    market_name: Optional[str] = None
    symbols: List[str] = []
    include_news: bool = False
    news: Optional[Dict[str, List[NewsItem]]] = None


# Constituent / Watchlist Schemas
class Constituent(BaseModel):
    symbol: str
    name: str
    sector: str = ""


class WatchlistInfo(BaseModel):
    id: str
    name: str
    symbols: List[str] = []


class WatchlistsData(BaseModel):
    lists: List[WatchlistInfo] = []


class WatchlistCreate(BaseModel):
    name: str = Field(min_length=1)


class WatchlistSymbols(BaseModel):
    symbols: List[str]


class CacheClearResponse(BaseModel):
    cleared: int
