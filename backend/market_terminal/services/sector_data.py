"""
Sector Data Service

Static GICS sector classification and index membership for the S&P 500 and
NASDAQ 100. The quote endpoint does not reliably report a sector, so quotes
are backfilled from this table.

Sectors used:
- Technology
- Health Care
- Financials
- Consumer Discretionary
- Communication Services
- Industrials
- Consumer Staples
- Energy
- Utilities
- Real Estate
- Materials
"""

import logging
from typing import Dict, Iterable, List

from ..schemas import Constituent

logger = logging.getLogger(__name__)


# ============================================================================
# Sector Classification
# ============================================================================

# Some symbols sit in more than one list after reclassifications;
# the first sector listed wins.
SECTOR_MAP: Dict[str, List[str]] = {
    'Technology': [
        'AAPL','ACN','ADBE','ADI','ADP','ADSK','AMAT','AMD','ANET','ANSS','APH',
        'AVGO','CDNS','CDW','CPAY','CRM','CRWD','CSCO','CTSH','DELL','ENPH',
        'EPAM','FFIV','FICO','FIS','FISV','FSLR','FTNT','GEN','GLW','GPN',
        'GRMN','HPE','HPQ','IBM','INTC','INTU','IT','JKHY','KEYS','KLAC',
        'LRCX','MCHP','MPWR','MRVL','MSFT','MSI','MU','NOW','NTAP','NVDA',
        'NXPI','ON','ORCL','PANW','PLTR','PTC','PYPL','QCOM','QRVO','ROP',
        'SMCI','SNPS','STX','SWKS','TDY','TEL','TER','TRMB','TXN','TYL',
        'VRSN','WDC','ZBRA',
        # NASDAQ-only
        'APP','ARM','ASML','COIN','DDOG','GFS','MDB','MSTR','TEAM','TTD','ZS',
    ],
    'Health Care': [
        'A','ABBV','ABT','ALGN','AMGN','BAX','BDX','BIIB','BIO','BMY','BSX',
        'CAH','CNC','COO','COR','CRL','CTVA','CVS','DXCM','EW','GEHC','GILD',
        'HCA','HOLX','HSIC','HUM','IDXX','ILMN','INCY','IQV','ISRG','JNJ',
        'LH','LLY','MCK','MDT','MET','MOH','MRK','MRNA','MTD','PODD','PFE',
        'REGN','RVTY','STE','SYK','TECH','TMO','UHS','UNH','VRTX','VTRS',
        'WAT','WST','ZBH','ZTS',
        # NASDAQ-only
        'AZN','MELI',
    ],
    'Financials': [
        'ACGL','AFL','AIG','AIZ','AJG','ALL','AMP','AON','APO','AXP','BAC',
        'BEN','BK','BKR','BLK','BRK-B','BRO','BX','C','CB','CBOE','CFG',
        'CINF','CMA','CME','COF','DFS','ERIE','FDS','FI','FICO','FITB',
        'FRT','GL','GS','HBAN','ICE','INVH','IVZ','JPM','KEY','KIM','KKR',
        'L','MA','MCO','MKTX','MMC','MS','MSCI','MTB','NDAQ','NTRS','PFG',
        'PNC','PRU','PSA','REG','RF','RJF','SBAC','SCHW','SPGI','STT',
        'SYF','TFC','TROW','TRV','USB','V','VICI','WFC','WRB','WTW',
    ],
    'Consumer Discretionary': [
        'ABNB','AMZN','APTV','AZO','BBWI','BBY','BKNG','BWA','CCL','CHD',
        'CMG','CZR','DAY','DG','DHI','DIS','DLTR','DPZ','DRI','EBAY','EXPE',
        'F','GOOG','GOOGL','GPC','GM','GNRC','GWW','HAS','HD','LEN','LKQ',
        'LOW','LULU','LVS','MAR','MCD','MGM','MHK','MTCH','NCLH','NKE',
        'NVR','ORLY','PARA','PHM','POOL','PVH','RCL','RL','ROST','SBUX',
        'TGT','TJX','TPR','TSCO','TSLA','TTWO','ULTA','VFC','WDAY','WYNN','YUM',
        # NASDAQ-only
        'DASH','PDD',
    ],
    'Communication Services': [
        'CHTR','CMCSA','DIS','EA','FOX','FOXA','GOOG','GOOGL','IPG','LYV',
        'META','MTCH','NFLX','NWS','NWSA','OMC','PARA','T','TMUS','TTWO',
        'VZ','WBD',
    ],
    'Industrials': [
        'AOS','AXON','BA','BLDR','CAT','CHRW','CMI','CPRT','CSX','CTAS',
        'DAL','DE','DOV','EMR','ETN','FAST','FDX','FTV','GD','GE','GEV',
        'GWW','HII','HON','HWM','IR','ITW','J','JBHT','JBL','JCI','LDOS',
        'LHX','LMT','MAS','MLM','MMM','NDSN','NOC','NSC','ODFL','OTIS',
        'PCAR','PH','PNR','PWR','ROK','ROL','RSG','RTX','SNA','SWK','SW',
        'TDG','TT','TXT','UAL','UBER','UNP','UPS','URI','VRSK','WAB','WM',
        'XYL',
    ],
    'Consumer Staples': [
        'ADM','BF-B','BG','CAG','CHD','CL','CLX','COST','CPB','DG','EL',
        'GIS','HRL','HSY','K','KDP','KHC','KMB','KO','KR','KVUE','LW',
        'MDLZ','MKC','MNST','MO','PEP','PG','PM','SJM','STZ','SYY','TAP',
        'TGT','TSN','WBA','WMT',
    ],
    'Energy': [
        'APA','BKR','COP','CTRA','CVX','DVN','EOG','EQT','FANG','HAL',
        'HES','KMI','LNG','MPC','MRO','OKE','OXY','PSX','SLB','TRGP',
        'VLO','WMB','XOM',
    ],
    'Utilities': [
        'AEE','AEP','AES','ATO','AWK','CEG','CMS','CNP','D','DTE','DUK',
        'ED','EIX','ES','ETR','EVRG','EXC','FE','NEE','NI','NRG','PCG',
        'PEG','PNW','PPL','SO','SRE','VST','WEC','XEL',
    ],
    'Real Estate': [
        'AMT','ARE','AVB','BXP','CCI','CPT','CSGP','DLR','EQIX','EQR',
        'ESS','EXR','FRT','HST','INVH','IRM','KIM','MAA','O','PLD','PSA',
        'REG','SBAC','SPG','UDR','VICI','VTR','WELL','WY',
    ],
    'Materials': [
        'AMCR','APD','AVY','BG','CE','CF','DD','DOW','ECL','EMN','FCX',
        'FMC','IFF','IP','LIN','LYB','MLM','MOS','NEM','NUE','PKG','PPG',
        'SEE','SHW','STLD','VMC','WRK',
    ],
}

# Provider sector labels mapped onto the GICS names above
SECTOR_ALIASES = {
    'Information Technology': 'Technology',
    'Financial Services': 'Financials',
    'Financial': 'Financials',
    'Healthcare': 'Health Care',
    'Industrial': 'Industrials',
    'Consumer Cyclical': 'Consumer Discretionary',
    'Consumer Defensive': 'Consumer Staples',
    'Basic Materials': 'Materials',
    'Telecommunications': 'Communication Services',
}


def _build_symbol_sector_map() -> Dict[str, str]:
    lookup: Dict[str, str] = {}
    for sector, symbols in SECTOR_MAP.items():
        for symbol in symbols:
            lookup.setdefault(symbol, sector)
    return lookup


_SYMBOL_SECTOR_MAP = _build_symbol_sector_map()


# ============================================================================
# Index Membership
# ============================================================================

# S&P 500 constituents (~503 tickers, as of early 2025)
SP500_SYMBOLS: List[str] = [
    'A','AAL','AAPL','ABBV','ABNB','ABT','ACGL','ACN','ADBE','ADI',
    'ADM','ADP','ADSK','AEE','AEP','AES','AFL','AIG','AIZ','AJG',
    'ALL','ALLE','AMAT','AMCR','AMD','AME','AMGN','AMP','AMT','AMZN',
    'ANET','ANSS','AON','AOS','APA','APD','APH','APO','APTV','ARE',
    'ATO','AVGO','AVB','AVY','AWK','AXON','AXP','AZO',
    'BA','BAC','BAX','BBWI','BBY','BDX','BEN','BF-B','BG','BIIB',
    'BIO','BK','BKNG','BKR','BLDR','BLK','BMY','BR','BRK-B','BRO',
    'BSX','BWA','BX','BXP',
    'C','CAG','CAH','CARR','CAT','CB','CBOE','CBRE','CCI','CCL',
    'CDNS','CDW','CE','CEG','CF','CFG','CHD','CHRW','CHTR','CI',
    'CINF','CL','CLX','CMA','CMCSA','CME','CMG','CMI','CMS','CNC',
    'CNP','COF','COO','COP','COR','COST','CPAY','CPB','CPRT','CPT',
    'CRL','CRM','CRWD','CSCO','CSGP','CSX','CTAS','CTRA','CTSH',
    'CTVA','CVS','CVX','CZR',
    'D','DAL','DAY','DD','DE','DECK','DELL','DFS','DG','DGX','DHI',
    'DHR','DIS','DLTR','DOV','DOW','DPZ','DRI','DTE','DUK','DVA',
    'DVN','DXCM',
    'EA','EBAY','ECL','ED','EFX','EIX','EL','EMN','EMR','ENPH',
    'EOG','EPAM','EQIX','EQR','EQT','ERIE','ES','ESS','ETN','ETR',
    'EVRG','EW','EXC','EXPD','EXPE','EXR',
    'F','FANG','FAST','FBHS','FCX','FDS','FDX','FE','FFIV','FI',
    'FICO','FIS','FISV','FITB','FMC','FOX','FOXA','FRT','FSLR',
    'FTNT','FTV',
    'GD','GDDY','GE','GEHC','GEN','GEV','GILD','GIS','GL','GLW',
    'GM','GNRC','GOOG','GOOGL','GPC','GPN','GRMN','GS','GWW',
    'HAL','HAS','HBAN','HCA','HD','HOLX','HON','HPE','HPQ','HRL',
    'HSIC','HST','HSY','HUBB','HUM','HWM',
    'IBM','ICE','IDXX','IEX','IFF','ILMN','INCY','INTC','INTU',
    'INVH','IP','IPG','IQV','IR','IRM','ISRG','IT','ITW','IVZ',
    'J','JBHT','JBL','JCI','JKHY','JNJ','JNPR','JPM',
    'K','KDP','KEY','KEYS','KHC','KIM','KKR','KLAC','KMB','KMI',
    'KMX','KO','KR','KVUE',
    'L','LDOS','LEN','LH','LHX','LIN','LKQ','LLY','LNG','LRCX',
    'LULU','LUV','LVS','LW','LYB','LYV',
    'MA','MAA','MAR','MAS','MCD','MCHP','MCK','MCO','MDLZ','MDT',
    'MET','META','MGM','MHK','MKC','MKTX','MLM','MMC','MMM','MNST',
    'MO','MOH','MOS','MPC','MPWR','MRK','MRNA','MRVL','MS','MSCI',
    'MSFT','MSI','MTB','MTCH','MTD','MU',
    'NCLH','NDAQ','NDSN','NEE','NEM','NFLX','NI','NKE','NOC','NOW',
    'NRG','NSC','NTAP','NTRS','NUE','NVDA','NVR','NWS','NWSA','NXPI',
    'O','ODFL','OKE','OMC','ON','ORCL','ORLY','OTIS','OXY',
    'PANW','PARA','PAYC','PAYX','PCAR','PCG','PEG','PEP','PFE','PFG',
    'PG','PGR','PH','PHM','PKG','PLD','PLTR','PM','PNC','PNR','PNW',
    'PODD','POOL','PPG','PPL','PRU','PSA','PSX','PTC','PVH','PWR',
    'PYPL',
    'QCOM','QRVO',
    'RCL','REG','REGN','RF','RJF','RL','RMD','ROK','ROL','ROP',
    'ROST','RSG','RTX','RVTY',
    'SBAC','SBUX','SCHW','SEE','SHW','SJM','SLB','SMCI','SNA',
    'SNPS','SO','SOLV','SPG','SPGI','SRE','STE','STLD','STT','STX',
    'STZ','SW','SWK','SWKS','SYF','SYK','SYY',
    'T','TAP','TDG','TDY','TECH','TEL','TER','TFC','TFX','TGT',
    'TJX','TMO','TMUS','TPL','TPR','TRGP','TRMB','TROW','TRV','TSCO',
    'TSLA','TSN','TT','TTWO','TXN','TXT','TYL',
    'UAL','UBER','UDR','UHS','ULTA','UNH','UNP','UPS','URI','USB',
    'V','VICI','VLO','VLTO','VMC','VRSK','VRSN','VRTX','VST','VTR',
    'VTRS','VZ',
    'WAB','WAT','WBA','WBD','WDC','WDAY','WEC','WELL','WFC','WM',
    'WMB','WMT','WRB','WRK','WST','WTW','WY','WYNN',
    'XEL','XOM','XYL',
    'YUM',
    'ZBH','ZBRA','ZTS',
]

# NASDAQ 100 constituents (~101 tickers, as of early 2025)
NASDAQ100_SYMBOLS: List[str] = [
    'AAPL','ABNB','ADBE','ADI','ADP','ADSK','AEP','AMAT','AMGN','AMZN',
    'ANSS','APP','ARM','ASML','AVGO','AZN',
    'BIIB','BKNG','BKR',
    'CDNS','CDW','CEG','CHTR','CMCSA','COIN','COST','CPRT','CRWD','CSCO',
    'CSGP','CTAS','CTSH',
    'DASH','DDOG','DLTR','DXCM',
    'EA','EXC',
    'FANG','FAST','FTNT',
    'GEHC','GFS','GILD','GOOG','GOOGL',
    'HON',
    'IDXX','ILMN','INTC','INTU','ISRG',
    'KDP','KHC','KLAC',
    'LIN','LRCX','LULU',
    'MAR','MCHP','MDB','MDLZ','MELI','META','MNST','MRNA','MRVL','MSFT',
    'MSTR','MU',
    'NFLX','NVDA','NXPI',
    'ODFL','ON','ORLY',
    'PANW','PAYX','PCAR','PDD','PEP','PLTR','PYPL',
    'QCOM',
    'REGN','ROST','ROP',
    'SBUX','SMCI','SNPS',
    'TEAM','TMUS','TSLA','TTD','TTWO','TXN',
    'VRSK','VRTX',
    'WBD','WDAY',
    'XEL',
    'ZS',
]

MARKET_SYMBOLS = {
    'sp500': SP500_SYMBOLS,
    'nasdaq100': NASDAQ100_SYMBOLS,
}

MARKET_NAMES = {
    'sp500': 'S&P 500',
    'nasdaq100': 'NASDAQ 100',
}


# ============================================================================
# Lookups
# ============================================================================

def normalize_sector_name(name: str) -> str:
    """Map a provider sector label (e.g. 'Financial Services') to its GICS name."""
    if not name:
        return ''
    name = name.strip()
    return SECTOR_ALIASES.get(name, name)


def get_sector_for_symbol(symbol: str) -> str:
    """Sector for a symbol, or an empty string when it is not classified."""
    return _SYMBOL_SECTOR_MAP.get(symbol.upper(), '')


def get_sectors_for_symbols(symbols: Iterable[str]) -> Dict[str, str]:
    """Sectors for the classified symbols; unclassified symbols are left out."""
    result = {}
    for symbol in symbols:
        sector = _SYMBOL_SECTOR_MAP.get(symbol.upper())
        if sector:
            result[symbol.upper()] = sector
    return result


def get_market_name(market: str) -> str:
    return MARKET_NAMES.get(market, market)


def get_constituents(market: str) -> List[Constituent]:
    """
    Members of an index with their sectors.

    Args:
        market: 'sp500' or 'nasdaq100'.

    Returns:
        Constituents, or an empty list for an unknown market.
    """
    symbols = MARKET_SYMBOLS.get(market)
    if symbols is None:
        logger.debug(f"Unknown market requested: {market}")
        return []
    return [
        Constituent(symbol=symbol, name=symbol, sector=get_sector_for_symbol(symbol))
        for symbol in symbols
    ]
