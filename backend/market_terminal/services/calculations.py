"""
Financial calculations for market data.

Provides NaN-safe conversions and the price-change math used by the
5-day delta and sparkline fetchers.
"""
from typing import List, Optional, Sequence
import pandas as pd

from ..logging_config import get_logger

logger = get_logger(__name__)

# Lookback (in trading days) for the 5-day change column
FIVE_DAY_LOOKBACK = 5


class StockCalculations:
    """Static methods for stock-related calculations."""

    @staticmethod
    def safe_float(value) -> float:
        """
        Safely convert a value to float, handling Series and other types.

        Args:
            value: Value to convert (can be float, Series, or other numeric type).

        Returns:
            Float value, or 0.0 if conversion fails.
        """
        if hasattr(value, 'iloc'):
            return StockCalculations.safe_float(value.iloc[0]) if len(value) > 0 else 0.0
        try:
            if pd.isna(value):
                return 0.0
        except (TypeError, ValueError):
            return 0.0
        if hasattr(value, 'item'):
            return float(value.item())
        try:
            return float(value)
        except (TypeError, ValueError):
            return 0.0

    @staticmethod
    def safe_int(value) -> int:
        """
        Safely convert a value to int, handling Series and other types.

        Args:
            value: Value to convert.

        Returns:
            Int value, or 0 if conversion fails.
        """
        if hasattr(value, 'iloc'):
            return StockCalculations.safe_int(value.iloc[0]) if len(value) > 0 else 0
        try:
            if pd.isna(value):
                return 0
        except (TypeError, ValueError):
            return 0
        if hasattr(value, 'item'):
            return int(value.item())
        try:
            return int(value)
        except (TypeError, ValueError):
            return 0

    @staticmethod
    def optional_float(value) -> Optional[float]:
        """Like safe_float, but keeps missing values as None."""
        if value is None:
            return None
        try:
            if pd.isna(value):
                return None
        except (TypeError, ValueError):
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    @staticmethod
    def valid_closes(closes: Sequence[Optional[float]]) -> List[float]:
        """Drop null/NaN closes, keeping order."""
        return [float(c) for c in closes if c is not None and not pd.isna(c)]

    @staticmethod
    def percent_change(reference: float, latest: float) -> Optional[float]:
        """Percent change from reference to latest, or None if reference is not positive."""
        if reference is None or reference <= 0:
            return None
        return ((latest - reference) / reference) * 100

    @staticmethod
    def calculate_five_day_change(closes: Sequence[Optional[float]]) -> Optional[float]:
        """
        Percent change over the last five trading days.

        Short weeks and holidays leave fewer bars than expected, so the
        lookback is clamped to min(5, valid_count - 1) rather than failing.

        Args:
            closes: Daily closes, oldest first. Nulls are ignored.

        Returns:
            Percent change, or None with fewer than two valid closes.
        """
        valid = StockCalculations.valid_closes(closes)
        if len(valid) < 2:
            return None
        lookback = min(FIVE_DAY_LOOKBACK, len(valid) - 1)
        return StockCalculations.percent_change(valid[-1 - lookback], valid[-1])
