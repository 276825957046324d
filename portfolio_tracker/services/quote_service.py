from datetime import date, timedelta
import logging
from typing import Protocol

import pandas as pd
import yfinance as yf
from pyrate_limiter import Limiter

from portfolio_tracker.exceptions import ExternalSourceError
from portfolio_tracker.models import QuotePrice
from portfolio_tracker.utils.date_utils import today_utc
from portfolio_tracker.yfinance_api import YFINANCE_BUCKET

logger: logging.Logger = logging.getLogger(__name__)


class QuoteSource(Protocol):
    def get_daily_closes(self, symbol: str, start_date: date, end_date: date) -> list[QuotePrice]:
        """Daily closes for `symbol` within the inclusive range; may be partial or empty."""
        ...


class YahooQuoteSource:
    """Daily close prices from Yahoo Finance via yfinance."""

    def __init__(self, limiter: Limiter | None = None):
        self.limiter: Limiter | None = limiter

    def _fetch_history(self, symbol: str, start_date: date, end_date: date) -> pd.DataFrame:
        # yfinance treats `end` as exclusive
        ticker: yf.Ticker = yf.Ticker(symbol)
        return ticker.history(
            start=start_date.isoformat(),
            end=(end_date + timedelta(days=1)).isoformat(),
            interval="1d",
            auto_adjust=False,
            raise_errors=True,
        )

    def get_daily_closes(self, symbol: str, start_date: date, end_date: date) -> list[QuotePrice]:
        """
        Fetch daily closes for a symbol.

        Args:
            symbol: Yahoo Finance symbol (e.g., "VWRL.AS")
            start_date: First date to fetch
            end_date: Last date to fetch (inclusive)

        Returns:
            Closes ordered by date. Null, non-positive and provisional (today or later)
            closes are left out.

        Raises:
            ExternalSourceError: If the request to Yahoo Finance fails
        """
        logger.debug(f"Requesting {symbol} closes from {start_date} to {end_date}")
        try:
            if self.limiter is not None:
                with self.limiter.ratelimit(YFINANCE_BUCKET, delay=True):
                    history = self._fetch_history(symbol, start_date, end_date)
            else:
                history = self._fetch_history(symbol, start_date, end_date)
        except Exception as e:
            logger.error(f"Failed to fetch price history for {symbol}: {e}")
            raise ExternalSourceError(f"Failed to fetch price history for {symbol}: {e}") from e

        if history is None or history.empty or "Close" not in history.columns:
            logger.warning(f"No price history returned for {symbol}")
            return []

        today: date = today_utc()
        closes: list[QuotePrice] = []
        for timestamp, close in history["Close"].dropna().items():
            quote_date: date = pd.Timestamp(timestamp).date()
            if quote_date >= today or not start_date <= quote_date <= end_date:
                continue
            if close <= 0:
                continue
            closes.append(QuotePrice(date=quote_date, close=float(close)))

        logger.info(f"Received {len(closes)} closes for {symbol}")
        return closes
