import logging
from pathlib import Path

import yfinance as yf
from pyrate_limiter import Duration, Limiter, RequestRate

logger: logging.Logger = logging.getLogger(__name__)

# Bucket identity shared by every Yahoo Finance call
YFINANCE_BUCKET = "yfinance"


def get_quote_limiter(*, requests_per_window: int = 2, window_seconds: int = 5) -> Limiter:
    """
    Returns a limiter that spaces out quote requests, blocking when the window is full.

    :param requests_per_window: Max number of requests allowed in the window
    :param window_seconds: Time window in seconds
    :return: Configured Limiter
    """
    rate: RequestRate = RequestRate(
        limit=requests_per_window, interval=Duration.SECOND * window_seconds
    )
    return Limiter(rate)


def configure_yfinance_cache(cache_path: str | Path) -> None:
    """Point yfinance's on-disk timezone cache at a writable location."""
    cache_dir = Path(cache_path)
    cache_dir.mkdir(parents=True, exist_ok=True)
    yf.set_tz_cache_location(str(cache_dir))
    logger.debug(f"yfinance cache location set to {cache_dir}")
