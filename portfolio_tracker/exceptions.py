"""Error kinds raised by the valuation and ingestion services."""

from typing import Any


class PortfolioTrackerError(Exception):
    """Base class for all portfolio tracker errors."""


class NotFoundError(PortfolioTrackerError):
    """A fund, portfolio, holding, dividend or symbol does not exist."""


class InvalidStateError(PortfolioTrackerError):
    """The request conflicts with stored data (e.g. selling more shares than held)."""


class ExternalSourceError(PortfolioTrackerError):
    """The quote source failed or returned no usable data."""


class PartialFailureError(PortfolioTrackerError):
    """Every item of a batch operation failed."""

    def __init__(self, message: str, summary: Any = None):
        super().__init__(message)
        self.summary = summary
