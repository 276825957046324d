"""
Service container for dependency injection.

Repositories share the container's database connection; services are built on
first use from those repositories, so a command that never fetches prices
never configures the yfinance cache or rate limiter.
"""

import logging
from collections.abc import Callable
from typing import TypeVar, cast

from portfolio_tracker.config import AppConfig
from portfolio_tracker.db import Database
from portfolio_tracker.repositories.dividend_repository import DividendRepository
from portfolio_tracker.repositories.fund_price_repository import FundPriceRepository
from portfolio_tracker.repositories.fund_repository import FundRepository
from portfolio_tracker.repositories.materialized_repository import MaterializedRepository
from portfolio_tracker.repositories.portfolio_repository import PortfolioRepository
from portfolio_tracker.repositories.realized_gain_loss_repository import (
    RealizedGainLossRepository,
)
from portfolio_tracker.repositories.transaction_repository import TransactionRepository
from portfolio_tracker.services.dividend_service import DividendService
from portfolio_tracker.services.portfolio_service import PortfolioService
from portfolio_tracker.services.price_service import PriceService
from portfolio_tracker.services.quote_service import QuoteSource, YahooQuoteSource
from portfolio_tracker.services.transaction_service import TransactionService
from portfolio_tracker.services.valuation_service import ValuationService
from portfolio_tracker.yfinance_api import configure_yfinance_cache, get_quote_limiter

logger = logging.getLogger(__name__)

T = TypeVar("T")

REPOSITORY_CLASSES: tuple[type, ...] = (
    FundRepository,
    FundPriceRepository,
    PortfolioRepository,
    TransactionRepository,
    DividendRepository,
    RealizedGainLossRepository,
    MaterializedRepository,
)


class ServiceContainer:
    """Container for application services and repositories."""

    def __init__(self, config: AppConfig, db: Database, quote_source: QuoteSource | None = None):
        """
        Initialise the service container.

        Args:
            config: Application configuration
            db: Database connection
            quote_source: Quote source to use instead of Yahoo Finance (e.g. in tests)
        """
        self.config = config
        self.db = db
        self._quote_source: QuoteSource | None = quote_source
        self._repositories: dict[type, object] = {cls: cls(db) for cls in REPOSITORY_CLASSES}
        self._services: dict[type, object] = {}
        self._factories: dict[type, Callable[[], object]] = {
            PriceService: self._create_price_service,
            TransactionService: self._create_transaction_service,
            DividendService: self._create_dividend_service,
            ValuationService: self._create_valuation_service,
            PortfolioService: self._create_portfolio_service,
        }

    @property
    def quote_source(self) -> QuoteSource:
        if self._quote_source is None:
            self._quote_source = self._create_quote_source()
        return self._quote_source

    def _create_quote_source(self) -> QuoteSource:
        configure_yfinance_cache(self.config.yf_cache_path)
        limiter = get_quote_limiter(
            requests_per_window=self.config.yf_max_requests,
            window_seconds=self.config.yf_request_interval_seconds,
        )
        logger.debug(
            f"Yahoo Finance limited to {self.config.yf_max_requests} requests "
            f"per {self.config.yf_request_interval_seconds}s"
        )
        return YahooQuoteSource(limiter)

    def _create_price_service(self) -> PriceService:
        return PriceService(
            self.get_repository(FundRepository),
            self.get_repository(FundPriceRepository),
            self.get_repository(PortfolioRepository),
            self.get_repository(TransactionRepository),
            self.get_repository(MaterializedRepository),
            self.quote_source,
        )

    def _create_transaction_service(self) -> TransactionService:
        return TransactionService(
            self.db,
            self.get_repository(PortfolioRepository),
            self.get_repository(TransactionRepository),
            self.get_repository(RealizedGainLossRepository),
            self.get_repository(MaterializedRepository),
        )

    def _create_dividend_service(self) -> DividendService:
        return DividendService(
            self.db,
            self.get_repository(FundRepository),
            self.get_repository(PortfolioRepository),
            self.get_repository(TransactionRepository),
            self.get_repository(DividendRepository),
            self.get_repository(MaterializedRepository),
        )

    def _create_valuation_service(self) -> ValuationService:
        return ValuationService(
            self.get_repository(FundRepository),
            self.get_repository(PortfolioRepository),
            self.get_repository(TransactionRepository),
            self.get_repository(DividendRepository),
            self.get_repository(RealizedGainLossRepository),
            self.get_repository(FundPriceRepository),
            self.get_repository(MaterializedRepository),
            materialize_on_read=self.config.materialize_on_read,
        )

    def _create_portfolio_service(self) -> PortfolioService:
        return PortfolioService(
            self.get_repository(FundRepository),
            self.get_repository(PortfolioRepository),
            self.get_repository(TransactionRepository),
            self.get_repository(DividendRepository),
            self.get_repository(RealizedGainLossRepository),
            self.get_repository(FundPriceRepository),
        )

    def get_repository(self, repo_type: type[T]) -> T:
        """
        Get a repository instance by type.

        Raises:
            KeyError: If repository type is not registered
        """
        if repo_type not in self._repositories:
            raise KeyError(f"Repository {repo_type.__name__} not registered")
        return cast(T, self._repositories[repo_type])

    def get_service(self, service_type: type[T]) -> T:
        """
        Get a service instance by type, creating it on first request.

        Raises:
            KeyError: If service type is not registered
        """
        if service_type not in self._services:
            factory: Callable[[], object] | None = self._factories.get(service_type)
            if factory is None:
                raise KeyError(f"Service {service_type.__name__} not registered")
            self._services[service_type] = factory()
        return cast(T, self._services[service_type])
