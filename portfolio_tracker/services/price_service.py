from datetime import date
import logging

import pandas as pd

from portfolio_tracker.exceptions import ExternalSourceError, NotFoundError, PortfolioTrackerError
from portfolio_tracker.models import (
    Fund,
    FundPrice,
    FundUpdateError,
    FundUpdateSummary,
    PortfolioFund,
    PriceUpdateResult,
    QuotePrice,
    UpdatedFund,
)
from portfolio_tracker.repositories.fund_price_repository import FundPriceRepository
from portfolio_tracker.repositories.fund_repository import FundRepository
from portfolio_tracker.repositories.materialized_repository import MaterializedRepository
from portfolio_tracker.repositories.portfolio_repository import PortfolioRepository
from portfolio_tracker.repositories.transaction_repository import TransactionRepository
from portfolio_tracker.services.quote_service import QuoteSource
from portfolio_tracker.utils.date_utils import yesterday_utc

logger: logging.Logger = logging.getLogger(__name__)


class PriceService:
    """Fetches and backfills daily fund prices from the quote source."""

    def __init__(
        self,
        fund_repo: FundRepository,
        price_repo: FundPriceRepository,
        portfolio_repo: PortfolioRepository,
        transaction_repo: TransactionRepository,
        materialized_repo: MaterializedRepository,
        quote_source: QuoteSource,
    ):
        self.fund_repo = fund_repo
        self.price_repo = price_repo
        self.portfolio_repo = portfolio_repo
        self.transaction_repo = transaction_repo
        self.materialized_repo = materialized_repo
        self.quote_source = quote_source

    def _get_fund_with_symbol(self, fund_id: str) -> Fund:
        fund: Fund | None = self.fund_repo.get_by_id(fund_id)
        if not fund:
            raise NotFoundError(f"Fund {fund_id} not found")
        if not fund.symbol:
            raise NotFoundError(f"Fund {fund.name} has no symbol")
        return fund

    def _invalidate_history(self, fund_id: str, from_date: date) -> None:
        holdings: list[PortfolioFund] = self.portfolio_repo.get_portfolio_funds_for_fund(fund_id)
        self.materialized_repo.invalidate_from([pf.id for pf in holdings if pf.id], from_date)

    def update_fund_price_today(self, fund_id: str) -> PriceUpdateResult:
        """
        Store yesterday's close for a fund unless it is already stored.

        Args:
            fund_id: Fund to update

        Returns:
            PriceUpdateResult with new_prices=False when the price already existed

        Raises:
            NotFoundError: If the fund does not exist or has no symbol
            ExternalSourceError: If the quote source fails or has no close for yesterday
        """
        fund: Fund = self._get_fund_with_symbol(fund_id)
        target: date = yesterday_utc()

        if self.price_repo.get_price_on(fund_id, target):
            logger.debug(f"Price for {fund.symbol} on {target} already stored")
            return PriceUpdateResult(new_prices=False)

        quotes: list[QuotePrice] = self.quote_source.get_daily_closes(fund.symbol, target, target)
        quote: QuotePrice | None = next((q for q in quotes if q.date == target), None)
        if quote is None or quote.close <= 0:
            raise ExternalSourceError(f"No close price for {fund.symbol} on {target}")

        _ = self.price_repo.insert(FundPrice(id=None, fund_id=fund_id, date=target, price=quote.close))
        self._invalidate_history(fund_id, target)
        logger.info(f"Stored {fund.symbol} close {quote.close} for {target}")
        return PriceUpdateResult(new_prices=True, prices_added=1)

    def update_fund_price_historical(self, fund_id: str) -> PriceUpdateResult:
        """
        Backfill every missing daily price between the fund's first transaction and yesterday.

        The quote source may return fewer days than requested; whatever it returns
        for a missing date is stored.

        Raises:
            NotFoundError: If the fund, its symbol, its holdings or its transactions are missing
            ExternalSourceError: If the quote source fails or returns nothing
        """
        fund: Fund = self._get_fund_with_symbol(fund_id)

        holdings: list[PortfolioFund] = self.portfolio_repo.get_portfolio_funds_for_fund(fund_id)
        if not holdings:
            raise NotFoundError(f"Fund {fund.name} is not held in any portfolio")

        oldest: date | None = self.transaction_repo.get_oldest_date([pf.id for pf in holdings if pf.id])
        if oldest is None:
            raise NotFoundError(f"Fund {fund.name} has no transactions")

        end: date = yesterday_utc()
        if oldest > end:
            return PriceUpdateResult(new_prices=False)

        existing: set[date] = self.price_repo.get_existing_dates(fund_id, oldest, end)
        missing: set[date] = {
            day for day in pd.date_range(oldest, end, freq="D").date if day not in existing
        }
        # Weekends never get a close, so they do not widen the request
        missing_weekdays: list[date] = sorted(day for day in missing if day.weekday() < 5)
        if not missing_weekdays:
            logger.debug(f"No missing prices for {fund.symbol} between {oldest} and {end}")
            return PriceUpdateResult(new_prices=False)

        first_missing, last_missing = missing_weekdays[0], missing_weekdays[-1]
        logger.info(
            f"Backfilling {len(missing_weekdays)} missing prices for {fund.symbol} "
            f"({first_missing} to {last_missing})"
        )
        quotes: list[QuotePrice] = self.quote_source.get_daily_closes(
            fund.symbol, first_missing, last_missing
        )
        if not quotes:
            raise ExternalSourceError(
                f"No price data for {fund.symbol} between {first_missing} and {last_missing}"
            )

        new_prices: list[FundPrice] = [
            FundPrice(id=None, fund_id=fund_id, date=quote.date, price=quote.close)
            for quote in quotes
            if quote.date in missing and quote.close > 0
        ]
        added: int = self.price_repo.insert_many(new_prices)
        if added:
            self._invalidate_history(fund_id, min(price.date for price in new_prices))
        logger.info(f"Added {added} prices for {fund.symbol}")
        return PriceUpdateResult(new_prices=added > 0, prices_added=added)

    def update_all_fund_history(self) -> FundUpdateSummary:
        """
        Backfill prices for every fund, one at a time.

        A failing fund is recorded in the summary and does not stop the others.

        Raises:
            NotFoundError: If there are no funds at all
        """
        funds: list[Fund] = self.fund_repo.get_all()
        if not funds:
            raise NotFoundError("No funds found")

        outcomes: list[UpdatedFund | FundUpdateError] = []
        for fund in funds:
            if not fund.id:
                continue
            try:
                result: PriceUpdateResult = self.update_fund_price_historical(fund.id)
                outcomes.append(
                    UpdatedFund(
                        fund_id=fund.id,
                        name=fund.name,
                        symbol=fund.symbol,
                        prices_added=result.prices_added,
                    )
                )
            except PortfolioTrackerError as e:
                logger.warning(f"Price backfill failed for {fund.name}: {e}")
                outcomes.append(
                    FundUpdateError(fund_id=fund.id, name=fund.name, symbol=fund.symbol, error=str(e))
                )

        summary = FundUpdateSummary.from_outcomes(outcomes)
        logger.info(
            f"Fund history update finished: {summary.total_updated} updated, "
            f"{summary.total_errors} failed"
        )
        return summary
