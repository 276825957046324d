import logging
from datetime import date

from portfolio_tracker import ledger
from portfolio_tracker.db import Database
from portfolio_tracker.exceptions import InvalidStateError, NotFoundError
from portfolio_tracker.models import (
    Dividend,
    DividendType,
    Fund,
    PortfolioFund,
    ReinvestmentStatus,
    Transaction,
    TransactionType,
)
from portfolio_tracker.repositories.dividend_repository import DividendRepository
from portfolio_tracker.repositories.fund_repository import FundRepository
from portfolio_tracker.repositories.materialized_repository import MaterializedRepository
from portfolio_tracker.repositories.portfolio_repository import PortfolioRepository
from portfolio_tracker.repositories.transaction_repository import TransactionRepository

logger = logging.getLogger(__name__)


def _has_reinvestment_data(shares: float | None, price: float | None) -> bool:
    return shares is not None and price is not None and shares > 0 and price > 0


def classify_reinvestment(
    dividend_type: DividendType,
    total_amount: float,
    buy_order_date: date | None,
    reinvestment_shares: float | None,
    reinvestment_price: float | None,
) -> ReinvestmentStatus:
    """
    Decide how far a dividend has been reinvested.

    Cash dividends are complete as soon as they are paid. Stock dividends stay
    pending until a buy order with execution details exists, and are partial
    while the reinvested amount is below the dividend amount (compared in cents).

    Raises:
        InvalidStateError: If the fund does not pay dividends
    """
    if dividend_type == DividendType.NONE:
        raise InvalidStateError("Fund does not pay dividends")
    if dividend_type != DividendType.STOCK:
        return ReinvestmentStatus.COMPLETED
    if buy_order_date is None:
        return ReinvestmentStatus.PENDING
    if not _has_reinvestment_data(reinvestment_shares, reinvestment_price):
        return ReinvestmentStatus.PENDING

    reinvested = round(reinvestment_shares * reinvestment_price, 2)
    if reinvested >= round(total_amount, 2):
        return ReinvestmentStatus.COMPLETED
    return ReinvestmentStatus.PARTIAL


class DividendService:
    """Service for recording dividends and their reinvestment."""

    def __init__(
        self,
        db: Database,
        fund_repo: FundRepository,
        portfolio_repo: PortfolioRepository,
        transaction_repo: TransactionRepository,
        dividend_repo: DividendRepository,
        materialized_repo: MaterializedRepository,
    ):
        self.db = db
        self.fund_repo = fund_repo
        self.portfolio_repo = portfolio_repo
        self.transaction_repo = transaction_repo
        self.dividend_repo = dividend_repo
        self.materialized_repo = materialized_repo

    def classify_dividend(
        self, dividend: Dividend, fund: Fund
    ) -> tuple[ReinvestmentStatus, Transaction | None]:
        """
        Classify a dividend and build the reinvestment transaction it implies.

        Args:
            dividend: Dividend with its (optional) reinvestment fields filled in
            fund: Fund paying the dividend

        Returns:
            The reinvestment status, and a dividend-reinvestment Transaction for
            stock dividends that are partially or fully reinvested
        """
        status: ReinvestmentStatus = classify_reinvestment(
            fund.dividend_type,
            dividend.total_amount,
            dividend.buy_order_date,
            dividend.reinvestment_shares,
            dividend.reinvestment_price,
        )
        if fund.dividend_type != DividendType.STOCK or status == ReinvestmentStatus.PENDING:
            return status, None

        transaction = Transaction(
            id=None,
            portfolio_fund_id=dividend.portfolio_fund_id,
            date=dividend.buy_order_date,
            type=TransactionType.DIVIDEND_REINVESTMENT,
            shares=dividend.reinvestment_shares,
            cost_per_share=dividend.reinvestment_price,
        )
        return status, transaction

    def _get_holding_and_fund(self, portfolio_fund_id: str) -> tuple[PortfolioFund, Fund]:
        holding: PortfolioFund | None = self.portfolio_repo.get_portfolio_fund(portfolio_fund_id)
        if not holding:
            raise NotFoundError(f"Portfolio fund {portfolio_fund_id} not found")
        fund: Fund | None = self.fund_repo.get_by_id(holding.fund_id)
        if not fund:
            raise NotFoundError(f"Fund {holding.fund_id} not found")
        return holding, fund

    def create_dividend(
        self,
        portfolio_fund_id: str,
        record_date: date,
        ex_dividend_date: date,
        dividend_per_share: float,
        buy_order_date: date | None = None,
        reinvestment_shares: float | None = None,
        reinvestment_price: float | None = None,
    ) -> Dividend:
        """
        Record a dividend for a holding.

        Shares owned are taken from the holding's transactions up to the
        ex-dividend date. A reinvestment transaction is stored alongside the
        dividend when the reinvestment is partially or fully executed.

        Raises:
            NotFoundError: If the holding or its fund does not exist
            InvalidStateError: If the fund pays no dividends, or the dividend is already recorded
        """
        holding, fund = self._get_holding_and_fund(portfolio_fund_id)
        if fund.dividend_type == DividendType.NONE:
            raise InvalidStateError(f"Fund {fund.name} does not pay dividends")
        if self.dividend_repo.get_by_ex_dividend_date(portfolio_fund_id, ex_dividend_date):
            raise InvalidStateError(
                f"Dividend for holding {portfolio_fund_id} on {ex_dividend_date} already recorded"
            )

        transactions: list[Transaction] = self.transaction_repo.get_for_portfolio_fund(
            portfolio_fund_id, ex_dividend_date
        )
        shares_owned: float = ledger.shares_held(transactions, ex_dividend_date)

        dividend = Dividend(
            id=None,
            fund_id=fund.id,
            portfolio_fund_id=portfolio_fund_id,
            record_date=record_date,
            ex_dividend_date=ex_dividend_date,
            dividend_per_share=dividend_per_share,
            shares_owned=shares_owned,
            total_amount=shares_owned * dividend_per_share,
            buy_order_date=buy_order_date,
            reinvestment_shares=reinvestment_shares,
            reinvestment_price=reinvestment_price,
        )
        status, reinvestment = self.classify_dividend(dividend, fund)
        dividend.reinvestment_status = status

        with self.db.transaction():
            if reinvestment is not None:
                dividend.reinvestment_transaction_id = self.transaction_repo.insert(reinvestment)
            _ = self.dividend_repo.insert(dividend)
            self.materialized_repo.invalidate_from(
                [portfolio_fund_id], min(ex_dividend_date, buy_order_date or ex_dividend_date)
            )

        logger.info(
            f"Recorded dividend of {dividend.total_amount:.2f} for {fund.name} "
            f"(ex-date {ex_dividend_date}, status {status})"
        )
        return dividend

    def record_reinvestment_fulfillment(
        self,
        dividend_id: str,
        buy_order_date: date | None = None,
        reinvestment_shares: float | None = None,
        reinvestment_price: float | None = None,
    ) -> Dividend:
        """
        Apply reinvestment details that arrived after the dividend was recorded.

        Shares owned and the dividend amount are recomputed from the holding's
        transactions at the ex-dividend date, supplied fields replace the stored
        ones, the dividend is classified again, and the linked reinvestment
        transaction is created or updated. A dividend that is already complete
        stays complete when no new details are given.

        Raises:
            NotFoundError: If the dividend, its holding or its fund does not exist
            InvalidStateError: If the changed reinvestment would leave a later sale short
        """
        dividend: Dividend | None = self.dividend_repo.get_by_id(dividend_id)
        if not dividend:
            raise NotFoundError(f"Dividend {dividend_id} not found")
        _, fund = self._get_holding_and_fund(dividend.portfolio_fund_id)

        transactions: list[Transaction] = self.transaction_repo.get_for_portfolio_fund(
            dividend.portfolio_fund_id
        )
        previous_total: float = dividend.total_amount
        owned_before: list[Transaction] = [
            t for t in transactions if t.id != dividend.reinvestment_transaction_id
        ]
        dividend.shares_owned = ledger.shares_held(owned_before, dividend.ex_dividend_date)
        dividend.total_amount = dividend.shares_owned * dividend.dividend_per_share
        total_changed: bool = round(dividend.total_amount, 2) != round(previous_total, 2)

        has_new_details = any(
            value is not None for value in (buy_order_date, reinvestment_shares, reinvestment_price)
        )
        if not has_new_details and dividend.reinvestment_status == ReinvestmentStatus.COMPLETED:
            if total_changed:
                with self.db.transaction():
                    self.dividend_repo.update_reinvestment(dividend)
                    self.materialized_repo.invalidate_from(
                        [dividend.portfolio_fund_id], dividend.ex_dividend_date
                    )
            logger.debug(f"Dividend {dividend_id} already completed; nothing to update")
            return dividend

        if buy_order_date is not None:
            dividend.buy_order_date = buy_order_date
        if reinvestment_shares is not None:
            dividend.reinvestment_shares = reinvestment_shares
        if reinvestment_price is not None:
            dividend.reinvestment_price = reinvestment_price

        status, reinvestment = self.classify_dividend(dividend, fund)
        previous_status = dividend.reinvestment_status
        dividend.reinvestment_status = status

        existing: Transaction | None = None
        if reinvestment is not None and dividend.reinvestment_transaction_id:
            existing = self.transaction_repo.get_by_id(dividend.reinvestment_transaction_id)
            if existing is not None:
                reinvestment.id = existing.id
                try:
                    _ = ledger.replay(ledger.merge_transaction(transactions, reinvestment))
                except InvalidStateError as e:
                    raise InvalidStateError(
                        f"Reinvesting {reinvestment.shares} shares for dividend {dividend_id} "
                        f"leaves a later sale short: {e}"
                    ) from e

        invalid_from: date | None = dividend.ex_dividend_date if total_changed else None
        with self.db.transaction():
            if reinvestment is not None:
                invalid_from = min(invalid_from or reinvestment.date, reinvestment.date)
                if existing is not None:
                    invalid_from = min(invalid_from, existing.date)
                    self.transaction_repo.update(reinvestment)
                else:
                    dividend.reinvestment_transaction_id = self.transaction_repo.insert(reinvestment)
            if invalid_from is not None:
                self.materialized_repo.invalidate_from([dividend.portfolio_fund_id], invalid_from)
            self.dividend_repo.update_reinvestment(dividend)

        logger.info(f"Dividend {dividend_id} reinvestment status {previous_status} -> {status}")
        return dividend
