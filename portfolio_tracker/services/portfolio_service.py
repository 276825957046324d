from collections import defaultdict
from datetime import date
import logging

from portfolio_tracker import ledger
from portfolio_tracker.exceptions import NotFoundError
from portfolio_tracker.ledger import HoldingState
from portfolio_tracker.models import (
    Fund,
    FundPrice,
    Portfolio,
    PortfolioFund,
    PortfolioFundMetrics,
    PortfolioSummary,
    Transaction,
)
from portfolio_tracker.repositories.dividend_repository import DividendRepository
from portfolio_tracker.repositories.fund_price_repository import FundPriceRepository
from portfolio_tracker.repositories.fund_repository import FundRepository
from portfolio_tracker.repositories.portfolio_repository import PortfolioRepository
from portfolio_tracker.repositories.realized_gain_loss_repository import (
    RealizedGainLossRepository,
)
from portfolio_tracker.repositories.transaction_repository import TransactionRepository
from portfolio_tracker.utils.date_utils import today_utc

logger = logging.getLogger(__name__)


class PortfolioService:
    """Service for portfolio-level positions and totals at a single point in time."""

    def __init__(
        self,
        fund_repo: FundRepository,
        portfolio_repo: PortfolioRepository,
        transaction_repo: TransactionRepository,
        dividend_repo: DividendRepository,
        realized_repo: RealizedGainLossRepository,
        price_repo: FundPriceRepository,
    ):
        self.fund_repo = fund_repo
        self.portfolio_repo = portfolio_repo
        self.transaction_repo = transaction_repo
        self.dividend_repo = dividend_repo
        self.realized_repo = realized_repo
        self.price_repo = price_repo

    def get_portfolio_summary(self, as_of: date | None = None) -> list[PortfolioSummary]:
        """
        Totals for every active portfolio.

        Args:
            as_of: Valuation date (default today); prices are the latest on or before it

        Returns:
            One summary per portfolio that is neither archived nor excluded from the overview
        """
        as_of = as_of or today_utc()
        summaries: list[PortfolioSummary] = []
        for portfolio in self.portfolio_repo.get_portfolios():
            metrics = self._calculate_fund_metrics(portfolio, as_of)
            summaries.append(self._summarize(portfolio, metrics))
        logger.debug(f"Calculated summary for {len(summaries)} portfolios as of {as_of}")
        return summaries

    def get_portfolio_funds(
        self, portfolio_id: str, as_of: date | None = None
    ) -> list[PortfolioFundMetrics]:
        """Per-fund position of a single portfolio (archived or not)."""
        portfolio: Portfolio | None = self.portfolio_repo.get_by_id(portfolio_id)
        if not portfolio:
            raise NotFoundError(f"Portfolio {portfolio_id} not found")
        return self._calculate_fund_metrics(portfolio, as_of or today_utc())

    def _calculate_fund_metrics(
        self, portfolio: Portfolio, as_of: date
    ) -> list[PortfolioFundMetrics]:
        holdings: list[PortfolioFund] = self.portfolio_repo.get_portfolio_funds([portfolio.id])
        if not holdings:
            return []
        pf_ids: list[str] = [pf.id for pf in holdings]
        funds: dict[str, Fund] = self.fund_repo.get_by_ids([pf.fund_id for pf in holdings])

        transactions: dict[str, list[Transaction]] = defaultdict(list)
        for txn in self.transaction_repo.get_for_portfolio_funds(pf_ids, as_of):
            transactions[txn.portfolio_fund_id].append(txn)

        dividends: dict[str, float] = defaultdict(float)
        for dividend in self.dividend_repo.get_for_portfolio_funds(pf_ids):
            if dividend.ex_dividend_date <= as_of:
                dividends[dividend.portfolio_fund_id] += dividend.total_amount

        realized: dict[str, float] = defaultdict(float)
        for record in self.realized_repo.get_for_portfolios([portfolio.id]):
            if record.transaction_date <= as_of:
                realized[record.fund_id] += record.realized_gain_loss

        metrics: list[PortfolioFundMetrics] = []
        for pf in holdings:
            fund: Fund | None = funds.get(pf.fund_id)
            metrics.append(
                self._calculate_holding(
                    pf,
                    fund,
                    transactions[pf.id],
                    self.price_repo.get_latest(pf.fund_id, as_of),
                    dividends[pf.id],
                    realized[pf.fund_id],
                )
            )
        return metrics

    def _calculate_holding(
        self,
        pf: PortfolioFund,
        fund: Fund | None,
        transactions: list[Transaction],
        latest_price: FundPrice | None,
        dividends: float,
        realized: float,
    ) -> PortfolioFundMetrics:
        """Calculate the position of one holding from its transactions."""
        state: HoldingState = ledger.replay(transactions).state
        price: float = latest_price.price if latest_price else 0.0
        value: float = state.market_value(price)
        unrealized: float = value - state.cost_basis

        return PortfolioFundMetrics(
            portfolio_fund_id=pf.id,
            fund_id=pf.fund_id,
            fund_name=fund.name if fund else pf.fund_id,
            symbol=fund.symbol if fund else None,
            shares=state.shares,
            latest_price=price,
            average_cost=round(state.average_cost, 4),
            total_cost=round(state.cost_basis, 2),
            current_value=round(value, 2),
            unrealized_gain_loss=round(unrealized, 2),
            realized_gain_loss=round(realized, 2),
            total_dividends=round(dividends, 2),
            total_gain_loss=round(realized + unrealized, 2),
        )

    @staticmethod
    def _summarize(portfolio: Portfolio, metrics: list[PortfolioFundMetrics]) -> PortfolioSummary:
        realized = sum(m.realized_gain_loss for m in metrics)
        unrealized = sum(m.unrealized_gain_loss for m in metrics)
        return PortfolioSummary(
            portfolio_id=portfolio.id,
            name=portfolio.name,
            description=portfolio.description,
            total_value=round(sum(m.current_value for m in metrics), 2),
            total_cost=round(sum(m.total_cost for m in metrics), 2),
            total_dividends=round(sum(m.total_dividends for m in metrics), 2),
            total_unrealized_gain_loss=round(unrealized, 2),
            total_realized_gain_loss=round(realized, 2),
            total_gain_loss=round(realized + unrealized, 2),
            is_archived=portfolio.is_archived,
        )
