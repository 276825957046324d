"""
Daily valuation history for funds and portfolios.

History is served from the materialized cache when the cache covers every
holding for every day of the requested range; otherwise it is recomputed by
replaying the ledger against stored prices and, optionally, written back.
"""

from collections import defaultdict
from datetime import date
import logging

import pandas as pd

from portfolio_tracker import ledger
from portfolio_tracker.exceptions import NotFoundError
from portfolio_tracker.ledger import HoldingState
from portfolio_tracker.models import (
    Dividend,
    Fund,
    FundHistoryEntry,
    FundHistoryPoint,
    FundPrice,
    MaterializedHistoryRow,
    Portfolio,
    PortfolioFund,
    PortfolioFundHistory,
    PortfolioHistory,
    PortfolioSummary,
    RealizedGainLoss,
    Transaction,
)
from portfolio_tracker.repositories.dividend_repository import DividendRepository
from portfolio_tracker.repositories.fund_price_repository import FundPriceRepository
from portfolio_tracker.repositories.fund_repository import FundRepository
from portfolio_tracker.repositories.materialized_repository import MaterializedRepository
from portfolio_tracker.repositories.portfolio_repository import PortfolioRepository
from portfolio_tracker.repositories.realized_gain_loss_repository import (
    RealizedGainLossRepository,
)
from portfolio_tracker.repositories.transaction_repository import TransactionRepository
from portfolio_tracker.utils.date_utils import days_between, today_utc

logger = logging.getLogger(__name__)

MONEY_PRECISION = 2


def _money(value: float) -> float:
    return round(value, MONEY_PRECISION)


def build_price_table(prices: list[FundPrice], days: pd.DatetimeIndex) -> dict[str, list[float]]:
    """
    Price of each fund on each day, carrying the last known price forward.

    Days before a fund's first price get 0.0.
    """
    by_fund: dict[str, list[FundPrice]] = defaultdict(list)
    for price in prices:
        by_fund[price.fund_id].append(price)

    table: dict[str, list[float]] = {}
    for fund_id, fund_prices in by_fund.items():
        series = pd.Series(
            [p.price for p in fund_prices],
            index=pd.to_datetime([p.date for p in fund_prices]),
            dtype="float64",
        )
        series = series[~series.index.duplicated(keep="last")].sort_index()
        table[fund_id] = series.reindex(days, method="ffill").fillna(0.0).tolist()
    return table


class ValuationService:
    """Produces daily value, cost and gain series for funds and portfolios."""

    def __init__(
        self,
        fund_repo: FundRepository,
        portfolio_repo: PortfolioRepository,
        transaction_repo: TransactionRepository,
        dividend_repo: DividendRepository,
        realized_repo: RealizedGainLossRepository,
        price_repo: FundPriceRepository,
        materialized_repo: MaterializedRepository,
        materialize_on_read: bool = True,
    ):
        self.fund_repo = fund_repo
        self.portfolio_repo = portfolio_repo
        self.transaction_repo = transaction_repo
        self.dividend_repo = dividend_repo
        self.realized_repo = realized_repo
        self.price_repo = price_repo
        self.materialized_repo = materialized_repo
        self.materialize_on_read = materialize_on_read

    def get_fund_history(
        self, fund_id: str, start_date: date, end_date: date, portfolio_id: str | None = None
    ) -> list[FundHistoryPoint]:
        """
        Daily valuation of one fund, summed over every portfolio holding it.

        Args:
            fund_id: Fund to value
            start_date: First day of the range
            end_date: Last day of the range (clipped to today)
            portfolio_id: Only include the holding in this portfolio

        Returns:
            One point per day in ascending order; empty if the fund has no transactions

        Raises:
            NotFoundError: If the fund does not exist
        """
        if not self.fund_repo.get_by_id(fund_id):
            raise NotFoundError(f"Fund {fund_id} not found")

        holdings: list[PortfolioFund] = self.portfolio_repo.get_portfolio_funds_for_fund(fund_id)
        if portfolio_id is not None:
            holdings = [pf for pf in holdings if pf.portfolio_id == portfolio_id]

        history: list[FundHistoryPoint] = []
        for day, rows in self._load_rows(holdings, start_date, end_date).items():
            value = sum(row.value for row in rows)
            cost = sum(row.cost for row in rows)
            realized = sum(row.realized_gain for row in rows)
            unrealized = sum(row.unrealized_gain for row in rows)
            history.append(
                FundHistoryPoint(
                    date=day,
                    fund_id=fund_id,
                    shares=sum(row.shares for row in rows),
                    price=max(row.price for row in rows),
                    value=_money(value),
                    cost=_money(cost),
                    dividends=_money(sum(row.dividends for row in rows)),
                    realized_gain=_money(realized),
                    unrealized_gain=_money(unrealized),
                    total_gain_loss=_money(realized + unrealized),
                )
            )
        return history

    def get_portfolio_history(
        self, start_date: date, end_date: date, portfolio_id: str | None = None
    ) -> list[PortfolioHistory]:
        """
        Daily summaries of one portfolio, or of every active portfolio.

        A portfolio only appears from the day of its first transaction.

        Raises:
            NotFoundError: If `portfolio_id` is given and does not exist
        """
        portfolios: list[Portfolio] = self._portfolios_in_scope(portfolio_id)
        holdings: list[PortfolioFund] = self.portfolio_repo.get_portfolio_funds(
            [p.id for p in portfolios if p.id]
        )
        rows_by_date = self._load_rows(holdings, start_date, end_date)
        if not rows_by_date:
            return []

        holdings_by_portfolio: dict[str, set[str]] = defaultdict(set)
        for pf in holdings:
            holdings_by_portfolio[pf.portfolio_id].add(pf.id)
        first_trade: dict[str, date | None] = {
            p.id: self.transaction_repo.get_oldest_date(list(holdings_by_portfolio[p.id]))
            for p in portfolios
        }

        history: list[PortfolioHistory] = []
        for day, rows in rows_by_date.items():
            entry = PortfolioHistory(date=day)
            for portfolio in portfolios:
                started: date | None = first_trade.get(portfolio.id)
                if started is None or started > day:
                    continue
                pf_ids = holdings_by_portfolio[portfolio.id]
                entry.portfolios.append(
                    self._summarize(portfolio, [r for r in rows if r.portfolio_fund_id in pf_ids])
                )
            if entry.portfolios:
                history.append(entry)
        return history

    def get_portfolio_fund_history(
        self, portfolio_id: str, start_date: date, end_date: date
    ) -> list[PortfolioFundHistory]:
        """Daily per-fund breakdown of a single portfolio."""
        portfolio: Portfolio | None = self.portfolio_repo.get_by_id(portfolio_id)
        if not portfolio:
            raise NotFoundError(f"Portfolio {portfolio_id} not found")

        holdings: list[PortfolioFund] = self.portfolio_repo.get_portfolio_funds([portfolio_id])
        funds: dict[str, Fund] = self.fund_repo.get_by_ids(list({pf.fund_id for pf in holdings}))

        history: list[PortfolioFundHistory] = []
        for day, rows in self._load_rows(holdings, start_date, end_date).items():
            entry = PortfolioFundHistory(date=day)
            for row in rows:
                fund: Fund | None = funds.get(row.fund_id)
                entry.funds.append(
                    FundHistoryEntry(
                        portfolio_fund_id=row.portfolio_fund_id,
                        fund_id=row.fund_id,
                        fund_name=fund.name if fund else row.fund_id,
                        shares=row.shares,
                        price=row.price,
                        value=_money(row.value),
                        cost=_money(row.cost),
                        dividends=_money(row.dividends),
                        realized_gain=_money(row.realized_gain),
                        unrealized_gain=_money(row.unrealized_gain),
                        total_gain_loss=_money(row.realized_gain + row.unrealized_gain),
                    )
                )
            history.append(entry)
        return history

    def rebuild(self, portfolio_id: str | None = None) -> int:
        """
        Recompute and store the cache for every holding from its first transaction to today.

        Returns:
            Number of rows written
        """
        if portfolio_id is None:
            portfolios = self.portfolio_repo.get_portfolios(
                include_archived=True, include_excluded=True
            )
        else:
            portfolios = self._portfolios_in_scope(portfolio_id)
        holdings: list[PortfolioFund] = self.portfolio_repo.get_portfolio_funds(
            [p.id for p in portfolios if p.id]
        )
        oldest: date | None = self.transaction_repo.get_oldest_date([pf.id for pf in holdings])
        if oldest is None:
            logger.info("Nothing to materialize: no transactions in scope")
            return 0

        rows = self.compute_rows(holdings, oldest, today_utc())
        written: int = self.materialized_repo.upsert_rows(rows)
        logger.info(f"Materialized {written} rows for {len(holdings)} holdings from {oldest}")
        return written

    def _portfolios_in_scope(self, portfolio_id: str | None) -> list[Portfolio]:
        if portfolio_id is None:
            return self.portfolio_repo.get_portfolios()
        portfolio: Portfolio | None = self.portfolio_repo.get_by_id(portfolio_id)
        if not portfolio:
            raise NotFoundError(f"Portfolio {portfolio_id} not found")
        return [portfolio]

    def _is_covered(self, pf_ids: list[str], start_date: date, end_date: date) -> bool:
        expected: int = len(pf_ids) * days_between(start_date, end_date)
        return self.materialized_repo.count_rows(pf_ids, start_date, end_date) == expected

    def _load_rows(
        self, holdings: list[PortfolioFund], start_date: date, end_date: date
    ) -> dict[date, list[MaterializedHistoryRow]]:
        """Holding rows per day for the clipped range, from cache or recomputed."""
        pf_ids: list[str] = [pf.id for pf in holdings if pf.id]
        if not pf_ids:
            return {}

        oldest: date | None = self.transaction_repo.get_oldest_date(pf_ids)
        if oldest is None:
            return {}
        first: date = max(start_date, oldest)
        last: date = min(end_date, today_utc())
        if first > last:
            return {}

        if self._is_covered(pf_ids, first, last):
            logger.debug(f"Serving {first} to {last} from materialized history")
            rows = self.materialized_repo.get_rows(pf_ids, first, last)
        else:
            logger.debug(f"Materialized history incomplete for {first} to {last}; recomputing")
            rows = self.compute_rows(holdings, first, last)
            if self.materialize_on_read:
                self._write_through(rows)

        rows_by_date: dict[date, list[MaterializedHistoryRow]] = defaultdict(list)
        for row in rows:
            rows_by_date[row.date].append(row)
        return dict(sorted(rows_by_date.items()))

    def _write_through(self, rows: list[MaterializedHistoryRow]) -> None:
        try:
            _ = self.materialized_repo.upsert_rows(rows)
        except Exception as e:
            logger.warning(f"Failed to store materialized history, serving computed rows: {e}")

    def compute_rows(
        self, holdings: list[PortfolioFund], start_date: date, end_date: date
    ) -> list[MaterializedHistoryRow]:
        """
        Replay every holding day by day over the inclusive range.

        Transactions before `start_date` are folded into the first day's state.
        Missing prices fall back to the most recent earlier price; a holding
        with no price at all is valued at 0.
        """
        pf_ids: list[str] = [pf.id for pf in holdings if pf.id]
        transactions: dict[str, list[Transaction]] = defaultdict(list)
        for txn in self.transaction_repo.get_for_portfolio_funds(pf_ids, end_date):
            transactions[txn.portfolio_fund_id].append(txn)

        dividends: dict[str, list[Dividend]] = defaultdict(list)
        for dividend in self.dividend_repo.get_for_portfolio_funds(pf_ids):
            dividends[dividend.portfolio_fund_id].append(dividend)

        # Realized records carry (portfolio, fund), which identifies a single holding
        holding_key: dict[tuple[str, str], str] = {
            (pf.portfolio_id, pf.fund_id): pf.id for pf in holdings
        }
        realized: dict[str, list[RealizedGainLoss]] = defaultdict(list)
        for record in self.realized_repo.get_for_portfolios(list({pf.portfolio_id for pf in holdings})):
            pf_id = holding_key.get((record.portfolio_id, record.fund_id))
            if pf_id is not None:
                realized[pf_id].append(record)

        days = pd.date_range(start_date, end_date, freq="D")
        prices: dict[str, list[float]] = build_price_table(
            self.price_repo.get_range(list({pf.fund_id for pf in holdings}), None, end_date), days
        )

        rows: list[MaterializedHistoryRow] = []
        for pf in holdings:
            rows.extend(
                self._replay_holding(
                    pf,
                    days,
                    transactions[pf.id],
                    sorted(dividends[pf.id], key=lambda d: d.ex_dividend_date),
                    sorted(realized[pf.id], key=lambda r: r.transaction_date),
                    prices.get(pf.fund_id, [0.0] * len(days)),
                )
            )
        logger.debug(f"Computed {len(rows)} history rows for {len(holdings)} holdings")
        return rows

    @staticmethod
    def _replay_holding(
        pf: PortfolioFund,
        days: pd.DatetimeIndex,
        transactions: list[Transaction],
        dividends: list[Dividend],
        realized: list[RealizedGainLoss],
        prices: list[float],
    ) -> list[MaterializedHistoryRow]:
        state = HoldingState()
        txn_idx = div_idx = rgl_idx = 0
        dividend_total = realized_total = 0.0
        rows: list[MaterializedHistoryRow] = []

        for i, timestamp in enumerate(days):
            day: date = timestamp.date()
            while txn_idx < len(transactions) and transactions[txn_idx].date <= day:
                state, _ = ledger.apply_transaction(state, transactions[txn_idx])
                txn_idx += 1
            while div_idx < len(dividends) and dividends[div_idx].ex_dividend_date <= day:
                dividend_total += dividends[div_idx].total_amount
                div_idx += 1
            while rgl_idx < len(realized) and realized[rgl_idx].transaction_date <= day:
                realized_total += realized[rgl_idx].realized_gain_loss
                rgl_idx += 1

            price: float = prices[i]
            value: float = state.market_value(price) if price > 0 else 0.0
            rows.append(
                MaterializedHistoryRow(
                    portfolio_fund_id=pf.id,
                    fund_id=pf.fund_id,
                    date=day,
                    shares=state.shares,
                    price=price,
                    value=value,
                    cost=state.cost_basis,
                    dividends=dividend_total,
                    realized_gain=realized_total,
                    unrealized_gain=value - state.cost_basis,
                )
            )
        return rows

    @staticmethod
    def _summarize(portfolio: Portfolio, rows: list[MaterializedHistoryRow]) -> PortfolioSummary:
        realized = sum(row.realized_gain for row in rows)
        unrealized = sum(row.unrealized_gain for row in rows)
        return PortfolioSummary(
            portfolio_id=portfolio.id,
            name=portfolio.name,
            description=portfolio.description,
            total_value=_money(sum(row.value for row in rows)),
            total_cost=_money(sum(row.cost for row in rows)),
            total_dividends=_money(sum(row.dividends for row in rows)),
            total_unrealized_gain_loss=_money(unrealized),
            total_realized_gain_loss=_money(realized),
            total_gain_loss=_money(realized + unrealized),
            is_archived=portfolio.is_archived,
        )
