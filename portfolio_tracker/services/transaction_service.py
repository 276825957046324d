import logging
from datetime import date

from portfolio_tracker import ledger
from portfolio_tracker.db import Database
from portfolio_tracker.exceptions import InvalidStateError, NotFoundError
from portfolio_tracker.ledger import HoldingState, LedgerResult, SaleResult
from portfolio_tracker.models import PortfolioFund, RealizedGainLoss, Transaction, TransactionType
from portfolio_tracker.repositories.materialized_repository import MaterializedRepository
from portfolio_tracker.repositories.portfolio_repository import PortfolioRepository
from portfolio_tracker.repositories.realized_gain_loss_repository import (
    RealizedGainLossRepository,
)
from portfolio_tracker.repositories.transaction_repository import TransactionRepository

logger = logging.getLogger(__name__)


class TransactionService:
    """Records buys, sells and reinvestments against a holding."""

    def __init__(
        self,
        db: Database,
        portfolio_repo: PortfolioRepository,
        transaction_repo: TransactionRepository,
        realized_repo: RealizedGainLossRepository,
        materialized_repo: MaterializedRepository,
    ):
        self.db = db
        self.portfolio_repo = portfolio_repo
        self.transaction_repo = transaction_repo
        self.realized_repo = realized_repo
        self.materialized_repo = materialized_repo

    def _get_holding(self, portfolio_fund_id: str) -> PortfolioFund:
        holding: PortfolioFund | None = self.portfolio_repo.get_portfolio_fund(portfolio_fund_id)
        if not holding:
            raise NotFoundError(f"Portfolio fund {portfolio_fund_id} not found")
        return holding

    def _check_sell(self, transaction: Transaction) -> SaleResult:
        """
        Replay the whole holding with the sell in place.

        Later sells are replayed too, so a back-dated sell cannot leave one of
        them selling more shares than are held.
        """
        history: list[Transaction] = self.transaction_repo.get_for_portfolio_fund(
            transaction.portfolio_fund_id
        )
        merged: list[Transaction] = ledger.merge_transaction(history, transaction)
        # Raises InvalidStateError when the sell itself exceeds the shares held
        result: LedgerResult = ledger.replay(merged, transaction.date)
        sale: SaleResult = next(s for s in result.sales if s.transaction is transaction)
        try:
            _ = ledger.replay(merged)
        except InvalidStateError as e:
            raise InvalidStateError(
                f"Selling {transaction.shares} shares on {transaction.date} "
                f"leaves a later sale short: {e}"
            ) from e
        return sale

    def record_transaction(
        self,
        portfolio_fund_id: str,
        transaction_date: date,
        transaction_type: TransactionType | str,
        shares: float,
        cost_per_share: float,
    ) -> tuple[Transaction, RealizedGainLoss | None]:
        """
        Store a transaction and, for sells, the gain or loss it realizes.

        Args:
            portfolio_fund_id: Holding the transaction belongs to
            transaction_date: Trade date
            transaction_type: buy, sell or dividend-reinvestment
            shares: Number of shares, must be positive
            cost_per_share: Price per share, must not be negative

        Returns:
            The stored transaction and the realized gain/loss record for sells

        Raises:
            NotFoundError: If the holding does not exist
            InvalidStateError: For non-positive shares, negative prices, or selling
                more shares than are held on the trade date
        """
        holding: PortfolioFund = self._get_holding(portfolio_fund_id)
        transaction_type = TransactionType(transaction_type)
        if shares <= 0:
            raise InvalidStateError(f"Shares must be positive, got {shares}")
        if cost_per_share < 0:
            raise InvalidStateError(f"Cost per share cannot be negative, got {cost_per_share}")

        transaction = Transaction(
            id=None,
            portfolio_fund_id=portfolio_fund_id,
            date=transaction_date,
            type=transaction_type,
            shares=shares,
            cost_per_share=cost_per_share,
        )

        sale: SaleResult | None = None
        if transaction_type == TransactionType.SELL:
            sale = self._check_sell(transaction)

        realized: RealizedGainLoss | None = None
        with self.db.transaction():
            transaction_id: str = self.transaction_repo.insert(transaction)
            if sale is not None:
                realized = RealizedGainLoss(
                    id=None,
                    portfolio_id=holding.portfolio_id,
                    fund_id=holding.fund_id,
                    transaction_id=transaction_id,
                    transaction_date=transaction_date,
                    shares_sold=sale.shares_sold,
                    cost_basis=sale.cost_basis,
                    sale_proceeds=sale.sale_proceeds,
                    realized_gain_loss=sale.realized_gain_loss,
                )
                _ = self.realized_repo.insert(realized)
            self.materialized_repo.invalidate_from([portfolio_fund_id], transaction_date)

        logger.info(
            f"Recorded {transaction_type} of {shares} shares @ {cost_per_share} "
            f"for holding {portfolio_fund_id} on {transaction_date}"
        )
        return transaction, realized

    def get_holding_state(self, portfolio_fund_id: str, as_of: date) -> HoldingState:
        """Shares held and cost basis of a holding at the end of `as_of`."""
        _ = self._get_holding(portfolio_fund_id)
        transactions: list[Transaction] = self.transaction_repo.get_for_portfolio_fund(
            portfolio_fund_id, as_of
        )
        result: LedgerResult = ledger.replay(transactions, as_of)
        return result.state
