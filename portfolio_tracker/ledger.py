"""
Average-cost accounting for a single holding.

Everything here is a pure function of the transactions passed in: no
repository access and no logging, so replaying a holding is cheap to test.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date

from portfolio_tracker.exceptions import InvalidStateError
from portfolio_tracker.models import Transaction, TransactionType

# Share counts below this are treated as a fully closed position
SHARE_EPSILON = 1e-9


@dataclass(frozen=True)
class HoldingState:
    shares: float = 0.0
    cost_basis: float = 0.0

    @property
    def average_cost(self) -> float:
        return self.cost_basis / self.shares if self.shares > 0 else 0.0

    def market_value(self, price: float) -> float:
        return self.shares * price

    def unrealized_gain(self, price: float) -> float:
        return self.market_value(price) - self.cost_basis


@dataclass(frozen=True)
class SaleResult:
    """Cost removed from a holding by one sell, and what the sale realized."""

    transaction: Transaction
    shares_sold: float
    cost_basis: float
    sale_proceeds: float

    @property
    def realized_gain_loss(self) -> float:
        return self.sale_proceeds - self.cost_basis


@dataclass
class LedgerResult:
    state: HoldingState = field(default_factory=HoldingState)
    sales: list[SaleResult] = field(default_factory=list)

    @property
    def realized_gain_loss(self) -> float:
        return sum(sale.realized_gain_loss for sale in self.sales)


def apply_transaction(
    state: HoldingState, transaction: Transaction
) -> tuple[HoldingState, SaleResult | None]:
    """
    Apply one transaction to a holding using the average-cost method.

    Args:
        state: Holding before the transaction
        transaction: Buy, sell or dividend-reinvestment to apply

    Returns:
        The new holding state and, for sells, the realized sale

    Raises:
        InvalidStateError: If a sell exceeds the shares held
    """
    if transaction.type in (TransactionType.BUY, TransactionType.DIVIDEND_REINVESTMENT):
        new_state = HoldingState(
            shares=state.shares + transaction.shares,
            cost_basis=state.cost_basis + transaction.shares * transaction.cost_per_share,
        )
        return new_state, None

    if transaction.type == TransactionType.SELL:
        if state.shares <= 0 or transaction.shares > state.shares + SHARE_EPSILON:
            raise InvalidStateError(
                f"Cannot sell {transaction.shares} shares on {transaction.date}: "
                f"only {state.shares} held"
            )
        proportion = min(transaction.shares / state.shares, 1.0)
        removed_cost = state.cost_basis * proportion
        remaining_shares = state.shares - transaction.shares
        if remaining_shares <= SHARE_EPSILON:
            new_state = HoldingState()
        else:
            new_state = HoldingState(
                shares=remaining_shares, cost_basis=state.cost_basis - removed_cost
            )
        sale = SaleResult(
            transaction=transaction,
            shares_sold=transaction.shares,
            cost_basis=removed_cost,
            sale_proceeds=transaction.shares * transaction.cost_per_share,
        )
        return new_state, sale

    raise InvalidStateError(f"Unknown transaction type: {transaction.type}")


def replay(transactions: Iterable[Transaction], as_of: date | None = None) -> LedgerResult:
    """
    Fold a holding's transactions, in the order given, up to `as_of` inclusive.

    Transactions must already be in replay order (date, then insertion order).
    """
    result = LedgerResult()
    for transaction in transactions:
        if as_of is not None and transaction.date > as_of:
            break
        result.state, sale = apply_transaction(result.state, transaction)
        if sale is not None:
            result.sales.append(sale)
    return result


def shares_held(transactions: Iterable[Transaction], as_of: date) -> float:
    return replay(transactions, as_of).state.shares


def merge_transaction(
    transactions: Iterable[Transaction], transaction: Transaction
) -> list[Transaction]:
    """
    Replay order of a holding once `transaction` is stored.

    A transaction with the id of a stored one replaces it; a new one goes after
    the other transactions of its day, as an insert would.
    """
    merged: list[Transaction] = [
        existing
        for existing in transactions
        if transaction.id is None or existing.id != transaction.id
    ]
    merged.append(transaction)
    # Stable sort keeps same-day insertion order
    merged.sort(key=lambda t: t.date)
    return merged
