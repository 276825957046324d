from datetime import date

import pytest

from portfolio_tracker import ledger
from portfolio_tracker.exceptions import InvalidStateError
from portfolio_tracker.ledger import HoldingState
from portfolio_tracker.models import Transaction, TransactionType


def txn(day: int, kind: TransactionType, shares: float, price: float) -> Transaction:
    return Transaction(
        id=f"t{day}-{kind}",
        portfolio_fund_id="pf",
        date=date(2024, 1, day),
        type=kind,
        shares=shares,
        cost_per_share=price,
    )


class TestApplyTransaction:
    def test_buy_adds_shares_and_cost(self):
        state, sale = ledger.apply_transaction(HoldingState(), txn(1, TransactionType.BUY, 100, 10))
        assert state == HoldingState(shares=100, cost_basis=1000)
        assert sale is None

    def test_reinvestment_treated_as_buy(self):
        start = HoldingState(shares=100, cost_basis=1000)
        state, sale = ledger.apply_transaction(
            start, txn(2, TransactionType.DIVIDEND_REINVESTMENT, 2, 12.5)
        )
        assert state.shares == 102
        assert state.cost_basis == pytest.approx(1025)
        assert sale is None

    def test_sell_reduces_cost_proportionally(self):
        start = HoldingState(shares=100, cost_basis=1000)
        state, sale = ledger.apply_transaction(start, txn(3, TransactionType.SELL, 30, 15))

        assert state.shares == pytest.approx(70)
        assert state.cost_basis == pytest.approx(700)
        assert sale.cost_basis == pytest.approx(300)
        assert sale.sale_proceeds == pytest.approx(450)
        assert sale.realized_gain_loss == pytest.approx(150)

    def test_sell_everything_resets_state(self):
        start = HoldingState(shares=100, cost_basis=1000)
        state, sale = ledger.apply_transaction(start, txn(3, TransactionType.SELL, 100, 8))

        assert state == HoldingState()
        assert sale.realized_gain_loss == pytest.approx(-200)

    def test_oversell_rejected(self):
        with pytest.raises(InvalidStateError, match="Cannot sell"):
            _ = ledger.apply_transaction(
                HoldingState(shares=10, cost_basis=100), txn(3, TransactionType.SELL, 10.5, 10)
            )

    def test_sell_from_empty_rejected(self):
        with pytest.raises(InvalidStateError):
            _ = ledger.apply_transaction(HoldingState(), txn(3, TransactionType.SELL, 1, 10))


class TestReplay:
    def test_replay_folds_in_order(self):
        transactions = [
            txn(1, TransactionType.BUY, 100, 10),
            txn(5, TransactionType.SELL, 30, 15),
            txn(9, TransactionType.BUY, 10, 20),
        ]

        result = ledger.replay(transactions)

        assert result.state.shares == pytest.approx(80)
        assert result.state.cost_basis == pytest.approx(900)
        assert result.realized_gain_loss == pytest.approx(150)
        assert len(result.sales) == 1

    def test_replay_stops_at_as_of(self):
        transactions = [txn(1, TransactionType.BUY, 100, 10), txn(5, TransactionType.SELL, 30, 15)]

        assert ledger.replay(transactions, date(2024, 1, 4)).state.shares == 100
        assert ledger.shares_held(transactions, date(2024, 1, 5)) == pytest.approx(70)
        assert ledger.shares_held(transactions, date(2023, 12, 31)) == 0

    def test_average_cost_and_market_value(self):
        state = ledger.replay(
            [txn(1, TransactionType.BUY, 100, 10), txn(2, TransactionType.BUY, 100, 14)]
        ).state

        assert state.average_cost == pytest.approx(12)
        assert state.market_value(15) == pytest.approx(3000)
        assert state.unrealized_gain(15) == pytest.approx(600)
        assert HoldingState().average_cost == 0.0


class TestMergeTransaction:
    def test_new_transaction_goes_after_its_day(self):
        buy = txn(1, TransactionType.BUY, 100, 10)
        same_day = txn(5, TransactionType.BUY, 10, 11)
        later = txn(10, TransactionType.SELL, 100, 12)
        new_sell = Transaction(None, "pf", date(2024, 1, 5), TransactionType.SELL, 50, 11)

        merged = ledger.merge_transaction([buy, same_day, later], new_sell)

        assert merged == [buy, same_day, new_sell, later]

    def test_stored_transaction_is_replaced(self):
        buy = txn(1, TransactionType.BUY, 100, 10)
        reinvest = txn(3, TransactionType.DIVIDEND_REINVESTMENT, 4, 12.5)
        moved = Transaction(reinvest.id, "pf", date(2024, 1, 20), reinvest.type, 2, 12.5)

        merged = ledger.merge_transaction([buy, reinvest], moved)

        assert merged == [buy, moved]

    def test_later_sale_left_short_is_detected(self):
        history = [txn(1, TransactionType.BUY, 100, 10), txn(10, TransactionType.SELL, 100, 12)]
        backdated = Transaction(None, "pf", date(2024, 1, 5), TransactionType.SELL, 50, 11)

        with pytest.raises(InvalidStateError, match="2024-01-10"):
            _ = ledger.replay(ledger.merge_transaction(history, backdated))
