"""Record command implementation."""

import argparse
from typing import override

from portfolio_tracker.commands.base import Command, CommandRegistry, iso_date
from portfolio_tracker.exceptions import PortfolioTrackerError
from portfolio_tracker.models import Dividend, TransactionType
from portfolio_tracker.services.dividend_service import DividendService
from portfolio_tracker.services.transaction_service import TransactionService

TRANSACTION_TYPES: dict[str, TransactionType] = {
    "buy": TransactionType.BUY,
    "sell": TransactionType.SELL,
    "reinvest": TransactionType.DIVIDEND_REINVESTMENT,
}


def _add_reinvestment_options(parser: argparse.ArgumentParser) -> None:
    _ = parser.add_argument("--buy-order-date", type=iso_date, help="Reinvestment order date")
    _ = parser.add_argument("--reinvestment-shares", type=float, help="Shares bought")
    _ = parser.add_argument("--reinvestment-price", type=float, help="Price per share paid")


@CommandRegistry.register
class RecordCommand(Command):
    """Command to record transactions and dividends against a holding."""

    name: str = "record"
    help: str = "Record transactions and dividends"

    @override
    @classmethod
    def setup_parser(cls, subparser) -> None:
        parser: argparse.ArgumentParser = cls.add_parser(subparser)
        kinds = parser.add_subparsers(dest="record_type", required=True)

        for kind in TRANSACTION_TYPES:
            txn_parser = kinds.add_parser(kind, help=f"Record a {kind} transaction")
            _ = txn_parser.add_argument("holding_id", help="Portfolio fund ID")
            _ = txn_parser.add_argument("date", type=iso_date, help="Trade date (YYYY-MM-DD)")
            _ = txn_parser.add_argument("shares", type=float, help="Number of shares")
            _ = txn_parser.add_argument("price", type=float, help="Price per share")

        dividend_parser = kinds.add_parser("dividend", help="Record a dividend")
        _ = dividend_parser.add_argument("holding_id", help="Portfolio fund ID")
        _ = dividend_parser.add_argument("record_date", type=iso_date, help="Record date")
        _ = dividend_parser.add_argument("ex_dividend_date", type=iso_date, help="Ex-dividend date")
        _ = dividend_parser.add_argument("per_share", type=float, help="Dividend per share")
        _add_reinvestment_options(dividend_parser)

        fulfil_parser = kinds.add_parser(
            "fulfil", help="Add reinvestment details to a recorded dividend"
        )
        _ = fulfil_parser.add_argument("dividend_id", help="Dividend ID")
        _add_reinvestment_options(fulfil_parser)

    @override
    def execute(self, args: argparse.Namespace) -> int:
        record_type: str = args.record_type
        try:
            if record_type in TRANSACTION_TYPES:
                self._record_transaction(args, TRANSACTION_TYPES[record_type])
            else:
                self._record_dividend(args)
        except PortfolioTrackerError as e:
            return self.fail(f"Failed to record {record_type}: {e}", exc_info=True)
        return 0

    def _record_transaction(self, args: argparse.Namespace, txn_type: TransactionType) -> None:
        transaction_service: TransactionService = self.container.get_service(TransactionService)
        transaction, realized = transaction_service.record_transaction(
            args.holding_id, args.date, txn_type, args.shares, args.price
        )
        print(f"Recorded {args.record_type} transaction {transaction.id}.")
        if realized is not None:
            print(f"Realized gain/loss: {realized.realized_gain_loss:.2f}")

    def _record_dividend(self, args: argparse.Namespace) -> None:
        dividend_service: DividendService = self.container.get_service(DividendService)
        reinvestment = {
            "buy_order_date": args.buy_order_date,
            "reinvestment_shares": args.reinvestment_shares,
            "reinvestment_price": args.reinvestment_price,
        }
        if args.record_type == "dividend":
            dividend: Dividend = dividend_service.create_dividend(
                args.holding_id,
                args.record_date,
                args.ex_dividend_date,
                args.per_share,
                **reinvestment,
            )
        else:
            dividend = dividend_service.record_reinvestment_fulfillment(
                args.dividend_id, **reinvestment
            )
        print(
            f"Dividend {dividend.id}: {dividend.total_amount:.2f} "
            f"on {dividend.shares_owned:.4f} shares, {dividend.reinvestment_status}"
        )
