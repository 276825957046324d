"""Add command implementation."""

import argparse
import sqlite3
from typing import override

from portfolio_tracker.commands.base import Command, CommandRegistry
from portfolio_tracker.models import DividendType, Fund, Portfolio, PortfolioFund
from portfolio_tracker.repositories.fund_repository import FundRepository
from portfolio_tracker.repositories.portfolio_repository import PortfolioRepository


@CommandRegistry.register
class AddCommand(Command):
    """Command to create funds, portfolios and the holdings that link them."""

    name: str = "add"
    help: str = "Add a fund, portfolio or holding"

    @override
    @classmethod
    def setup_parser(cls, subparser) -> None:
        parser: argparse.ArgumentParser = cls.add_parser(subparser)
        kinds = parser.add_subparsers(dest="add_type", required=True)

        fund_parser = kinds.add_parser("fund", help="Add a fund")
        _ = fund_parser.add_argument("name")
        _ = fund_parser.add_argument("--symbol", help="Yahoo Finance symbol, e.g. VWRL.AS")
        _ = fund_parser.add_argument("--isin")
        _ = fund_parser.add_argument("--currency", default="EUR")
        _ = fund_parser.add_argument("--exchange", default="")
        _ = fund_parser.add_argument(
            "--dividend-type",
            choices=[t.value for t in DividendType],
            default=DividendType.NONE.value,
        )

        portfolio_parser = kinds.add_parser("portfolio", help="Add a portfolio")
        _ = portfolio_parser.add_argument("name")
        _ = portfolio_parser.add_argument("--description", default="")
        _ = portfolio_parser.add_argument("--exclude-from-overview", action="store_true")

        holding_parser = kinds.add_parser("holding", help="Add a fund to a portfolio")
        _ = holding_parser.add_argument("portfolio_id")
        _ = holding_parser.add_argument("fund_id")

    @override
    def execute(self, args: argparse.Namespace) -> int:
        fund_repo: FundRepository = self.container.get_repository(FundRepository)
        portfolio_repo: PortfolioRepository = self.container.get_repository(PortfolioRepository)

        if args.add_type == "holding":
            if not portfolio_repo.get_by_id(args.portfolio_id):
                return self.fail(f"Portfolio with ID {args.portfolio_id} not found")
            if not fund_repo.get_by_id(args.fund_id):
                return self.fail(f"Fund with ID {args.fund_id} not found")

        try:
            if args.add_type == "fund":
                new_id: str = fund_repo.insert(
                    Fund(
                        id=None,
                        name=args.name,
                        currency=args.currency,
                        exchange=args.exchange,
                        dividend_type=DividendType(args.dividend_type),
                        symbol=args.symbol,
                        isin=args.isin,
                    )
                )
            elif args.add_type == "portfolio":
                new_id = portfolio_repo.insert(
                    Portfolio(
                        id=None,
                        name=args.name,
                        description=args.description,
                        exclude_from_overview=args.exclude_from_overview,
                    )
                )
            else:
                new_id = portfolio_repo.insert_portfolio_fund(
                    PortfolioFund(id=None, portfolio_id=args.portfolio_id, fund_id=args.fund_id)
                )
        except sqlite3.IntegrityError as e:
            return self.fail(f"Failed to add {args.add_type}: {e}")

        print(f"Added {args.add_type} {new_id}")
        return 0
