"""Materialize command implementation."""

import argparse
from typing import override

from portfolio_tracker.commands.base import Command, CommandRegistry
from portfolio_tracker.exceptions import PortfolioTrackerError
from portfolio_tracker.services.valuation_service import ValuationService


@CommandRegistry.register
class MaterializeCommand(Command):
    """Command to rebuild the materialized valuation history."""

    name: str = "materialize"
    help: str = "Rebuild the cached daily valuation history"

    @override
    @classmethod
    def setup_parser(cls, subparser) -> None:
        parser: argparse.ArgumentParser = cls.add_parser(subparser)
        _ = parser.add_argument(
            "--portfolio-id", help="Only rebuild this portfolio (default: every portfolio)"
        )

    @override
    def execute(self, args: argparse.Namespace) -> int:
        valuation_service: ValuationService = self.container.get_service(ValuationService)
        print(f"Materializing history for {args.portfolio_id or 'all portfolios'}...")
        try:
            written: int = valuation_service.rebuild(args.portfolio_id)
        except PortfolioTrackerError as e:
            return self.fail(f"Materialization failed: {e}", exc_info=True)
        print(f"Materialized {written} rows.")
        return 0
