"""Report command implementation."""

import argparse
from datetime import date, timedelta
from typing import override

from portfolio_tracker.commands.base import Command, CommandRegistry, iso_date
from portfolio_tracker.display import (
    display_fund_history,
    display_holding_state,
    display_portfolio_funds,
    display_portfolio_history,
    display_portfolio_summary,
)
from portfolio_tracker.exceptions import PortfolioTrackerError
from portfolio_tracker.services.portfolio_service import PortfolioService
from portfolio_tracker.services.transaction_service import TransactionService
from portfolio_tracker.services.valuation_service import ValuationService
from portfolio_tracker.utils.date_utils import days_between, today_utc

DEFAULT_HISTORY_DAYS = 30

# Report type -> option it cannot run without
REQUIRED_OPTIONS: dict[str, str] = {
    "funds": "portfolio_id",
    "fund-history": "fund_id",
    "holding": "holding_id",
}


@CommandRegistry.register
class ReportCommand(Command):
    """Command to print positions and valuation history."""

    name: str = "report"
    help: str = "Generate reports"

    @override
    @classmethod
    def setup_parser(cls, subparser) -> None:
        parser: argparse.ArgumentParser = cls.add_parser(subparser)
        _ = parser.add_argument(
            "type",
            choices=["summary", "funds", "history", "fund-history", "holding"],
            help="summary: totals per portfolio; funds: positions of one portfolio; "
            "history: daily portfolio values; fund-history: daily values of one fund; "
            "holding: shares and cost of one holding",
        )
        _ = parser.add_argument("--portfolio-id", help="Portfolio to report on")
        _ = parser.add_argument("--fund-id", help="Fund to report on (fund-history)")
        _ = parser.add_argument("--holding-id", help="Portfolio fund to report on (holding)")
        _ = parser.add_argument("--start", type=iso_date, help="First day (YYYY-MM-DD)")
        _ = parser.add_argument("--end", type=iso_date, help="Last day (YYYY-MM-DD)")
        _ = parser.add_argument("--as-of", type=iso_date, help="Valuation date (YYYY-MM-DD)")

    def _date_range(self, args: argparse.Namespace) -> tuple[date, date]:
        end: date = args.end or today_utc()
        start: date = args.start or end - timedelta(days=DEFAULT_HISTORY_DAYS - 1)
        if start > end:
            raise ValueError(f"Start date {start} is after end date {end}")
        if days_between(start, end) > self.config.max_history_days:
            raise ValueError(
                f"Range {start} to {end} exceeds {self.config.max_history_days} days"
            )
        return start, end

    @override
    def execute(self, args: argparse.Namespace) -> int:
        report_type: str = str(args.type)
        required: str | None = REQUIRED_OPTIONS.get(report_type)
        if required and not getattr(args, required):
            option = "--" + required.replace("_", "-")
            return self.fail(f"{option} is required for the {report_type} report")

        try:
            self._report(report_type, args)
        except (PortfolioTrackerError, ValueError) as e:
            return self.fail(f"Failed to generate {report_type} report: {e}", exc_info=True)
        return 0

    def _report(self, report_type: str, args: argparse.Namespace) -> None:
        portfolio_service: PortfolioService = self.container.get_service(PortfolioService)
        valuation_service: ValuationService = self.container.get_service(ValuationService)

        if report_type == "summary":
            print("Generating portfolio summary...")
            display_portfolio_summary(portfolio_service.get_portfolio_summary(args.as_of))
        elif report_type == "funds":
            display_portfolio_funds(
                portfolio_service.get_portfolio_funds(args.portfolio_id, args.as_of)
            )
        elif report_type == "history":
            start, end = self._date_range(args)
            print(f"Generating portfolio history from {start} to {end}...")
            display_portfolio_history(
                valuation_service.get_portfolio_history(start, end, args.portfolio_id)
            )
        elif report_type == "fund-history":
            start, end = self._date_range(args)
            print(f"Generating fund history from {start} to {end}...")
            display_fund_history(
                valuation_service.get_fund_history(args.fund_id, start, end, args.portfolio_id)
            )
        elif report_type == "holding":
            as_of: date = args.as_of or today_utc()
            transaction_service: TransactionService = self.container.get_service(
                TransactionService
            )
            display_holding_state(
                args.holding_id,
                as_of,
                transaction_service.get_holding_state(args.holding_id, as_of),
            )
