"""Refresh command implementation."""

import argparse
import logging
from typing import override

from portfolio_tracker.commands.base import Command, CommandRegistry
from portfolio_tracker.display import display_fund_update_summary
from portfolio_tracker.exceptions import PortfolioTrackerError
from portfolio_tracker.models import Fund, FundUpdateSummary, PriceUpdateResult
from portfolio_tracker.repositories.fund_repository import FundRepository
from portfolio_tracker.services.price_service import PriceService

logger = logging.getLogger(__name__)


@CommandRegistry.register
class RefreshCommand(Command):
    """Command to refresh fund prices from Yahoo Finance."""

    name: str = "refresh"
    help: str = "Refresh fund prices"

    @override
    @classmethod
    def setup_parser(cls, subparser) -> None:
        parser: argparse.ArgumentParser = cls.add_parser(subparser)
        _ = parser.add_argument(
            "type",
            choices=["today", "history", "all"],
            help="today: store yesterday's close; history: backfill missing days; "
            "all: backfill every fund",
        )
        _ = parser.add_argument("--fund-id", help="Only refresh this fund")

    @override
    def execute(self, args: argparse.Namespace) -> int:
        price_service: PriceService = self.container.get_service(PriceService)
        fund_repo: FundRepository = self.container.get_repository(FundRepository)

        if args.type == "all" or args.fund_id is None:
            if args.type == "today":
                return self._refresh_today_all(price_service, fund_repo)
            return self._refresh_all_history(price_service)

        fund: Fund | None = fund_repo.get_by_id(args.fund_id)
        if not fund:
            return self.fail(f"Fund with ID {args.fund_id} not found")

        print(f"Refreshing prices for {fund.name} ({fund.symbol})...", end="")
        try:
            if args.type == "today":
                result: PriceUpdateResult = price_service.update_fund_price_today(args.fund_id)
            else:
                result = price_service.update_fund_price_historical(args.fund_id)
        except PortfolioTrackerError as e:
            print()
            return self.fail(f"Refreshing prices for {fund.name} failed: {e}")

        if result.new_prices:
            print(f" added {result.prices_added} prices.")
        else:
            print(" already up to date.")
        return 0

    def _refresh_today_all(self, price_service: PriceService, fund_repo: FundRepository) -> int:
        """Store yesterday's close for every fund with a symbol; fails only if every fund fails."""
        funds: list[Fund] = [fund for fund in fund_repo.get_all() if fund.symbol]
        logger.info(f"Refreshing yesterday's close for {len(funds)} funds")
        print("Refreshing yesterday's closing prices...")

        failed = 0
        for fund in funds:
            print(f"  {fund.name} ({fund.symbol})...", end="")
            try:
                result: PriceUpdateResult = price_service.update_fund_price_today(fund.id)
                print(" added." if result.new_prices else " already stored.")
            except PortfolioTrackerError as e:
                failed += 1
                logger.error(f"Error refreshing today's price for {fund.symbol}: {e}")
                print(f" error: {e}")

        print(f"Price refresh complete. {len(funds) - failed} of {len(funds)} funds refreshed.")
        return 1 if funds and failed == len(funds) else 0

    def _refresh_all_history(self, price_service: PriceService) -> int:
        print("Backfilling price history for all funds...")
        try:
            summary: FundUpdateSummary = price_service.update_all_fund_history()
            display_fund_update_summary(summary)
            summary.raise_for_failure()
        except PortfolioTrackerError as e:
            return self.fail(f"Price backfill failed: {e}", exc_info=True)
        return 0
