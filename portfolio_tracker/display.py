import logging
from datetime import date

from portfolio_tracker.ledger import HoldingState
from portfolio_tracker.models import (
    FundHistoryPoint,
    FundUpdateSummary,
    PortfolioFundMetrics,
    PortfolioHistory,
    PortfolioSummary,
)

logger = logging.getLogger(__name__)


def _truncate(text: str, width: int) -> str:
    return text if len(text) <= width else text[: width - 1] + "…"


def display_portfolio_summary(summaries: list[PortfolioSummary]) -> None:
    """
    Display portfolio totals in a formatted table.

    Args:
        summaries: One summary per portfolio
    """
    if not summaries:
        print("No portfolio data to display.")
        return

    print("\n╔══════════════════════╦═════════════╦═════════════╦═══════════╦═════════════╦═════════════╦═════════════╗")
    print("║ Portfolio            ║       Value ║        Cost ║ Dividends ║  Unrealized ║    Realized ║  Total Gain ║")
    print("╠══════════════════════╬═════════════╬═════════════╬═══════════╬═════════════╬═════════════╬═════════════╣")
    for s in summaries:
        print(
            f"║ {_truncate(s.name, 20):<20} ║ "
            f"{s.total_value:11.2f} ║ "
            f"{s.total_cost:11.2f} ║ "
            f"{s.total_dividends:9.2f} ║ "
            f"{s.total_unrealized_gain_loss:11.2f} ║ "
            f"{s.total_realized_gain_loss:11.2f} ║ "
            f"{s.total_gain_loss:11.2f} ║"
        )
    print("╚══════════════════════╩═════════════╩═════════════╩═══════════╩═════════════╩═════════════╩═════════════╝")

    total_value = sum(s.total_value for s in summaries)
    total_gain = sum(s.total_gain_loss for s in summaries)
    print(f"\nTotal value ${total_value:.2f}, total gain/loss ${total_gain:.2f}.")


def display_portfolio_funds(funds: list[PortfolioFundMetrics]) -> None:
    """Display the per-fund breakdown of one portfolio, largest position first."""
    if not funds:
        print("Portfolio holds no funds.")
        return

    print("\n╔══════════════════════╦════════════╦══════════╦══════════╦═════════════╦═════════════╦═════════════╗")
    print("║ Fund                 ║     Shares ║    Price ║ Avg Cost ║       Value ║  Unrealized ║  Total Gain ║")
    print("╠══════════════════════╬════════════╬══════════╬══════════╬═════════════╬═════════════╬═════════════╣")
    for f in sorted(funds, key=lambda x: x.current_value, reverse=True):
        print(
            f"║ {_truncate(f.fund_name, 20):<20} ║ "
            f"{f.shares:10.4f} ║ "
            f"{f.latest_price:8.2f} ║ "
            f"{f.average_cost:8.2f} ║ "
            f"{f.current_value:11.2f} ║ "
            f"{f.unrealized_gain_loss:11.2f} ║ "
            f"{f.total_gain_loss:11.2f} ║"
        )
    print("╚══════════════════════╩════════════╩══════════╩══════════╩═════════════╩═════════════╩═════════════╝")


def display_portfolio_history(history: list[PortfolioHistory]) -> None:
    """Display one line per portfolio per day."""
    if not history:
        print("No history in the requested range.")
        return

    print(f"{'Date':<10}  {'Portfolio':<20}  {'Value':>12}  {'Cost':>12}  {'Gain/Loss':>12}")
    for day in history:
        for p in day.portfolios:
            print(
                f"{day.date.isoformat():<10}  {_truncate(p.name, 20):<20}  "
                f"{p.total_value:12.2f}  {p.total_cost:12.2f}  {p.total_gain_loss:12.2f}"
            )


def display_fund_history(history: list[FundHistoryPoint]) -> None:
    if not history:
        print("No history in the requested range.")
        return

    print(f"{'Date':<10}  {'Shares':>12}  {'Price':>10}  {'Value':>12}  {'Cost':>12}")
    for point in history:
        print(
            f"{point.date.isoformat():<10}  {point.shares:12.4f}  {point.price:10.2f}  "
            f"{point.value:12.2f}  {point.cost:12.2f}"
        )


def display_holding_state(portfolio_fund_id: str, as_of: date, state: HoldingState) -> None:
    print(f"Holding {portfolio_fund_id} as of {as_of}:")
    print(f"  Shares held:   {state.shares:.4f}")
    print(f"  Cost basis:    {state.cost_basis:.2f}")
    print(f"  Average cost:  {state.average_cost:.4f}")


def display_fund_update_summary(summary: FundUpdateSummary) -> None:
    """Display the outcome of a batch price update, failures last."""
    for fund in summary.updated_funds:
        print(f"  ✓ {fund.name} ({fund.symbol}): {fund.prices_added} prices added")
    for error in summary.errors:
        print(f"  ✗ {error.name} ({error.symbol or 'no symbol'}): {error.error}")
    print(
        f"Price update complete: {summary.total_updated} funds updated, "
        f"{summary.total_errors} errors."
    )
