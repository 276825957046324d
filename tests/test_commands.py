from datetime import date
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from portfolio_tracker.commands.base import CommandRegistry
from portfolio_tracker.container import ServiceContainer
from portfolio_tracker.main import create_parser, load_commands, main
from portfolio_tracker.models import QuotePrice
from portfolio_tracker.services.quote_service import YahooQuoteSource


@pytest.fixture
def mock_quote_source():
    source = MagicMock(spec=YahooQuoteSource)
    source.get_daily_closes.side_effect = lambda symbol, start, end: [QuotePrice(end, 12.0)]
    return source


@pytest.fixture
def cli(tmp_path: Path, mock_quote_source, capsys: pytest.CaptureFixture[str]):
    """Run the CLI against a database file that lives for the whole test."""
    db_path = str(tmp_path / "portfolio.db")

    def _run(*argv: str) -> tuple[int, str]:
        code = main(["--db-path", db_path, *argv])
        return code, capsys.readouterr().out

    with (
        patch("portfolio_tracker.main.setup_logging"),
        patch.object(ServiceContainer, "_create_quote_source", return_value=mock_quote_source),
    ):
        yield _run


def added_id(output: str) -> str:
    return output.strip().split()[-1]


@pytest.fixture
def holding_id(cli) -> str:
    _, out = cli("add", "portfolio", "Pension")
    portfolio_id = added_id(out)
    _, out = cli("add", "fund", "Global Index Fund", "--symbol", "VWRL.AS", "--dividend-type", "STOCK")
    fund_id = added_id(out)
    code, out = cli("add", "holding", portfolio_id, fund_id)
    assert code == 0
    return added_id(out)


def test_commands_register_themselves():
    load_commands()

    assert {"add", "record", "refresh", "report", "materialize"} <= set(
        CommandRegistry.get_commands()
    )


def test_parser_has_env_option_in_test_environment():
    load_commands()
    args = create_parser("test").parse_args(["--env", "dev", "report", "summary"])

    assert args.env == "dev"
    assert args.command == "report"


def test_no_command_prints_help(capsys: pytest.CaptureFixture[str]):
    assert main([]) == 0
    assert "Portfolio Tracker CLI" in capsys.readouterr().out


def test_record_and_report(cli, holding_id: str):
    code, out = cli("record", "buy", holding_id, "2024-01-01", "100", "10")
    assert code == 0
    assert "Recorded buy transaction" in out

    code, out = cli("record", "sell", holding_id, "2024-01-10", "30", "15")
    assert code == 0
    assert "Realized gain/loss: 150.00" in out

    code, out = cli("report", "holding", "--holding-id", holding_id, "--as-of", "2024-01-10")
    assert code == 0
    assert "70.0000" in out

    code, out = cli("report", "summary")
    assert code == 0
    assert "Pension" in out


def test_oversell_reports_error(cli, holding_id: str):
    code, out = cli("record", "sell", holding_id, "2024-01-10", "1", "15")

    assert code == 1
    assert "Error: Failed to record sell" in out


def test_invalid_date_rejected_by_parser(cli, holding_id: str):
    with pytest.raises(SystemExit):
        _ = cli("record", "buy", holding_id, "01/01/2024", "1", "10")


def test_record_dividend(cli, holding_id: str):
    _ = cli("record", "buy", holding_id, "2024-01-01", "100", "10")

    code, out = cli(
        "record", "dividend", holding_id, "2024-02-01", "2024-01-30", "0.5",
        "--buy-order-date", "2024-02-05",
        "--reinvestment-shares", "4",
        "--reinvestment-price", "12.5",
    )

    assert code == 0
    assert "50.00" in out
    assert "COMPLETED" in out


def test_funds_report_requires_portfolio(cli):
    code, out = cli("report", "funds")

    assert code == 1
    assert "--portfolio-id is required" in out


def test_history_report_rejects_reversed_range(cli):
    code, out = cli("report", "history", "--start", "2024-02-01", "--end", "2024-01-01")

    assert code == 1
    assert "after end date" in out


def test_refresh_today_for_fund(cli, holding_id: str, mock_quote_source):
    _, out = cli("add", "fund", "Other Fund", "--symbol", "OTHER.AS")
    fund_id = added_id(out)

    code, out = cli("refresh", "today", "--fund-id", fund_id)

    assert code == 0
    assert "added 1 prices" in out
    mock_quote_source.get_daily_closes.assert_called_once()

    code, out = cli("refresh", "today", "--fund-id", fund_id)
    assert "already up to date" in out
    assert mock_quote_source.get_daily_closes.call_count == 1


def test_refresh_unknown_fund(cli):
    code, out = cli("refresh", "history", "--fund-id", "missing")

    assert code == 1
    assert "not found" in out


def test_refresh_history_for_all_funds(cli, holding_id: str, mock_quote_source):
    mock_quote_source.get_daily_closes.side_effect = lambda symbol, start, end: [
        QuotePrice(start, 10.5)
    ]
    _ = cli("record", "buy", holding_id, "2024-01-01", "1", "10")

    code, out = cli("refresh", "all")

    assert code == 0
    assert "1 prices added" in out
    assert "1 funds updated, 0 errors" in out
    assert mock_quote_source.get_daily_closes.call_args.args[1] == date(2024, 1, 1)


def test_materialize(cli, holding_id: str):
    _ = cli("record", "buy", holding_id, "2024-01-01", "10", "10")

    code, out = cli("materialize")

    assert code == 0
    assert "Materialized" in out
