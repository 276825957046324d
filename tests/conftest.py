from datetime import date
from pathlib import Path
from typing import Any, Callable
from unittest.mock import patch

import pytest
import yaml

from portfolio_tracker.config import AppConfig, ConfigLoader
from portfolio_tracker.db import Database
from portfolio_tracker.models import DividendType, Fund, Portfolio, PortfolioFund
from portfolio_tracker.repositories.dividend_repository import DividendRepository
from portfolio_tracker.repositories.fund_price_repository import FundPriceRepository
from portfolio_tracker.repositories.fund_repository import FundRepository
from portfolio_tracker.repositories.materialized_repository import MaterializedRepository
from portfolio_tracker.repositories.portfolio_repository import PortfolioRepository
from portfolio_tracker.repositories.realized_gain_loss_repository import (
    RealizedGainLossRepository,
)
from portfolio_tracker.repositories.transaction_repository import TransactionRepository


@pytest.fixture
def app_config() -> AppConfig:
    """
    Load the AppConfig through the normal ConfigLoader mechanism using
    the actual config files.
    """
    return ConfigLoader.load_app_config()


@pytest.fixture
def test_db(app_config: AppConfig):
    """Create an in-memory test database."""
    with Database(app_config.db_path) as db:
        db.create_tables_if_not_exists()
        yield db


@pytest.fixture
def fund_repo(test_db: Database) -> FundRepository:
    return FundRepository(test_db)


@pytest.fixture
def price_repo(test_db: Database) -> FundPriceRepository:
    return FundPriceRepository(test_db)


@pytest.fixture
def portfolio_repo(test_db: Database) -> PortfolioRepository:
    return PortfolioRepository(test_db)


@pytest.fixture
def transaction_repo(test_db: Database) -> TransactionRepository:
    return TransactionRepository(test_db)


@pytest.fixture
def dividend_repo(test_db: Database) -> DividendRepository:
    return DividendRepository(test_db)


@pytest.fixture
def realized_repo(test_db: Database) -> RealizedGainLossRepository:
    return RealizedGainLossRepository(test_db)


@pytest.fixture
def materialized_repo(test_db: Database) -> MaterializedRepository:
    return MaterializedRepository(test_db)


@pytest.fixture
def stock_fund(fund_repo: FundRepository) -> Fund:
    """A fund that reinvests its dividends, stored in the test database."""
    fund = Fund(
        id=None,
        name="Global Index Fund",
        currency="EUR",
        exchange="AMS",
        dividend_type=DividendType.STOCK,
        symbol="VWRL.AS",
        isin="NL0000000001",
    )
    _ = fund_repo.insert(fund)
    return fund


@pytest.fixture
def cash_fund(fund_repo: FundRepository) -> Fund:
    fund = Fund(
        id=None,
        name="Dividend Income Fund",
        currency="EUR",
        exchange="AMS",
        dividend_type=DividendType.CASH,
        symbol="DIV.AS",
    )
    _ = fund_repo.insert(fund)
    return fund


@pytest.fixture
def portfolio(portfolio_repo: PortfolioRepository) -> Portfolio:
    portfolio = Portfolio(id=None, name="Pension", description="Long term")
    _ = portfolio_repo.insert(portfolio)
    return portfolio


@pytest.fixture
def holding(portfolio_repo: PortfolioRepository, portfolio: Portfolio, stock_fund: Fund) -> PortfolioFund:
    """The stock fund held in the portfolio."""
    pf = PortfolioFund(id=None, portfolio_id=portfolio.id, fund_id=stock_fund.id)
    _ = portfolio_repo.insert_portfolio_fund(pf)
    return pf


@pytest.fixture
def jan_first() -> date:
    return date(2024, 1, 1)


@pytest.fixture
def isolated_config_environment(tmp_path: Path):
    """
    Create a completely isolated test environment with copied config files.
    Use this when you need to modify config files for specific tests.
    Generator that yields: dict[str,Path]
    - "config_dir": test_config_dir, "temp_dir": tmp_path
    """
    test_config_dir: Path = tmp_path / "config"
    test_config_dir.mkdir()

    real_config_dir: Path = Path(__file__).parent.parent / "config"
    for config_file in real_config_dir.glob("*.yaml"):
        with open(config_file, "r") as src_file:
            content: dict[str, Any] = yaml.safe_load(src_file) or {}

        # Keep log files inside the temp directory
        if "log_file_path" in content:
            content["log_file_path"] = str(tmp_path / "logs/test.log")

        with open(test_config_dir / config_file.name, "w") as dest_file:
            yaml.dump(content, dest_file)

    with patch.object(ConfigLoader, "_find_config_directory", return_value=test_config_dir):
        yield {"config_dir": test_config_dir, "temp_dir": tmp_path}


@pytest.fixture
def config_with_cli_overrides() -> Callable[..., AppConfig]:
    """Fixture for testing CLI argument overrides."""

    def _config_with_overrides(overrides: dict[str, Any]) -> AppConfig:
        """Load config with the specified CLI overrides."""
        return ConfigLoader.load_app_config(env="test", overrides=overrides)

    return _config_with_overrides
