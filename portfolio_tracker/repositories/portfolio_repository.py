import logging
import uuid
from sqlite3 import Row

from portfolio_tracker.db import Database
from portfolio_tracker.models import Portfolio, PortfolioFund
from portfolio_tracker.utils.model_utils import ModelFactory

logger: logging.Logger = logging.getLogger(__name__)


class PortfolioRepository:
    """Portfolios and the portfolio-fund links (holdings) they own."""

    def __init__(self, db: Database):
        self.db: Database = db

    def insert(self, portfolio: Portfolio) -> str:
        if portfolio.id is None:
            portfolio.id = str(uuid.uuid4())
        _ = self.db.execute(
            """
            INSERT INTO portfolios (id, name, description, is_archived, exclude_from_overview)
            VALUES (:id, :name, :description, :is_archived, :exclude_from_overview)
            """,
            {
                "id": portfolio.id,
                "name": portfolio.name,
                "description": portfolio.description,
                "is_archived": int(portfolio.is_archived),
                "exclude_from_overview": int(portfolio.exclude_from_overview),
            },
        )
        logger.debug(f"Inserted portfolio {portfolio.name} ({portfolio.id})")
        return portfolio.id

    def get_by_id(self, portfolio_id: str) -> Portfolio | None:
        row: Row | None = self.db.query_one(
            "SELECT * FROM portfolios WHERE id = ?", (portfolio_id,)
        )
        if not row:
            return None
        return ModelFactory.create_from_row(Portfolio, row)

    def get_portfolios(
        self, include_archived: bool = False, include_excluded: bool = False
    ) -> list[Portfolio]:
        """
        Retrieve portfolios, by default only those shown in overviews.

        Args:
            include_archived: Also return archived portfolios
            include_excluded: Also return portfolios excluded from the overview

        Returns:
            List of Portfolio objects ordered by name
        """
        query = "SELECT * FROM portfolios WHERE 1 = 1"
        if not include_archived:
            query += " AND is_archived = 0"
        if not include_excluded:
            query += " AND exclude_from_overview = 0"
        rows: list[Row] = self.db.query_all(query + " ORDER BY name")
        return ModelFactory.create_list_from_rows(Portfolio, rows)

    def insert_portfolio_fund(self, portfolio_fund: PortfolioFund) -> str:
        if portfolio_fund.id is None:
            portfolio_fund.id = str(uuid.uuid4())
        _ = self.db.execute(
            """
            INSERT INTO portfolio_funds (id, portfolio_id, fund_id)
            VALUES (:id, :portfolio_id, :fund_id)
            """,
            ModelFactory.to_params(portfolio_fund),
        )
        return portfolio_fund.id

    def get_portfolio_fund(self, portfolio_fund_id: str) -> PortfolioFund | None:
        row: Row | None = self.db.query_one(
            "SELECT * FROM portfolio_funds WHERE id = ?", (portfolio_fund_id,)
        )
        if not row:
            return None
        return ModelFactory.create_from_row(PortfolioFund, row)

    def get_portfolio_funds(self, portfolio_ids: list[str]) -> list[PortfolioFund]:
        """All holdings of the given portfolios."""
        if not portfolio_ids:
            return []
        id_str = ",".join("?" for _ in portfolio_ids)
        rows: list[Row] = self.db.query_all(
            f"SELECT * FROM portfolio_funds WHERE portfolio_id IN ({id_str})", portfolio_ids
        )
        return ModelFactory.create_list_from_rows(PortfolioFund, rows)

    def get_portfolio_funds_for_fund(self, fund_id: str) -> list[PortfolioFund]:
        """All holdings of a fund, across every portfolio."""
        rows: list[Row] = self.db.query_all(
            "SELECT * FROM portfolio_funds WHERE fund_id = ?", (fund_id,)
        )
        logger.debug(f"Found {len(rows)} portfolio holdings for fund {fund_id}")
        return ModelFactory.create_list_from_rows(PortfolioFund, rows)
