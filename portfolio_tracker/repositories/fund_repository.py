import logging
import uuid
from sqlite3 import Row

from portfolio_tracker.db import Database
from portfolio_tracker.models import Fund
from portfolio_tracker.utils.model_utils import ModelFactory


logger: logging.Logger = logging.getLogger(__name__)


class FundRepository:
    def __init__(self, db: Database):
        self.db: Database = db

    def insert(self, fund: Fund) -> str:
        if fund.id is None:
            fund.id = str(uuid.uuid4())
        _ = self.db.execute(
            """
            INSERT INTO funds (id, name, isin, symbol, currency, exchange, dividend_type)
            VALUES (:id, :name, :isin, :symbol, :currency, :exchange, :dividend_type)
            """,
            ModelFactory.to_params(fund),
        )
        logger.debug(f"Inserted fund {fund.name} ({fund.id})")
        return fund.id

    def get_by_id(self, fund_id: str) -> Fund | None:
        row: Row | None = self.db.query_one("SELECT * FROM funds WHERE id = ?", (fund_id,))
        if not row:
            return None
        return ModelFactory.create_from_row(Fund, row)

    def get_by_ids(self, fund_ids: list[str]) -> dict[str, Fund]:
        """
        Retrieve multiple funds by their IDs in a single query.

        Args:
            fund_ids: List of fund IDs to retrieve

        Returns:
            Dictionary mapping fund IDs to Fund objects
        """
        if not fund_ids:
            return {}
        id_str = ",".join("?" for _ in fund_ids)
        rows = self.db.query_all(f"SELECT * FROM funds WHERE id IN ({id_str})", fund_ids)
        return {row["id"]: ModelFactory.create_from_row(Fund, row) for row in rows}

    def get_all(self) -> list[Fund]:
        """
        Retrieve all funds from the database.

        Returns:
            List of all Fund objects, ordered by name
        """
        rows: list[Row] = self.db.query_all("SELECT * FROM funds ORDER BY name")
        return ModelFactory.create_list_from_rows(Fund, rows)
