import logging
import uuid
from sqlite3 import Row

from portfolio_tracker.db import Database
from portfolio_tracker.models import RealizedGainLoss
from portfolio_tracker.utils.model_utils import ModelFactory

logger: logging.Logger = logging.getLogger(__name__)


class RealizedGainLossRepository:
    """Immutable records of gains and losses realized by sell transactions."""

    def __init__(self, db: Database):
        self.db: Database = db

    def insert(self, record: RealizedGainLoss) -> str:
        if record.id is None:
            record.id = str(uuid.uuid4())
        _ = self.db.execute(
            """
            INSERT INTO realized_gain_loss (
                id, portfolio_id, fund_id, transaction_id, transaction_date,
                shares_sold, cost_basis, sale_proceeds, realized_gain_loss
            )
            VALUES (
                :id, :portfolio_id, :fund_id, :transaction_id, :transaction_date,
                :shares_sold, :cost_basis, :sale_proceeds, :realized_gain_loss
            )
            """,
            ModelFactory.to_params(record),
        )
        logger.debug(
            f"Recorded realized gain/loss {record.realized_gain_loss:.2f} "
            f"for transaction {record.transaction_id}"
        )
        return record.id

    def get_by_transaction_id(self, transaction_id: str) -> RealizedGainLoss | None:
        row: Row | None = self.db.query_one(
            "SELECT * FROM realized_gain_loss WHERE transaction_id = ?", (transaction_id,)
        )
        if not row:
            return None
        return ModelFactory.create_from_row(RealizedGainLoss, row)

    def get_for_portfolios(self, portfolio_ids: list[str]) -> list[RealizedGainLoss]:
        """All realized records of the given portfolios, oldest first."""
        if not portfolio_ids:
            return []
        id_str = ",".join("?" for _ in portfolio_ids)
        rows: list[Row] = self.db.query_all(
            f"""
            SELECT * FROM realized_gain_loss
            WHERE portfolio_id IN ({id_str})
            ORDER BY transaction_date ASC
            """,
            portfolio_ids,
        )
        return ModelFactory.create_list_from_rows(RealizedGainLoss, rows)
