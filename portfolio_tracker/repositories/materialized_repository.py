from datetime import date
import logging
from sqlite3 import Row

from portfolio_tracker.db import Database
from portfolio_tracker.models import MaterializedHistoryRow
from portfolio_tracker.utils.model_utils import ModelFactory

logger: logging.Logger = logging.getLogger(__name__)


class MaterializedRepository:
    """Cache of daily per-holding valuations keyed by (portfolio_fund_id, date)."""

    def __init__(self, db: Database):
        self.db: Database = db

    def upsert_rows(self, rows: list[MaterializedHistoryRow]) -> int:
        """Write rows, replacing any cached row for the same holding and date."""
        if not rows:
            return 0
        _ = self.db.executemany(
            """
            INSERT OR REPLACE INTO fund_history_materialized (
                portfolio_fund_id, fund_id, date, shares, price, value, cost,
                dividends, realized_gain, unrealized_gain
            )
            VALUES (
                :portfolio_fund_id, :fund_id, :date, :shares, :price, :value, :cost,
                :dividends, :realized_gain, :unrealized_gain
            )
            """,
            [ModelFactory.to_params(row) for row in rows],
        )
        logger.debug(f"Materialized {len(rows)} history rows")
        return len(rows)

    def get_rows(
        self, portfolio_fund_ids: list[str], start_date: date, end_date: date
    ) -> list[MaterializedHistoryRow]:
        """Cached rows for the holdings within the inclusive range, ascending by date."""
        if not portfolio_fund_ids:
            return []
        id_str = ",".join("?" for _ in portfolio_fund_ids)
        rows: list[Row] = self.db.query_all(
            f"""
            SELECT * FROM fund_history_materialized
            WHERE portfolio_fund_id IN ({id_str}) AND date BETWEEN ? AND ?
            ORDER BY date ASC
            """,
            [*portfolio_fund_ids, start_date.isoformat(), end_date.isoformat()],
        )
        return ModelFactory.create_list_from_rows(MaterializedHistoryRow, rows)

    def count_rows(self, portfolio_fund_ids: list[str], start_date: date, end_date: date) -> int:
        if not portfolio_fund_ids:
            return 0
        id_str = ",".join("?" for _ in portfolio_fund_ids)
        row: Row | None = self.db.query_one(
            f"""
            SELECT COUNT(*) AS row_count FROM fund_history_materialized
            WHERE portfolio_fund_id IN ({id_str}) AND date BETWEEN ? AND ?
            """,
            [*portfolio_fund_ids, start_date.isoformat(), end_date.isoformat()],
        )
        return int(row["row_count"]) if row else 0

    def invalidate_from(self, portfolio_fund_ids: list[str], from_date: date) -> None:
        """Drop cached rows of the holdings dated on or after `from_date`."""
        if not portfolio_fund_ids:
            return
        id_str = ",".join("?" for _ in portfolio_fund_ids)
        cursor = self.db.execute(
            f"""
            DELETE FROM fund_history_materialized
            WHERE portfolio_fund_id IN ({id_str}) AND date >= ?
            """,
            [*portfolio_fund_ids, from_date.isoformat()],
        )
        logger.debug(f"Invalidated {cursor.rowcount} materialized rows from {from_date}")
