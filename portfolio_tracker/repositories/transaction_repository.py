from datetime import date
import logging
import uuid
from sqlite3 import Row

from portfolio_tracker.db import Database
from portfolio_tracker.models import Transaction
from portfolio_tracker.utils.model_utils import ModelFactory

logger: logging.Logger = logging.getLogger(__name__)


class TransactionRepository:
    def __init__(self, db: Database):
        self.db: Database = db

    def insert(self, transaction: Transaction) -> str:
        """Insert a new transaction and return its ID."""
        if transaction.id is None:
            transaction.id = str(uuid.uuid4())
        _ = self.db.execute(
            """
            INSERT INTO transactions (id, portfolio_fund_id, date, type, shares, cost_per_share)
            VALUES (:id, :portfolio_fund_id, :date, :type, :shares, :cost_per_share)
            """,
            ModelFactory.to_params(transaction),
        )
        logger.debug(
            f"Inserted {transaction.type} of {transaction.shares} shares "
            f"for holding {transaction.portfolio_fund_id} on {transaction.date}"
        )
        return transaction.id

    def update(self, transaction: Transaction) -> None:
        _ = self.db.execute(
            """
            UPDATE transactions
            SET date = :date, type = :type, shares = :shares, cost_per_share = :cost_per_share
            WHERE id = :id
            """,
            ModelFactory.to_params(transaction),
        )

    def get_by_id(self, transaction_id: str) -> Transaction | None:
        row: Row | None = self.db.query_one(
            "SELECT * FROM transactions WHERE id = ?", (transaction_id,)
        )
        if not row:
            return None
        return ModelFactory.create_from_row(Transaction, row)

    def get_for_portfolio_fund(
        self, portfolio_fund_id: str, as_of: date | None = None
    ) -> list[Transaction]:
        """Transactions of one holding in replay order, optionally up to `as_of` inclusive."""
        return self.get_for_portfolio_funds([portfolio_fund_id], as_of)

    def get_for_portfolio_funds(
        self, portfolio_fund_ids: list[str], as_of: date | None = None
    ) -> list[Transaction]:
        """
        Transactions of several holdings in replay order.

        Same-day transactions keep their insertion order.
        """
        if not portfolio_fund_ids:
            return []
        id_str = ",".join("?" for _ in portfolio_fund_ids)
        params: list[str] = list(portfolio_fund_ids)
        query = f"SELECT * FROM transactions WHERE portfolio_fund_id IN ({id_str})"
        if as_of is not None:
            query += " AND date <= ?"
            params.append(as_of.isoformat())
        rows: list[Row] = self.db.query_all(query + " ORDER BY date, rowid", params)
        return ModelFactory.create_list_from_rows(Transaction, rows)

    def get_oldest_date(self, portfolio_fund_ids: list[str]) -> date | None:
        """Date of the earliest transaction across the given holdings."""
        if not portfolio_fund_ids:
            return None
        id_str = ",".join("?" for _ in portfolio_fund_ids)
        row: Row | None = self.db.query_one(
            f"SELECT MIN(date) AS oldest FROM transactions WHERE portfolio_fund_id IN ({id_str})",
            portfolio_fund_ids,
        )
        if not row or row["oldest"] is None:
            return None
        return date.fromisoformat(row["oldest"])
