from datetime import date
import logging
import uuid
from sqlite3 import Row

from portfolio_tracker.db import Database
from portfolio_tracker.models import Dividend
from portfolio_tracker.utils.model_utils import ModelFactory

logger: logging.Logger = logging.getLogger(__name__)


class DividendRepository:
    def __init__(self, db: Database):
        self.db: Database = db

    def insert(self, dividend: Dividend) -> str:
        """Insert a new dividend record into the database."""
        if dividend.id is None:
            dividend.id = str(uuid.uuid4())
        _ = self.db.execute(
            """
            INSERT INTO dividends (
                id, fund_id, portfolio_fund_id, record_date, ex_dividend_date,
                dividend_per_share, shares_owned, total_amount, reinvestment_status,
                buy_order_date, reinvestment_shares, reinvestment_price, reinvestment_transaction_id
            )
            VALUES (
                :id, :fund_id, :portfolio_fund_id, :record_date, :ex_dividend_date,
                :dividend_per_share, :shares_owned, :total_amount, :reinvestment_status,
                :buy_order_date, :reinvestment_shares, :reinvestment_price, :reinvestment_transaction_id
            )
            """,
            ModelFactory.to_params(dividend),
        )
        logger.debug(
            f"Inserted dividend for holding {dividend.portfolio_fund_id} "
            f"on {dividend.ex_dividend_date} ({dividend.reinvestment_status})"
        )
        return dividend.id

    def update_reinvestment(self, dividend: Dividend) -> None:
        """Persist the amount, reinvestment fields and status of an existing dividend."""
        _ = self.db.execute(
            """
            UPDATE dividends
            SET shares_owned = :shares_owned,
                total_amount = :total_amount,
                buy_order_date = :buy_order_date,
                reinvestment_shares = :reinvestment_shares,
                reinvestment_price = :reinvestment_price,
                reinvestment_transaction_id = :reinvestment_transaction_id,
                reinvestment_status = :reinvestment_status
            WHERE id = :id
            """,
            ModelFactory.to_params(dividend),
        )

    def get_by_id(self, dividend_id: str) -> Dividend | None:
        row: Row | None = self.db.query_one("SELECT * FROM dividends WHERE id = ?", (dividend_id,))
        if not row:
            return None
        return ModelFactory.create_from_row(Dividend, row)

    def get_by_ex_dividend_date(
        self, portfolio_fund_id: str, ex_dividend_date: date
    ) -> Dividend | None:
        row: Row | None = self.db.query_one(
            "SELECT * FROM dividends WHERE portfolio_fund_id = ? AND ex_dividend_date = ?",
            (portfolio_fund_id, ex_dividend_date.isoformat()),
        )
        if not row:
            return None
        return ModelFactory.create_from_row(Dividend, row)

    def get_for_portfolio_funds(self, portfolio_fund_ids: list[str]) -> list[Dividend]:
        """All dividends of the given holdings, oldest ex-dividend date first."""
        if not portfolio_fund_ids:
            return []
        id_str = ",".join("?" for _ in portfolio_fund_ids)
        rows: list[Row] = self.db.query_all(
            f"""
            SELECT * FROM dividends
            WHERE portfolio_fund_id IN ({id_str})
            ORDER BY ex_dividend_date ASC
            """,
            portfolio_fund_ids,
        )
        logger.debug(f"Found {len(rows)} dividends for {len(portfolio_fund_ids)} holdings")
        return ModelFactory.create_list_from_rows(Dividend, rows)
