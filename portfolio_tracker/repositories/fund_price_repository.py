from datetime import date
import logging
import uuid
from sqlite3 import Row

from portfolio_tracker.db import Database
from portfolio_tracker.models import FundPrice
from portfolio_tracker.utils.model_utils import ModelFactory

logger: logging.Logger = logging.getLogger(__name__)


class FundPriceRepository:
    """Stores one closing price per fund per calendar day."""

    def __init__(self, db: Database):
        self.db: Database = db

    def insert(self, price: FundPrice) -> str:
        """Insert a single price; fails if the fund already has a price for that date."""
        if price.id is None:
            price.id = str(uuid.uuid4())
        _ = self.db.execute(
            """
            INSERT INTO fund_prices (id, fund_id, date, price)
            VALUES (:id, :fund_id, :date, :price)
            """,
            ModelFactory.to_params(price),
        )
        logger.debug(f"Inserted price {price.price} for fund {price.fund_id} on {price.date}")
        return price.id

    def insert_many(self, prices: list[FundPrice]) -> int:
        """Insert a batch of prices in one transaction. Returns the number of rows written."""
        if not prices:
            return 0
        for price in prices:
            if price.id is None:
                price.id = str(uuid.uuid4())
        _ = self.db.executemany(
            """
            INSERT INTO fund_prices (id, fund_id, date, price)
            VALUES (:id, :fund_id, :date, :price)
            """,
            [ModelFactory.to_params(price) for price in prices],
        )
        logger.debug(f"Inserted {len(prices)} prices")
        return len(prices)

    def upsert(self, price: FundPrice) -> None:
        """Insert a price, or replace the stored price for the same fund and date."""
        if price.id is None:
            price.id = str(uuid.uuid4())
        _ = self.db.execute(
            """
            INSERT INTO fund_prices (id, fund_id, date, price)
            VALUES (:id, :fund_id, :date, :price)
            ON CONFLICT(fund_id, date) DO UPDATE SET price = excluded.price
            """,
            ModelFactory.to_params(price),
        )

    def get_price_on(self, fund_id: str, on_date: date) -> FundPrice | None:
        row: Row | None = self.db.query_one(
            "SELECT * FROM fund_prices WHERE fund_id = ? AND date = ?",
            (fund_id, on_date.isoformat()),
        )
        if not row:
            return None
        return ModelFactory.create_from_row(FundPrice, row)

    def get_latest(self, fund_id: str, as_of: date | None = None) -> FundPrice | None:
        """Most recent price for a fund, optionally on or before `as_of`."""
        if as_of is None:
            row: Row | None = self.db.query_one(
                "SELECT * FROM fund_prices WHERE fund_id = ? ORDER BY date DESC LIMIT 1",
                (fund_id,),
            )
        else:
            row = self.db.query_one(
                """
                SELECT * FROM fund_prices
                WHERE fund_id = ? AND date <= ?
                ORDER BY date DESC LIMIT 1
                """,
                (fund_id, as_of.isoformat()),
            )
        if not row:
            return None
        return ModelFactory.create_from_row(FundPrice, row)

    def get_range(
        self, fund_ids: list[str], start_date: date | None, end_date: date
    ) -> list[FundPrice]:
        """Prices for the given funds up to `end_date`, from `start_date` if supplied, oldest first."""
        if not fund_ids:
            return []
        id_str = ",".join("?" for _ in fund_ids)
        params: list[str] = [*fund_ids, end_date.isoformat()]
        query = f"SELECT * FROM fund_prices WHERE fund_id IN ({id_str}) AND date <= ?"
        if start_date is not None:
            query += " AND date >= ?"
            params.append(start_date.isoformat())
        rows: list[Row] = self.db.query_all(query + " ORDER BY fund_id, date", params)
        return ModelFactory.create_list_from_rows(FundPrice, rows)

    def get_existing_dates(self, fund_id: str, start_date: date, end_date: date) -> set[date]:
        """Dates within the inclusive range that already have a stored price."""
        rows: list[Row] = self.db.query_all(
            "SELECT date FROM fund_prices WHERE fund_id = ? AND date BETWEEN ? AND ?",
            (fund_id, start_date.isoformat(), end_date.isoformat()),
        )
        return {date.fromisoformat(row["date"]) for row in rows}
