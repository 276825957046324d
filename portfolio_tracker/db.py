import logging
import sqlite3
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Self

Params = Sequence[Any] | Mapping[str, Any]


class Database:
    """
    SQLite connection wrapper.

    Each statement is committed on its own unless it runs inside a
    `transaction()` block, in which case the block commits or rolls back as a unit:

        with Database("portfolio.db") as db:
            with db.transaction():
                db.execute("INSERT INTO transactions ...", params)
                db.execute("INSERT INTO realized_gain_loss ...", params)
    """

    def __init__(self, db_path: Path | str) -> None:
        self.conn: sqlite3.Connection = sqlite3.connect(db_path)
        self.conn.row_factory = sqlite3.Row  # Allows dict-style access
        _ = self.conn.execute("PRAGMA foreign_keys = ON")
        self.cursor: sqlite3.Cursor = self.conn.cursor()
        self.logger: logging.Logger = logging.getLogger("db")
        self._in_transaction: bool = False

    @staticmethod
    def _check_placeholders(query: str, params: Params) -> None:
        # Positional and named placeholders cannot be mixed
        named: bool = ":" in query
        if not named and isinstance(params, Mapping):
            raise ValueError("Positional placeholders (?) used with named parameters.")
        if named and isinstance(params, (list, tuple)) and params:
            raise ValueError("Named placeholders (:) used with positional parameters.")

    def _autocommit(self, run: Callable[[], sqlite3.Cursor], operation: str) -> sqlite3.Cursor:
        """Run a statement in its own transaction, unless a transaction() block is open."""
        if self._in_transaction:
            return run()
        try:
            _ = self.conn.execute("BEGIN")
            cursor: sqlite3.Cursor = run()
            self.conn.commit()
            return cursor
        except sqlite3.Error as e:
            self.conn.rollback()
            self.logger.error(f"Database error during {operation}: {e}", exc_info=True)
            raise

    def execute(self, query: str, params: Params | None = None) -> sqlite3.Cursor:
        """Execute one statement with positional (?) or named (:param) placeholders."""
        params = params if params is not None else ()
        self._check_placeholders(query, params)
        self.logger.debug(f"Executing SQL:\n{query}\nParameters: {params}")
        return self._autocommit(lambda: self.cursor.execute(query, params), "execute")

    def executemany(self, query: str, param_list: Sequence[Params]) -> sqlite3.Cursor:
        """Execute one statement per parameter set, all committed together."""
        if not param_list:
            self.logger.warning("executemany called with an empty parameter list.")
            return self.cursor
        for params in param_list:
            self._check_placeholders(query, params)

        self.logger.debug(f"Executing SQL for {len(param_list)} rows:\n{query}")
        cursor = self._autocommit(lambda: self.cursor.executemany(query, param_list), "executemany")
        self.logger.debug(f"Wrote {cursor.rowcount} rows")
        return cursor

    @contextmanager
    def transaction(self) -> Iterator[Self]:
        """Group several statements into one atomic unit of work."""
        if self._in_transaction:
            # Nested blocks join the outer transaction
            yield self
            return

        _ = self.conn.execute("BEGIN")
        self._in_transaction = True
        try:
            yield self
        except Exception:
            self._in_transaction = False
            self.rollback()
            raise
        self._in_transaction = False
        self.commit()

    def commit(self) -> None:
        self.conn.commit()
        self.logger.debug("Database changes committed.")

    def rollback(self) -> None:
        self.conn.rollback()
        self.logger.warning("Database changes rolled back.")

    def query_one(self, query: str, params: Params | None = None) -> sqlite3.Row | None:
        return self.execute(query, params).fetchone()

    def query_all(self, query: str, params: Params | None = None) -> list[sqlite3.Row]:
        return self.execute(query, params).fetchall()

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        """Roll back on error, otherwise commit; always close the connection."""
        if exc_type:
            self.rollback()
        else:
            self.commit()
        self.close()

    def create_tables_if_not_exists(self) -> None:
        # Funds that can be held in portfolios
        _ = self.execute("""
        CREATE TABLE IF NOT EXISTS funds (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            isin TEXT,
            symbol TEXT,
            currency TEXT NOT NULL,
            exchange TEXT NOT NULL,
            dividend_type TEXT NOT NULL DEFAULT 'NONE'
        );
        """)
        _ = self.execute("""
        CREATE TABLE IF NOT EXISTS portfolios (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            is_archived INTEGER NOT NULL DEFAULT 0,
            exclude_from_overview INTEGER NOT NULL DEFAULT 0
        );
        """)
        # Links a fund to a portfolio (a holding)
        _ = self.execute("""
        CREATE TABLE IF NOT EXISTS portfolio_funds (
            id TEXT PRIMARY KEY,
            portfolio_id TEXT NOT NULL,
            fund_id TEXT NOT NULL,
            UNIQUE(portfolio_id, fund_id),
            FOREIGN KEY(portfolio_id) REFERENCES portfolios(id),
            FOREIGN KEY(fund_id) REFERENCES funds(id)
        );
        """)
        _ = self.execute("""
        CREATE TABLE IF NOT EXISTS transactions (
            id TEXT PRIMARY KEY,
            portfolio_fund_id TEXT NOT NULL,
            date TEXT NOT NULL,
            type TEXT NOT NULL, -- 'buy', 'sell', 'dividend-reinvestment'
            shares REAL NOT NULL,
            cost_per_share REAL NOT NULL,
            FOREIGN KEY(portfolio_fund_id) REFERENCES portfolio_funds(id)
        );
        """)
        _ = self.execute("""
        CREATE TABLE IF NOT EXISTS dividends (
            id TEXT PRIMARY KEY,
            fund_id TEXT NOT NULL,
            portfolio_fund_id TEXT NOT NULL,
            record_date TEXT NOT NULL,
            ex_dividend_date TEXT NOT NULL,
            dividend_per_share REAL NOT NULL,
            shares_owned REAL NOT NULL,
            total_amount REAL NOT NULL,
            reinvestment_status TEXT NOT NULL,
            buy_order_date TEXT,
            reinvestment_shares REAL,
            reinvestment_price REAL,
            reinvestment_transaction_id TEXT,
            UNIQUE(portfolio_fund_id, ex_dividend_date),
            FOREIGN KEY(fund_id) REFERENCES funds(id),
            FOREIGN KEY(portfolio_fund_id) REFERENCES portfolio_funds(id),
            FOREIGN KEY(reinvestment_transaction_id) REFERENCES transactions(id)
        );
        """)
        _ = self.execute("""
        CREATE TABLE IF NOT EXISTS fund_prices (
            id TEXT PRIMARY KEY,
            fund_id TEXT NOT NULL,
            date TEXT NOT NULL,
            price REAL NOT NULL,
            UNIQUE(fund_id, date),
            FOREIGN KEY(fund_id) REFERENCES funds(id)
        );
        """)
        # One record per sell transaction
        _ = self.execute("""
        CREATE TABLE IF NOT EXISTS realized_gain_loss (
            id TEXT PRIMARY KEY,
            portfolio_id TEXT NOT NULL,
            fund_id TEXT NOT NULL,
            transaction_id TEXT NOT NULL UNIQUE,
            transaction_date TEXT NOT NULL,
            shares_sold REAL NOT NULL,
            cost_basis REAL NOT NULL,
            sale_proceeds REAL NOT NULL,
            realized_gain_loss REAL NOT NULL,
            FOREIGN KEY(transaction_id) REFERENCES transactions(id)
        );
        """)
        # Cached daily valuation per holding
        _ = self.execute("""
        CREATE TABLE IF NOT EXISTS fund_history_materialized (
            portfolio_fund_id TEXT NOT NULL,
            fund_id TEXT NOT NULL,
            date TEXT NOT NULL,
            shares REAL NOT NULL,
            price REAL NOT NULL,
            value REAL NOT NULL,
            cost REAL NOT NULL,
            dividends REAL NOT NULL,
            realized_gain REAL NOT NULL,
            unrealized_gain REAL NOT NULL,
            PRIMARY KEY(portfolio_fund_id, date)
        );
        """)
        _ = self.execute(
            "CREATE INDEX IF NOT EXISTS idx_transactions_pf_date ON transactions(portfolio_fund_id, date);"
        )
        _ = self.execute(
            "CREATE INDEX IF NOT EXISTS idx_fund_prices_fund_date ON fund_prices(fund_id, date);"
        )
        _ = self.execute(
            "CREATE INDEX IF NOT EXISTS idx_dividends_pf ON dividends(portfolio_fund_id);"
        )
        _ = self.execute(
            "CREATE INDEX IF NOT EXISTS idx_materialized_date ON fund_history_materialized(date);"
        )
