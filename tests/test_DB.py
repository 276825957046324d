import sqlite3
from unittest.mock import patch

import pytest

from portfolio_tracker.db import Database


def _insert_fund(db: Database, fund_id: str, name: str) -> None:
    _ = db.execute(
        "INSERT INTO funds (id, name, currency, exchange) VALUES (?, ?, ?, ?)",
        (fund_id, name, "EUR", "AMS"),
    )


def test_create_tables(test_db: Database):
    """Test tables are created correctly."""
    tables = test_db.query_all("SELECT name FROM sqlite_master WHERE type='table'")
    table_names = {table["name"] for table in tables}

    assert {
        "funds",
        "portfolios",
        "portfolio_funds",
        "transactions",
        "dividends",
        "fund_prices",
        "realized_gain_loss",
        "fund_history_materialized",
    } <= table_names


def test_create_tables_is_idempotent(test_db: Database):
    test_db.create_tables_if_not_exists()
    _insert_fund(test_db, "f1", "Global Index")
    assert test_db.query_one("SELECT name FROM funds WHERE id = ?", ("f1",))["name"] == "Global Index"


def test_execute_with_named_params(test_db: Database):
    """Test executing a SQL query with named parameters."""
    _ = test_db.execute(
        "INSERT INTO funds (id, name, currency, exchange) VALUES (:id, :name, :currency, :exchange)",
        {"id": "f2", "name": "Bond Fund", "currency": "EUR", "exchange": "AMS"},
    )

    result = test_db.query_one("SELECT * FROM funds WHERE id = :id", {"id": "f2"})

    assert result is not None
    assert result["name"] == "Bond Fund"
    assert result["dividend_type"] == "NONE"


def test_execute_error_handling(test_db: Database):
    """Test error handling during SQL execution."""
    with pytest.raises(sqlite3.Error):
        _ = test_db.execute("SELECT * FROM non_existent_table")


def test_execute_mixed_params_error(test_db: Database):
    """Test that mixing parameter styles raises an error."""
    with pytest.raises(ValueError, match="Positional placeholders"):
        _ = test_db.execute("SELECT * FROM funds WHERE id = ?", {"id": "f1"})

    with pytest.raises(ValueError, match="Named placeholders"):
        _ = test_db.execute("SELECT * FROM funds WHERE id = :id", ["f1"])


def test_executemany(test_db: Database):
    """Test bulk insert with executemany."""
    funds = [
        ("a", "Alpha", "EUR", "AMS"),
        ("b", "Beta", "USD", "NYSE"),
        ("c", "Gamma", "GBP", "LSE"),
    ]
    _ = test_db.executemany(
        "INSERT INTO funds (id, name, currency, exchange) VALUES (?, ?, ?, ?)", funds
    )

    results = test_db.query_all("SELECT * FROM funds ORDER BY name")
    assert [row["name"] for row in results] == ["Alpha", "Beta", "Gamma"]


def test_executemany_mixed_params_error(test_db: Database):
    with pytest.raises(ValueError, match="Positional placeholders"):
        _ = test_db.executemany(
            "INSERT INTO funds (id, name) VALUES (?, ?)", [{"id": "x", "name": "X"}]
        )

    with pytest.raises(ValueError, match="Named placeholders"):
        _ = test_db.executemany("INSERT INTO funds (id, name) VALUES (:id, :name)", [["x", "X"]])


def test_transaction_commits_all_statements(test_db: Database):
    with test_db.transaction():
        _insert_fund(test_db, "t1", "First")
        _insert_fund(test_db, "t2", "Second")

    assert len(test_db.query_all("SELECT * FROM funds")) == 2


def test_transaction_rolls_back_on_error(test_db: Database):
    """A failure inside transaction() leaves no partial writes behind."""
    with pytest.raises(sqlite3.IntegrityError):
        with test_db.transaction():
            _insert_fund(test_db, "dup", "First")
            _insert_fund(test_db, "dup", "Duplicate primary key")

    assert test_db.query_one("SELECT * FROM funds WHERE id = ?", ("dup",)) is None


def test_nested_transaction_joins_outer(test_db: Database):
    with pytest.raises(RuntimeError):
        with test_db.transaction():
            _insert_fund(test_db, "n1", "Outer")
            with test_db.transaction():
                _insert_fund(test_db, "n2", "Inner")
            raise RuntimeError("abort")

    assert test_db.query_all("SELECT * FROM funds") == []


def test_foreign_keys_enforced(test_db: Database):
    with pytest.raises(sqlite3.IntegrityError):
        _ = test_db.execute(
            "INSERT INTO portfolio_funds (id, portfolio_id, fund_id) VALUES (?, ?, ?)",
            ("pf", "missing-portfolio", "missing-fund"),
        )


@patch("logging.Logger.error")
def test_error_logging(mock_error_log, test_db: Database):
    """Test that database errors are properly logged."""
    with pytest.raises(sqlite3.Error):
        test_db.execute("SELECT * FROM nonexistent_table")

    mock_error_log.assert_called()
    assert "Database error" in mock_error_log.call_args_list[0][0][0]
