"""Tests for the PostgreSQL loader (psycopg2 pool mocked)."""

from unittest.mock import MagicMock, patch

import psycopg2
import pytest

from mssql2pg.errors import BatchTransactionError, ConnectivityError, MigrationError
from mssql2pg.loaders.postgres_loader import PostgresLoader, build_insert_sql


class UniqueViolation(psycopg2.Error):
    pgcode = "23505"


class NotNullViolation(psycopg2.Error):
    pgcode = "23502"


@pytest.fixture
def cursor():
    return MagicMock()


@pytest.fixture
def connection(cursor):
    conn = MagicMock()
    conn.closed = 0
    conn.cursor.return_value.__enter__.return_value = cursor
    return conn


@pytest.fixture
def pool(connection):
    pool = MagicMock()
    pool.getconn.return_value = connection
    return pool


@pytest.fixture
def loader(target_config, pool):
    with patch("psycopg2.pool.ThreadedConnectionPool", return_value=pool) as pool_cls:
        loader = PostgresLoader(target_config)
        loader.connect()
        loader.mock_pool_cls = pool_cls
        yield loader


def statements(cursor):
    return [c[0][0] for c in cursor.execute.call_args_list]


def test_connect_creates_pool(loader, target_config):
    kwargs = loader.mock_pool_cls.call_args[1]
    assert kwargs["maxconn"] == target_config.max_connections
    assert kwargs["dbname"] == "app"
    assert kwargs["sslmode"] == "disable"


def test_connect_failure(target_config):
    with patch("psycopg2.pool.ThreadedConnectionPool", side_effect=psycopg2.OperationalError("could not connect")):
        with pytest.raises(ConnectivityError):
            PostgresLoader(target_config).connect()


def test_close_closes_pool(loader, pool):
    loader.close()

    pool.closeall.assert_called_once()
    assert loader.pool is None


def test_build_insert_sql_quotes_identifiers():
    sql = build_insert_sql("users", ["Id", 'Odd"Name'])
    assert sql == 'INSERT INTO "users" ("Id", "Odd""Name") VALUES (%s, %s)'


def test_build_insert_sql_escapes_percent_in_identifiers():
    sql = build_insert_sql("sales%2024", ["Pct%"])

    assert sql == 'INSERT INTO "sales%%2024" ("Pct%%") VALUES (%s)'
    assert sql % ("1",) == 'INSERT INTO "sales%2024" ("Pct%") VALUES (1)'


def test_table_exists_lowercases(loader, cursor, connection, pool):
    cursor.fetchone.return_value = (True,)

    assert loader.table_exists("Users") is True
    assert cursor.execute.call_args[0][1] == ("users",)
    connection.commit.assert_called_once()
    pool.putconn.assert_called_once_with(connection, close=False)


def test_execute_failure_rolls_back(loader, cursor, connection):
    cursor.execute.side_effect = psycopg2.ProgrammingError("syntax error")

    with pytest.raises(MigrationError):
        loader.execute("CREATE TABLE broken (")
    connection.rollback.assert_called_once()


def test_load_batch_uses_savepoint_per_row(loader, cursor, connection):
    result = loader.load_batch("users", ["id", "name"], [(1, "a"), (2, "b")])

    assert result.total_succeeded == 2
    assert statements(cursor) == [
        "SAVEPOINT mssql2pg_row",
        'INSERT INTO "users" ("id", "name") VALUES (%s, %s)',
        "RELEASE SAVEPOINT mssql2pg_row",
        "SAVEPOINT mssql2pg_row",
        'INSERT INTO "users" ("id", "name") VALUES (%s, %s)',
        "RELEASE SAVEPOINT mssql2pg_row",
    ]
    connection.commit.assert_called_once()


def test_failed_row_rolls_back_to_savepoint(loader, cursor, connection):
    def execute(sql, params=None):
        if sql.startswith("INSERT") and params[0] == 2:
            raise NotNullViolation('null value in column "name"')

    cursor.execute.side_effect = execute

    result = loader.load_batch("users", ["id", "name"], [(1, "a"), (2, None), (3, "c")])

    assert result.total_succeeded == 2
    assert result.total_failed == 1
    assert result.errors[0]["row"] == 1
    assert "ROLLBACK TO SAVEPOINT mssql2pg_row" in statements(cursor)
    connection.commit.assert_called_once()


def test_unique_violation_skipped_when_skip_existing(loader, cursor):
    def execute(sql, params=None):
        if sql.startswith("INSERT") and params[0] == 1:
            raise UniqueViolation('duplicate key value violates unique constraint "users_pkey"')

    cursor.execute.side_effect = execute

    skipped = loader.load_batch("users", ["id", "name"], [(1, "a"), (2, "b")], skip_existing=True)
    counted = loader.load_batch("users", ["id", "name"], [(1, "a"), (2, "b")], skip_existing=False)

    assert (skipped.total_succeeded, skipped.total_failed, skipped.total_skipped) == (1, 0, 1)
    assert (counted.total_succeeded, counted.total_failed, counted.total_skipped) == (1, 1, 0)


def test_commit_failure_raises_batch_error(loader, connection, pool):
    connection.commit.side_effect = psycopg2.OperationalError("server closed the connection unexpectedly")

    with pytest.raises(BatchTransactionError):
        loader.load_batch("users", ["id", "name"], [(1, "a")])

    connection.rollback.assert_called_once()
    pool.putconn.assert_called_once()


def test_lost_savepoint_aborts_batch(loader, cursor, connection):
    cursor.execute.side_effect = psycopg2.InterfaceError("connection already closed")

    with pytest.raises(BatchTransactionError):
        loader.load_batch("users", ["id", "name"], [(1, "a"), (2, "b")])

    connection.commit.assert_not_called()
    connection.rollback.assert_called_once()


def test_test_connection_returns_version(target_config, pool, cursor):
    cursor.fetchone.return_value = ("PostgreSQL 15.4",)
    with patch("psycopg2.pool.ThreadedConnectionPool", return_value=pool):
        version = PostgresLoader(target_config).test_connection()

    assert version == "PostgreSQL 15.4"
    pool.closeall.assert_called_once()
