"""PostgreSQL loader built on a psycopg2 connection pool."""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, Sequence, Tuple

import psycopg2
import psycopg2.pool
from psycopg2 import errorcodes

from .base import BaseLoader, BatchTransaction
from ..errors import BatchTransactionError, ConnectivityError, MigrationError, RowError
from ..models.connection import TargetConnectionConfig
from ..services.identifiers import pg_column_list, quote_pg_identifier

logger = logging.getLogger(__name__)

ROW_SAVEPOINT = "mssql2pg_row"

TABLE_EXISTS_SQL = """
    SELECT EXISTS (
        SELECT FROM information_schema.tables
        WHERE table_schema = 'public'
        AND table_name = %s
    )
"""


def build_insert_sql(table: str, columns: Sequence[str]) -> str:
    placeholders = ", ".join(["%s"] * len(columns))
    # psycopg2 reads every % as a marker once params are passed
    target = quote_pg_identifier(table).replace("%", "%%")
    column_list = pg_column_list(columns).replace("%", "%%")
    return f"INSERT INTO {target} ({column_list}) VALUES ({placeholders})"


class PostgresBatch(BatchTransaction):
    """
    A batch transaction on one pooled connection.

    Each row runs under its own savepoint: PostgreSQL aborts the whole
    transaction on a failed statement, so the savepoint is rolled back to
    keep the remaining rows of the batch insertable.
    """

    def __init__(self, connection):
        self._conn = connection
        self._insert_sql: Dict[Tuple[str, Tuple[str, ...]], str] = {}

    def _sql_for(self, table: str, columns: Sequence[str]) -> str:
        key = (table, tuple(columns))
        if key not in self._insert_sql:
            self._insert_sql[key] = build_insert_sql(table, columns)
        return self._insert_sql[key]

    def insert_row(self, table: str, columns: Sequence[str], values: Sequence[Any]) -> None:
        sql = self._sql_for(table, columns)
        with self._conn.cursor() as cursor:
            try:
                cursor.execute(f"SAVEPOINT {ROW_SAVEPOINT}")
            except psycopg2.Error as e:
                raise BatchTransactionError(f"Batch transaction lost: {e}") from e

            try:
                cursor.execute(sql, list(values))
            except psycopg2.Error as e:
                try:
                    cursor.execute(f"ROLLBACK TO SAVEPOINT {ROW_SAVEPOINT}")
                except psycopg2.Error as rollback_error:
                    raise BatchTransactionError(f"Batch transaction lost: {rollback_error}") from e
                raise RowError(
                    str(e).strip(),
                    unique_violation=e.pgcode == errorcodes.UNIQUE_VIOLATION,
                    details={"pgcode": e.pgcode},
                ) from e

            try:
                cursor.execute(f"RELEASE SAVEPOINT {ROW_SAVEPOINT}")
            except psycopg2.Error as e:
                raise BatchTransactionError(f"Batch transaction lost: {e}") from e


class PostgresLoader(BaseLoader):
    """Loads rows into PostgreSQL through a ThreadedConnectionPool."""

    def __init__(self, config: TargetConnectionConfig):
        super().__init__(config)
        self.pool: Optional[psycopg2.pool.ThreadedConnectionPool] = None
        self._pool_lock = threading.RLock()

    def connect(self) -> None:
        with self._pool_lock:
            if self.pool is not None:
                return
            try:
                self.pool = psycopg2.pool.ThreadedConnectionPool(
                    minconn=1,
                    maxconn=self.config.max_connections,
                    **self.config.to_connection_params()
                )
            except psycopg2.Error as e:
                raise ConnectivityError(
                    str(e).strip(),
                    details={"host": self.config.host, "database": self.config.database},
                ) from e
        logger.info(f"Connected to PostgreSQL {self.config.host}:{self.config.port}/{self.config.database}")

    def close(self) -> None:
        with self._pool_lock:
            if self.pool is None:
                return
            try:
                self.pool.closeall()
                logger.info("PostgreSQL connection pool closed")
            finally:
                self.pool = None

    def _acquire(self):
        with self._pool_lock:
            if self.pool is None:
                raise ConnectivityError("PostgreSQL connection pool is not open")
            return self.pool.getconn()

    def _release(self, connection) -> None:
        with self._pool_lock:
            if self.pool is not None:
                self.pool.putconn(connection, close=bool(connection.closed))

    @staticmethod
    def _rollback(connection) -> None:
        try:
            connection.rollback()
        except psycopg2.Error as e:
            logger.warning(f"Rollback failed: {e}")

    @contextmanager
    def _connection(self) -> Iterator[Any]:
        """Check out a connection for one short statement and commit it."""
        connection = self._acquire()
        try:
            yield connection
            connection.commit()
        except Exception:
            self._rollback(connection)
            raise
        finally:
            self._release(connection)

    def _fetchone(self, sql: str, params: Sequence[Any] = ()) -> Optional[Tuple[Any, ...]]:
        try:
            with self._connection() as connection:
                with connection.cursor() as cursor:
                    cursor.execute(sql, params)
                    return cursor.fetchone()
        except psycopg2.Error as e:
            raise MigrationError(str(e).strip()) from e

    def test_connection(self) -> str:
        opened_here = self.pool is None
        self.connect()
        try:
            row = self._fetchone("SELECT version()")
            return row[0] if row else ""
        except MigrationError as e:
            raise ConnectivityError(e.message) from e
        finally:
            if opened_here:
                self.close()

    def table_exists(self, table: str) -> bool:
        row = self._fetchone(TABLE_EXISTS_SQL, (table.lower(),))
        return bool(row and row[0])

    def execute(self, sql: str) -> None:
        try:
            with self._connection() as connection:
                with connection.cursor() as cursor:
                    cursor.execute(sql)
        except psycopg2.Error as e:
            raise MigrationError(str(e).strip()) from e

    @contextmanager
    def transaction(self) -> Iterator[PostgresBatch]:
        connection = self._acquire()
        try:
            yield PostgresBatch(connection)
            connection.commit()
        except psycopg2.Error as e:
            self._rollback(connection)
            raise BatchTransactionError(f"Batch transaction failed: {str(e).strip()}") from e
        except Exception:
            self._rollback(connection)
            raise
        finally:
            self._release(connection)
