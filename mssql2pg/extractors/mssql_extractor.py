"""SQL Server extractor built on pyodbc."""

import logging
import struct
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional, Sequence

import pyodbc

from .base import BaseExtractor
from ..errors import ConnectivityError, MigrationError, SchemaError
from ..models.connection import SourceConnectionConfig
from ..models.schema import ColumnDescriptor, TableSchema
from ..services.identifiers import mssql_column_list, mssql_qualified_name

logger = logging.getLogger(__name__)

# ODBC type code of datetimeoffset; pyodbc has no built-in reader for it
SQL_SS_TIMESTAMPOFFSET = -155

# Types whose CHARACTER_MAXIMUM_LENGTH is part of the declared type
LENGTH_TYPES = ("char", "nchar", "varchar", "nvarchar", "binary", "varbinary")
PRECISION_TYPES = ("decimal", "numeric")

CONNECTION_ERROR_MARKERS = (
    "TCP Provider",
    "Named Pipes Provider",
    "Login timeout expired",
    "Could not open a connection",
)

CONNECTION_TROUBLESHOOTING = (
    "\n\nTroubleshooting:\n"
    "1. Enable TCP/IP in SQL Server Configuration Manager\n"
    "2. Restart SQL Server service after enabling TCP/IP\n"
    "3. For named instances, use format: hostname\\instancename (leave port empty)\n"
    "4. Check that the ODBC driver named in the configuration is installed"
)

LIST_TABLES_SQL = """
    SELECT TABLE_NAME
    FROM INFORMATION_SCHEMA.TABLES
    WHERE TABLE_TYPE = 'BASE TABLE'
    AND TABLE_SCHEMA = ?
    ORDER BY TABLE_NAME
"""

DESCRIBE_TABLE_SQL = """
    SELECT
        COLUMN_NAME,
        DATA_TYPE,
        CHARACTER_MAXIMUM_LENGTH,
        NUMERIC_PRECISION,
        NUMERIC_SCALE,
        IS_NULLABLE,
        COLUMN_DEFAULT
    FROM INFORMATION_SCHEMA.COLUMNS
    WHERE TABLE_SCHEMA = ?
    AND TABLE_NAME = ?
    ORDER BY ORDINAL_POSITION
"""


def explain_connection_error(message: str) -> str:
    """Append troubleshooting steps to network-level connection failures."""
    if any(marker in message for marker in CONNECTION_ERROR_MARKERS):
        return message + CONNECTION_TROUBLESHOOTING
    return message


def datetimeoffset_to_datetime(value: Optional[bytes]) -> Optional[datetime]:
    """
    Decode the raw SQL_SS_TIMESTAMPOFFSET_STRUCT into an aware datetime.

    Layout: year, month, day, hour, minute, second (shorts), fraction in
    nanoseconds (unsigned int), timezone hour and minute offsets (shorts).
    """
    if value is None:
        return None
    year, month, day, hour, minute, second, fraction, tz_hour, tz_minute = struct.unpack("<6hI2h", value)
    return datetime(
        year, month, day, hour, minute, second, fraction // 1000,
        tzinfo=timezone(timedelta(hours=tz_hour, minutes=tz_minute)),
    )


def compose_source_type(
    data_type: str,
    max_length: Optional[int] = None,
    precision: Optional[int] = None,
    scale: Optional[int] = None
) -> str:
    """
    Rebuild the declared type string from INFORMATION_SCHEMA parts.

    nvarchar + 50 -> "nvarchar(50)", nvarchar + -1 -> "nvarchar(max)",
    decimal + 10, 2 -> "decimal(10,2)", anything else stays bare.
    """
    data_type = data_type.lower()
    if data_type in LENGTH_TYPES:
        if max_length == -1:
            return f"{data_type}(max)"
        if max_length:
            return f"{data_type}({max_length})"
    elif data_type in PRECISION_TYPES and precision is not None:
        return f"{data_type}({precision},{scale or 0})"
    return data_type


class MSSQLExtractor(BaseExtractor):
    """Reads catalog metadata and table pages from SQL Server."""

    def __init__(self, config: SourceConnectionConfig):
        super().__init__(config)
        self._conn = None

    def connect(self) -> None:
        if self._conn is not None:
            return
        try:
            self._conn = pyodbc.connect(self.config.to_connection_string())
        except pyodbc.Error as e:
            raise ConnectivityError(
                explain_connection_error(str(e)),
                details={"host": self.config.host, "database": self.config.database},
            ) from e
        self._conn.add_output_converter(SQL_SS_TIMESTAMPOFFSET, datetimeoffset_to_datetime)
        logger.info(f"Connected to SQL Server {self.config.server}/{self.config.database}")

    def close(self) -> None:
        if self._conn is None:
            return
        try:
            self._conn.close()
            logger.info("SQL Server connection closed")
        finally:
            self._conn = None

    def _query(self, sql: str, params: Sequence[Any] = ()) -> List[Any]:
        """Run a query on the job connection and fetch every row."""
        if self._conn is None:
            raise ConnectivityError("SQL Server connection is not open")
        cursor = self._conn.cursor()
        try:
            cursor.execute(sql, *params)
            return cursor.fetchall()
        finally:
            cursor.close()

    def test_connection(self) -> str:
        opened_here = self._conn is None
        self.connect()
        try:
            rows = self._query("SELECT @@VERSION AS version")
            return rows[0][0] if rows else ""
        except pyodbc.Error as e:
            raise ConnectivityError(explain_connection_error(str(e))) from e
        finally:
            if opened_here:
                self.close()

    def list_tables(self) -> List[str]:
        try:
            rows = self._query(LIST_TABLES_SQL, (self.config.schema,))
        except pyodbc.Error as e:
            raise SchemaError(f"Error getting tables: {e}") from e
        return [row[0] for row in rows]

    def describe_table(self, table_name: str) -> TableSchema:
        try:
            rows = self._query(DESCRIBE_TABLE_SQL, (self.config.schema, table_name))
        except pyodbc.Error as e:
            raise SchemaError(f"Error getting schema for {table_name}: {e}", details={"table": table_name}) from e

        if not rows:
            raise SchemaError(
                f"Table {self.config.schema}.{table_name} not found or has no columns",
                details={"table": table_name},
            )

        columns = []
        for name, data_type, max_length, precision, scale, is_nullable, default in rows:
            columns.append(ColumnDescriptor(
                name=name,
                source_type=compose_source_type(data_type, max_length, precision, scale),
                nullable=str(is_nullable).upper() == "YES",
                default_expression=default,
                precision=precision,
                scale=scale,
                max_length=max_length,
            ))

        logger.debug(f"Described {table_name}: {len(columns)} columns")
        return TableSchema(table_name=table_name, columns=tuple(columns))

    def count_rows(self, schema: TableSchema) -> int:
        table = mssql_qualified_name(self.config.schema, schema.table_name)
        try:
            rows = self._query(f"SELECT COUNT_BIG(*) AS total FROM {table}")
        except pyodbc.Error as e:
            raise MigrationError(f"Error counting rows of {schema.table_name}: {e}") from e
        return int(rows[0][0])

    def fetch_page(self, schema: TableSchema, offset: int, limit: int) -> List[Sequence[Any]]:
        # No stable sort key: ORDER BY (SELECT NULL) keeps the engine's natural order
        table = mssql_qualified_name(self.config.schema, schema.table_name)
        sql = (
            f"SELECT {mssql_column_list(schema.column_names)} FROM {table} "
            "ORDER BY (SELECT NULL) OFFSET ? ROWS FETCH NEXT ? ROWS ONLY"
        )
        try:
            rows = self._query(sql, (offset, limit))
        except pyodbc.Error as e:
            raise MigrationError(
                f"Error reading {schema.table_name} at offset {offset}: {e}",
                details={"table": schema.table_name, "offset": offset},
            ) from e
        return [tuple(row) for row in rows]
