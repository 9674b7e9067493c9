"""Identifier quoting shared by every generated SQL statement."""

from typing import Iterable


def quote_pg_identifier(name: str) -> str:
    """Quote a PostgreSQL identifier: "name", with embedded quotes doubled."""
    return '"' + name.replace('"', '""') + '"'


def quote_mssql_identifier(name: str) -> str:
    """Quote a SQL Server identifier: [name], with embedded brackets doubled."""
    return "[" + name.replace("]", "]]") + "]"


def mssql_qualified_name(schema: str, table: str) -> str:
    return f"{quote_mssql_identifier(schema)}.{quote_mssql_identifier(table)}"


def pg_column_list(columns: Iterable[str]) -> str:
    return ", ".join(quote_pg_identifier(c) for c in columns)


def mssql_column_list(columns: Iterable[str]) -> str:
    return ", ".join(quote_mssql_identifier(c) for c in columns)
