"""Target table provisioning."""

import logging
from dataclasses import dataclass
from typing import Optional

from ..errors import MigrationError, SchemaError
from ..loaders.base import BaseLoader
from ..models.schema import ColumnDescriptor, TableSchema
from .identifiers import quote_pg_identifier
from .type_mapper import map_type

logger = logging.getLogger(__name__)


@dataclass
class ProvisionResult:
    """Outcome of ensure_table."""
    target_table: str
    created: bool


def column_definition(column: ColumnDescriptor) -> str:
    """Render one column for CREATE TABLE; the default expression is copied verbatim."""
    parts = [quote_pg_identifier(column.name), map_type(column.source_type)]
    if not column.nullable:
        parts.append("NOT NULL")
    if column.default_expression:
        parts.append(f"DEFAULT {column.default_expression}")
    return " ".join(parts)


def build_create_table_sql(schema: TableSchema, target_table: str) -> str:
    columns = ",\n    ".join(column_definition(c) for c in schema.columns)
    return f"CREATE TABLE IF NOT EXISTS {quote_pg_identifier(target_table)} (\n    {columns}\n)"


class TableProvisioner:
    """
    Creates target tables that do not exist yet.

    Existing tables are never altered or compared with the source schema.
    """

    def __init__(self, loader: BaseLoader):
        self.loader = loader

    def ensure_table(self, schema: TableSchema, target_table: Optional[str] = None) -> ProvisionResult:
        """
        Make sure the target table exists.

        Args:
            schema: Source table schema
            target_table: Target table name (defaults to the lower-cased source name)

        Returns:
            ProvisionResult; created is False when the table was already there

        Raises:
            SchemaError: If CREATE TABLE fails
        """
        target_table = (target_table or schema.table_name).lower()

        try:
            exists = self.loader.table_exists(target_table)
        except MigrationError as e:
            logger.warning(f"Could not check whether {target_table} exists, assuming it does not: {e}")
            exists = False

        if exists:
            logger.info(f"Table {target_table} already exists in PostgreSQL, skipping creation")
            return ProvisionResult(target_table=target_table, created=False)

        sql = build_create_table_sql(schema, target_table)
        logger.debug(f"Creating table {target_table}:\n{sql}")
        try:
            self.loader.execute(sql)
        except MigrationError as e:
            raise SchemaError(
                f"Error creating table {target_table}: {e}",
                details={"table": schema.table_name},
            ) from e

        logger.info(f"Created table: {target_table}")
        return ProvisionResult(target_table=target_table, created=True)
