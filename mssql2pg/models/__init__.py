"""Data models for the migration engine."""

from .connection import (
    SourceConnectionConfig,
    TargetConnectionConfig,
)
from .schema import (
    ColumnDescriptor,
    TableSchema,
)
from .migration import (
    MigrationJob,
    MigrationOptions,
    MigrationStatus,
    MigrationTotals,
    TableMigrationResult,
    TableStatus,
)

__all__ = [
    "SourceConnectionConfig",
    "TargetConnectionConfig",
    "ColumnDescriptor",
    "TableSchema",
    "MigrationJob",
    "MigrationOptions",
    "MigrationStatus",
    "MigrationTotals",
    "TableMigrationResult",
    "TableStatus",
]
