"""Migration job and result models."""

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
import uuid

from .connection import SourceConnectionConfig, TargetConnectionConfig

DEFAULT_BATCH_SIZE = 1000


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class MigrationStatus(str, Enum):
    """Status of a migration job."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (MigrationStatus.COMPLETED, MigrationStatus.CANCELLED, MigrationStatus.FAILED)


class TableStatus(str, Enum):
    """Outcome of copying one table."""
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class TableMigrationResult:
    """Result of migrating a single table."""
    table_name: str
    rows_total: int = 0
    rows_migrated: int = 0
    errors: int = 0
    status: TableStatus = TableStatus.COMPLETED
    failure_reason: Optional[str] = None
    target_table: Optional[str] = None
    created_table: bool = False
    batches: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        """Get duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "tableName": self.table_name,
            "targetTable": self.target_table,
            "rowsTotal": self.rows_total,
            "rowsMigrated": self.rows_migrated,
            "errors": self.errors,
            "status": self.status.value,
            "failureReason": self.failure_reason,
            "createdTable": self.created_table,
            "batches": self.batches,
            "startedAt": _isoformat(self.started_at),
            "completedAt": _isoformat(self.completed_at),
            "durationSeconds": self.duration_seconds,
        }


@dataclass
class MigrationTotals:
    """Aggregate counters across all tables of a job."""
    tables_total: int = 0
    tables_completed: int = 0
    rows_total: int = 0
    rows_migrated: int = 0
    error_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "tablesTotal": self.tables_total,
            "tablesCompleted": self.tables_completed,
            "rowsTotal": self.rows_total,
            "rowsMigrated": self.rows_migrated,
            "errorCount": self.error_count,
        }


@dataclass
class MigrationOptions:
    """Execution options for a migration job."""
    batch_size: int = DEFAULT_BATCH_SIZE
    skip_existing_rows: bool = True
    table_mappings: Dict[str, str] = field(default_factory=dict)  # Source table -> target table

    def validate(self) -> None:
        if not isinstance(self.batch_size, int) or isinstance(self.batch_size, bool) or self.batch_size < 1:
            raise ValueError(f"batch_size must be a positive integer, got {self.batch_size!r}")

    def target_table_for(self, table_name: str) -> str:
        """Target table name: explicit mapping, else the lower-cased source name."""
        mapped = self.table_mappings.get(table_name)
        return mapped if mapped else table_name.lower()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "batchSize": self.batch_size,
            "skipExisting": self.skip_existing_rows,
            "tableMappings": dict(self.table_mappings),
        }


@dataclass
class MigrationJob:
    """One end-to-end run across a set of tables."""
    source_config: SourceConnectionConfig
    target_config: TargetConnectionConfig
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    tables: List[str] = field(default_factory=list)  # Empty means every base table
    options: MigrationOptions = field(default_factory=MigrationOptions)
    status: MigrationStatus = MigrationStatus.PENDING

    per_table_results: Dict[str, TableMigrationResult] = field(default_factory=OrderedDict)
    totals: MigrationTotals = field(default_factory=MigrationTotals)

    # Timing
    created_at: datetime = field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    # Progress
    current_table: Optional[str] = None
    error: Optional[str] = None
    cancel_requested: bool = False

    @property
    def progress(self) -> int:
        """Percentage of tables processed."""
        if not self.totals.tables_total:
            return 0
        return round(self.totals.tables_completed / self.totals.tables_total * 100)

    @property
    def duration_seconds(self) -> Optional[float]:
        """Get duration in seconds."""
        if self.started_at and self.ended_at:
            return (self.ended_at - self.started_at).total_seconds()
        return None

    def add_batch(self, rows_migrated: int, errors: int) -> None:
        """Fold a committed batch into the running totals."""
        self.totals.rows_migrated += rows_migrated
        self.totals.error_count += errors

    def record_result(self, result: TableMigrationResult) -> None:
        """
        Store a finished table result and count the table as processed.

        Row counts arrive batch by batch through add_batch; a failed table
        adds one more error on top of its row errors.
        """
        self.per_table_results[result.table_name] = result
        self.totals.tables_completed += 1
        if result.status == TableStatus.FAILED:
            self.totals.error_count += 1

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "status": self.status.value,
            "mssqlConfig": self.source_config.to_dict(),
            "pgConfig": self.target_config.to_dict(),
            "tables": list(self.tables),
            "options": self.options.to_dict(),
            "currentTable": self.current_table,
            "progress": self.progress,
            "totals": self.totals.to_dict(),
            "perTableResults": {name: r.to_dict() for name, r in self.per_table_results.items()},
            "error": self.error,
            "cancelRequested": self.cancel_requested,
            "createdAt": _isoformat(self.created_at),
            "startedAt": _isoformat(self.started_at),
            "endedAt": _isoformat(self.ended_at),
            "durationSeconds": self.duration_seconds,
        }
