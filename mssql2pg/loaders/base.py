"""Base loader interface for target databases."""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence
import logging

from ..errors import RowError

logger = logging.getLogger(__name__)


@dataclass
class LoadResult:
    """Result of loading one batch of rows inside one transaction."""
    table: str
    total_attempted: int = 0
    total_succeeded: int = 0
    total_failed: int = 0
    total_skipped: int = 0  # Duplicates skipped under skip-existing
    errors: List[Dict[str, Any]] = field(default_factory=list)


class BatchTransaction(ABC):
    """An open target transaction that rows are inserted into one at a time."""

    @abstractmethod
    def insert_row(self, table: str, columns: Sequence[str], values: Sequence[Any]) -> None:
        """
        Insert one row positionally.

        A failed insert must leave the transaction usable for the next row.

        Raises:
            RowError: If this row cannot be inserted
            BatchTransactionError: If the transaction itself is lost
        """
        pass


class BaseLoader(ABC):
    """
    Base class for target database loaders.

    Loaders own the target connection pool for a job. Every batch checks
    out one connection, uses it for one transaction and hands it back.
    """

    def __init__(self, config: Any):
        """
        Initialize the loader.

        Args:
            config: Target connection configuration
        """
        self.config = config

    @abstractmethod
    def connect(self) -> None:
        """
        Open the connection pool.

        Raises:
            ConnectivityError: If the target cannot be reached
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close every pooled connection."""
        pass

    @abstractmethod
    def test_connection(self) -> str:
        """Check connectivity and return the server version string."""
        pass

    @abstractmethod
    def table_exists(self, table: str) -> bool:
        """Check whether a table exists in the target."""
        pass

    @abstractmethod
    def execute(self, sql: str) -> None:
        """
        Execute a statement in its own transaction (used for DDL).

        Raises:
            MigrationError: If the statement fails
        """
        pass

    @abstractmethod
    @contextmanager
    def transaction(self) -> Iterator[BatchTransaction]:
        """
        Open one transaction on a pooled connection.

        Commits when the block exits normally, rolls back otherwise.

        Raises:
            BatchTransactionError: If the commit fails
        """
        pass

    def load_batch(
        self,
        table: str,
        columns: Sequence[str],
        rows: Sequence[Sequence[Any]],
        skip_existing: bool = True
    ) -> LoadResult:
        """
        Load a batch of rows in a single transaction.

        Row failures are isolated: the failing row is counted and the batch
        moves on to the next row.

        Args:
            table: Target table name
            columns: Column names, in the order of each row's values
            rows: Row values
            skip_existing: If True, duplicate-key rows are skipped, not counted as errors

        Returns:
            LoadResult with batch statistics
        """
        result = LoadResult(table=table)

        with self.transaction() as batch:
            for index, row in enumerate(rows):
                result.total_attempted += 1
                try:
                    batch.insert_row(table, columns, row)
                    result.total_succeeded += 1
                except RowError as e:
                    if e.unique_violation and skip_existing:
                        result.total_skipped += 1
                        continue
                    result.total_failed += 1
                    result.errors.append({
                        "row": index,
                        "error": e.message,
                    })

        return result

    def __enter__(self) -> "BaseLoader":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        self.close()
        return None
