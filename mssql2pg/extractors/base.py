"""Base extractor interface for source databases."""

from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence
import logging

from ..models.schema import TableSchema

logger = logging.getLogger(__name__)


class BaseExtractor(ABC):
    """
    Base class for source database extractors.

    An extractor owns one long-lived connection to the source for the
    lifetime of a job. It reads the catalog (table list, column metadata)
    and serves table rows page by page.
    """

    def __init__(self, config: Any):
        """
        Initialize the extractor.

        Args:
            config: Source connection configuration
        """
        self.config = config

    @abstractmethod
    def connect(self) -> None:
        """
        Open the source connection.

        Raises:
            ConnectivityError: If the source cannot be reached
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close the source connection if it is open."""
        pass

    @abstractmethod
    def test_connection(self) -> str:
        """
        Check connectivity.

        Returns:
            The server version string
        """
        pass

    @abstractmethod
    def list_tables(self) -> List[str]:
        """List base tables of the configured schema, ordered by name."""
        pass

    @abstractmethod
    def describe_table(self, table_name: str) -> TableSchema:
        """
        Read the column metadata of a table.

        Raises:
            SchemaError: If the table cannot be described
        """
        pass

    @abstractmethod
    def count_rows(self, schema: TableSchema) -> int:
        """Count the rows of a table."""
        pass

    @abstractmethod
    def fetch_page(self, schema: TableSchema, offset: int, limit: int) -> List[Sequence[Any]]:
        """
        Fetch one page of rows in natural order.

        Args:
            schema: Table to read; values come back in schema column order
            offset: Number of rows to skip
            limit: Maximum rows to return

        Returns:
            List of row value sequences (empty when exhausted)
        """
        pass

    def __enter__(self) -> "BaseExtractor":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        self.close()
        return None
