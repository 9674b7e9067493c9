"""Batched table copy from the source extractor into the target loader."""

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Optional

from ..errors import BatchTransactionError
from ..extractors.base import BaseExtractor
from ..loaders.base import BaseLoader
from ..models.migration import DEFAULT_BATCH_SIZE, TableMigrationResult, TableStatus
from ..models.schema import TableSchema

logger = logging.getLogger(__name__)

MAX_LOGGED_ROW_ERRORS = 5  # Per table; later row errors are only counted


class BatchCopier:
    """
    Copies one table page by page.

    Pages are read with OFFSET/FETCH in the source's natural order and
    written one target transaction per page. Pages are strictly sequential:
    the next page is fetched only after the previous one has committed.
    """

    def __init__(self, extractor: BaseExtractor, loader: BaseLoader):
        self.extractor = extractor
        self.loader = loader

    def copy_table(
        self,
        schema: TableSchema,
        target_table: Optional[str] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        skip_existing_rows: bool = True,
        cancel_event: Optional[threading.Event] = None,
        on_count: Optional[Callable[[int], None]] = None,
        on_batch: Optional[Callable[[int, int], None]] = None
    ) -> TableMigrationResult:
        """
        Copy every row of a table into the target.

        Args:
            schema: Source table schema; its column order drives the INSERT
            target_table: Target table name (defaults to the lower-cased source name)
            batch_size: Rows per page and per transaction
            skip_existing_rows: Treat duplicate-key rows as already migrated
            cancel_event: Checked before each page; a page in flight always finishes
            on_count: Called once with the table's row count
            on_batch: Called with (rows_migrated, errors) after each committed page

        Returns:
            TableMigrationResult; status is FAILED only when a batch transaction is lost
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be a positive integer, got {batch_size!r}")

        target_table = (target_table or schema.table_name).lower()
        result = TableMigrationResult(table_name=schema.table_name, target_table=target_table)
        result.started_at = datetime.now(timezone.utc)

        result.rows_total = self.extractor.count_rows(schema)
        if on_count:
            on_count(result.rows_total)
        logger.info(f"Migrating table {schema.table_name}: {result.rows_total} rows")

        if result.rows_total == 0:
            logger.info(f"Table {schema.table_name} is empty, skipping data copy")
            result.completed_at = datetime.now(timezone.utc)
            return result

        columns = schema.column_names
        logged_errors = 0
        offset = 0

        while offset < result.rows_total:
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Cancellation requested, stopping {schema.table_name} at offset {offset}")
                break

            rows = self.extractor.fetch_page(schema, offset, batch_size)
            if not rows:
                break

            try:
                batch = self.loader.load_batch(target_table, columns, rows, skip_existing_rows)
            except BatchTransactionError as e:
                result.status = TableStatus.FAILED
                result.failure_reason = e.message
                logger.error(f"Batch at offset {offset} of {schema.table_name} failed: {e.message}")
                break

            result.batches += 1
            result.rows_migrated += batch.total_succeeded
            result.errors += batch.total_failed

            for error in batch.errors:
                if logged_errors >= MAX_LOGGED_ROW_ERRORS:
                    break
                logged_errors += 1
                logger.warning(f"Error inserting row into {target_table}: {error['error']}")

            if on_batch:
                on_batch(batch.total_succeeded, batch.total_failed)

            logger.info(
                f"Migrated {result.rows_migrated}/{result.rows_total} rows of {schema.table_name} "
                f"({result.errors} errors)"
            )
            logger.debug(f"Batch at offset {offset}: {batch.total_skipped} existing rows skipped")

            offset += batch_size

        result.completed_at = datetime.now(timezone.utc)
        return result
