"""Migration orchestrator - runs a job across tables and tracks its state."""

import copy
import logging
import threading
from typing import Callable, Dict, Iterable, List, Optional

from .models.connection import SourceConnectionConfig, TargetConnectionConfig
from .models.migration import (
    MigrationJob,
    MigrationOptions,
    MigrationStatus,
    TableMigrationResult,
    TableStatus,
    utcnow,
)
from .extractors.base import BaseExtractor
from .extractors.mssql_extractor import MSSQLExtractor
from .loaders.base import BaseLoader
from .loaders.postgres_loader import PostgresLoader
from .services.copier import BatchCopier
from .services.provisioner import TableProvisioner
from .storage import InMemoryJobStore, JobStore

logger = logging.getLogger(__name__)


class MigrationOrchestrator:
    """
    Orchestrates migration jobs.

    Handles:
    - Job creation and validation
    - Background execution (one worker thread per job)
    - Per-table describe, provision and copy with table-level isolation
    - Live progress and cooperative cancellation
    - Status snapshots for the CLI and the HTTP API

    All writes to a job happen under one lock and go through the store;
    status() hands out deep copies taken under the same lock.
    """

    def __init__(
        self,
        store: Optional[JobStore] = None,
        extractor_factory: Optional[Callable[[SourceConnectionConfig], BaseExtractor]] = None,
        loader_factory: Optional[Callable[[TargetConnectionConfig], BaseLoader]] = None
    ):
        """
        Initialize the orchestrator.

        Args:
            store: Job store (defaults to an in-memory store)
            extractor_factory: Builds the source extractor for a job
            loader_factory: Builds the target loader for a job
        """
        self.store = store or InMemoryJobStore()
        self.extractor_factory = extractor_factory or MSSQLExtractor
        self.loader_factory = loader_factory or PostgresLoader

        self._lock = threading.RLock()
        self._cancel_events: Dict[str, threading.Event] = {}
        self._threads: Dict[str, threading.Thread] = {}

    def _save(self, job: MigrationJob) -> None:
        self.store.set(job.id, job)

    def create_job(
        self,
        source_config: SourceConnectionConfig,
        target_config: TargetConnectionConfig,
        tables: Optional[Iterable[str]] = None,
        options: Optional[MigrationOptions] = None
    ) -> MigrationJob:
        """
        Create and store a pending job.

        Args:
            source_config: SQL Server connection settings
            target_config: PostgreSQL connection settings
            tables: Tables to migrate, in order; empty means every base table
            options: Execution options

        Returns:
            The stored MigrationJob

        Raises:
            ValueError: If the options are invalid
        """
        options = options or MigrationOptions()
        options.validate()

        selected: List[str] = []
        for name in tables or []:
            name = name.strip()
            if name and name not in selected:
                selected.append(name)

        job = MigrationJob(
            source_config=source_config,
            target_config=target_config,
            tables=selected,
            options=options,
        )
        with self._lock:
            self._save(job)
        logger.info(f"Created migration {job.id} for {len(selected) or 'all'} tables")
        return job

    def start(self, job: MigrationJob) -> str:
        """
        Run a pending job on a background thread.

        Returns:
            The job id, immediately
        """
        with self._lock:
            if job.status != MigrationStatus.PENDING:
                raise ValueError(f"Cannot start migration in status: {job.status.value}")
            job.status = MigrationStatus.RUNNING
            job.started_at = utcnow()
            self._cancel_events[job.id] = threading.Event()
            self._save(job)

            thread = threading.Thread(
                target=self._run_in_background,
                args=(job,),
                name=f"migration-{job.id[:8]}",
                daemon=True,
            )
            self._threads[job.id] = thread

        thread.start()
        return job.id

    def _run_in_background(self, job: MigrationJob) -> None:
        try:
            self.run_job(job)
        except Exception as e:
            logger.exception(f"Migration {job.id} crashed: {e}")
            with self._lock:
                job.status = MigrationStatus.FAILED
                job.error = str(e)
                job.ended_at = utcnow()
                self._save(job)

    def join(self, job_id: str, timeout: Optional[float] = None) -> bool:
        """Wait for a background job; returns False if it is still running."""
        thread = self._threads.get(job_id)
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def run_job(self, job: MigrationJob) -> MigrationJob:
        """
        Run a job to the end on the calling thread.

        Connection failures fail the job before any table is attempted.
        A failing table is recorded and the job moves on to the next one.

        Args:
            job: A job created by create_job

        Returns:
            The same job, in a terminal status
        """
        with self._lock:
            cancel_event = self._cancel_events.setdefault(job.id, threading.Event())
            if job.status == MigrationStatus.PENDING:
                job.status = MigrationStatus.RUNNING
                job.started_at = utcnow()
            self._save(job)

        extractor = self.extractor_factory(job.source_config)
        loader = self.loader_factory(job.target_config)

        try:
            logger.info(f"=== MIGRATION {job.id} STARTED ===")
            try:
                extractor.connect()
                loader.connect()
                tables = list(job.tables) or extractor.list_tables()
            except Exception as e:
                logger.error(f"Migration {job.id} failed: {e}")
                with self._lock:
                    job.status = MigrationStatus.FAILED
                    job.error = str(e)
                    job.ended_at = utcnow()
                    self._save(job)
                return job

            with self._lock:
                job.totals.tables_total = len(tables)
                self._save(job)
            logger.info(f"Migrating {len(tables)} tables")

            for table in tables:
                if cancel_event.is_set():
                    logger.info(f"Migration {job.id} cancelled before table {table}")
                    break

                with self._lock:
                    job.current_table = table
                    self._save(job)

                result = self._migrate_table(job, extractor, loader, table, cancel_event)

                with self._lock:
                    job.record_result(result)
                    self._save(job)

            with self._lock:
                job.status = MigrationStatus.CANCELLED if cancel_event.is_set() else MigrationStatus.COMPLETED
                job.current_table = None
                job.ended_at = utcnow()
                self._save(job)

            logger.info(
                f"=== MIGRATION {job.id} {job.status.value.upper()} === "
                f"{job.totals.rows_migrated}/{job.totals.rows_total} rows, {job.totals.error_count} errors"
            )
            return job

        finally:
            self._close(extractor, "source")
            self._close(loader, "target")
            with self._lock:
                self._cancel_events.pop(job.id, None)

    def _migrate_table(
        self,
        job: MigrationJob,
        extractor: BaseExtractor,
        loader: BaseLoader,
        table: str,
        cancel_event: threading.Event
    ) -> TableMigrationResult:
        """Describe, provision and copy one table; never raises."""
        target_table = job.options.target_table_for(table).lower()
        # Counts committed so far, kept if a later step fails
        progress = TableMigrationResult(table_name=table, target_table=target_table, started_at=utcnow())

        def on_count(rows_total: int) -> None:
            with self._lock:
                progress.rows_total = rows_total
                job.totals.rows_total += rows_total
                self._save(job)

        def on_batch(rows_migrated: int, errors: int) -> None:
            with self._lock:
                progress.rows_migrated += rows_migrated
                progress.errors += errors
                progress.batches += 1
                job.add_batch(rows_migrated, errors)
                self._save(job)

        try:
            schema = extractor.describe_table(table)
            provision = TableProvisioner(loader).ensure_table(schema, target_table)
            progress.created_table = provision.created

            result = BatchCopier(extractor, loader).copy_table(
                schema,
                provision.target_table,
                batch_size=job.options.batch_size,
                skip_existing_rows=job.options.skip_existing_rows,
                cancel_event=cancel_event,
                on_count=on_count,
                on_batch=on_batch,
            )
            result.created_table = provision.created

        except Exception as e:
            logger.error(f"Error migrating table {table}: {e}")
            progress.status = TableStatus.FAILED
            progress.failure_reason = str(e)
            progress.completed_at = utcnow()
            return progress

        if result.status == TableStatus.FAILED:
            logger.error(f"Table {table} failed: {result.failure_reason}")
        else:
            logger.info(f"Table {table} {result.status.value}: {result.rows_migrated}/{result.rows_total} rows")
        return result

    @staticmethod
    def _close(resource, side: str) -> None:
        try:
            resource.close()
        except Exception as e:
            logger.warning(f"Error closing {side} connection: {e}")

    def status(self, job_id: str) -> Optional[MigrationJob]:
        """Snapshot of a job, or None if unknown."""
        with self._lock:
            job = self.store.get(job_id)
            return copy.deepcopy(job) if job is not None else None

    def cancel(self, job_id: str) -> bool:
        """
        Request cancellation of a running job.

        The job stops at the next table or batch boundary; a batch in flight
        always finishes.

        Returns:
            True if the job was running
        """
        with self._lock:
            job = self.store.get(job_id)
            if job is None or job.status != MigrationStatus.RUNNING:
                return False
            job.cancel_requested = True
            self._cancel_events.setdefault(job_id, threading.Event()).set()
            self._save(job)
        logger.info(f"Cancellation requested for migration {job_id}")
        return True

    def list_jobs(self) -> List[MigrationJob]:
        """Snapshots of every stored job."""
        jobs = []
        with self._lock:
            for job_id in self.store.list_ids():
                job = self.store.get(job_id)
                if job is not None:
                    jobs.append(copy.deepcopy(job))
        return jobs
