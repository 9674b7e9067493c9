"""Command line interface for the SQL Server to PostgreSQL migration engine."""

import argparse
import json
import logging
import os
import sys
from typing import Any, Dict, List, Optional

import requests
import uvicorn
from dotenv import load_dotenv

from .api.main import create_app
from .client import DEFAULT_SERVER_URL, MigrationClient, MigrationClientError
from .errors import MigrationError
from .extractors.mssql_extractor import MSSQLExtractor
from .loaders.postgres_loader import PostgresLoader
from .models.connection import SourceConnectionConfig, TargetConnectionConfig
from .models.migration import DEFAULT_BATCH_SIZE, MigrationOptions, MigrationStatus
from .orchestrator import MigrationOrchestrator

logger = logging.getLogger(__name__)

DEFAULT_PORT = 3004


def parse_table_list(value: Optional[str]) -> List[str]:
    """Split a comma separated table list, dropping blanks."""
    if not value:
        return []
    return [name.strip() for name in value.split(",") if name.strip()]


def _options_from_args(args) -> MigrationOptions:
    batch_size = args.batch_size
    if batch_size is None:
        raw = os.environ.get("MIGRATION_BATCH_SIZE")
        batch_size = int(raw) if raw else DEFAULT_BATCH_SIZE
    options = MigrationOptions(batch_size=batch_size, skip_existing_rows=not args.no_skip_existing)
    options.validate()
    return options


def _source_config_or_exit() -> Optional[SourceConnectionConfig]:
    source = SourceConnectionConfig.from_env()
    if not source.is_complete:
        print("Error: MSSQL_HOST and MSSQL_DATABASE must be set (environment or .env file)")
        return None
    return source


def _target_config_or_exit() -> Optional[TargetConnectionConfig]:
    target = TargetConnectionConfig.from_env()
    if not target.is_complete:
        print("Error: DB_NAME must be set (environment or .env file)")
        return None
    return target


def print_summary(migration: Dict[str, Any]) -> None:
    """Print the end-of-run summary for a migration snapshot (MigrationJob.to_dict() shape)."""
    totals = migration["totals"]

    print("\n" + "=" * 60)
    print("MIGRATION SUMMARY")
    print("=" * 60)
    print(f"Status: {migration['status']}")
    print(f"Total Tables: {totals['tablesTotal']}")
    print(f"Total Rows: {totals['rowsTotal']}")
    print(f"Rows Migrated: {totals['rowsMigrated']}")
    print(f"Total Errors: {totals['errorCount']}")
    if migration.get("error"):
        print(f"Error: {migration['error']}")

    results = migration.get("perTableResults") or {}
    if results:
        print("\nPer Table Results:")
        for name, result in results.items():
            line = (
                f"  {name} -> {result['targetTable']}: "
                f"{result['rowsMigrated']}/{result['rowsTotal']} rows, {result['errors']} errors"
            )
            if result["status"] != "completed":
                line += f" ({result['status']}"
                line += f": {result['failureReason']})" if result.get("failureReason") else ")"
            print(line)

    if migration.get("durationSeconds") is not None:
        print(f"\nDuration: {migration['durationSeconds']:.2f} seconds")
    print("=" * 60)


def run_migration(args) -> int:
    """Run a migration in this process using environment configuration."""
    source = _source_config_or_exit()
    if source is None:
        return 1
    target = _target_config_or_exit()
    if target is None:
        return 1

    try:
        options = _options_from_args(args)
    except ValueError as e:
        print(f"Error: invalid batch size: {e}")
        return 1

    tables = parse_table_list(args.tables or os.environ.get("MIGRATION_TABLES"))
    orchestrator = MigrationOrchestrator()
    job = orchestrator.create_job(source, target, tables, options)

    logger.info(f"Migrating {source.server}/{source.database} -> {target.host}:{target.port}/{target.database}")
    orchestrator.start(job)
    try:
        while not orchestrator.join(job.id, timeout=0.5):
            pass
    except KeyboardInterrupt:
        print("\nCancelling: the migration stops after the current batch...")
        orchestrator.cancel(job.id)
        orchestrator.join(job.id)

    job = orchestrator.status(job.id)
    print_summary(job.to_dict())
    return 1 if job.status == MigrationStatus.FAILED else 0


def run_list_tables(args) -> int:
    """List the source database's base tables."""
    source = _source_config_or_exit()
    if source is None:
        return 1

    try:
        if args.server:
            tables = MigrationClient(args.server).list_tables(source)
        else:
            with MSSQLExtractor(source) as extractor:
                tables = extractor.list_tables()
    except MigrationError as e:
        print(f"Error: {e.message}")
        return 1
    except (MigrationClientError, requests.RequestException) as e:
        print(f"Error: {e}")
        return 1

    print(f"\n=== Tables in {source.database} ({len(tables)}) ===")
    for name in tables:
        print(f"  {name}")
    return 0


def _test_source(source: SourceConnectionConfig, server: Optional[str]) -> str:
    if server:
        return MigrationClient(server).test_mssql(source).get("version") or ""
    return MSSQLExtractor(source).test_connection()


def _test_target(target: TargetConnectionConfig, server: Optional[str]) -> str:
    if server:
        return MigrationClient(server).test_postgresql(target).get("version") or ""
    return PostgresLoader(target).test_connection()


def run_connection_test(args) -> int:
    """Test both database connections, directly or through a running server."""
    exit_code = 0

    source = _source_config_or_exit()
    if source is None:
        return 1
    target = _target_config_or_exit()
    if target is None:
        return 1

    try:
        version = _test_source(source, args.server)
        print(f"SQL Server: OK\n  {version.splitlines()[0] if version else ''}")
    except MigrationError as e:
        print(f"SQL Server: FAILED\n  {e.message}")
        exit_code = 1
    except (MigrationClientError, requests.RequestException) as e:
        print(f"SQL Server: FAILED\n  {e}")
        exit_code = 1

    try:
        version = _test_target(target, args.server)
        print(f"PostgreSQL: OK\n  {version}")
    except MigrationError as e:
        print(f"PostgreSQL: FAILED\n  {e.message}")
        exit_code = 1
    except (MigrationClientError, requests.RequestException) as e:
        print(f"PostgreSQL: FAILED\n  {e}")
        exit_code = 1

    return exit_code

def run_server(args) -> int:
    """Serve the HTTP API."""
    uvicorn.run(create_app(), host=args.host, port=args.port)
    return 0


def run_submit(args) -> int:
    """Submit a migration to a running server."""
    source = _source_config_or_exit()
    if source is None:
        return 1

    try:
        options = _options_from_args(args)
    except ValueError as e:
        print(f"Error: invalid batch size: {e}")
        return 1

    target = _target_config_or_exit()
    if target is None:
        return 1

    tables = parse_table_list(args.tables or os.environ.get("MIGRATION_TABLES"))
    client = MigrationClient(args.server)
    try:
        migration_id = client.start(source, target, tables, options)
        print(f"Migration started: {migration_id}")
        if not args.follow:
            return 0

        def report(migration: Dict[str, Any]) -> None:
            logger.info(
                f"{migration['status']}: {migration['progress']}% "
                f"({migration['totals']['rowsMigrated']} rows, table {migration['currentTable']})"
            )

        migration = client.wait(migration_id, poll_interval=args.interval, on_update=report)
    except (MigrationClientError, requests.RequestException) as e:
        print(f"Error: {e}")
        return 1

    print_summary(migration)
    return 1 if migration["status"] == MigrationStatus.FAILED.value else 0


def run_status(args) -> int:
    """Print a migration snapshot from a running server."""
    try:
        migration = MigrationClient(args.server).status(args.migration_id)
    except (MigrationClientError, requests.RequestException) as e:
        print(f"Error: {e}")
        return 1
    print(json.dumps(migration, indent=2))
    return 0


def run_cancel(args) -> int:
    """Cancel a migration on a running server."""
    try:
        MigrationClient(args.server).cancel(args.migration_id)
    except (MigrationClientError, requests.RequestException) as e:
        print(f"Error: {e}")
        return 1
    print(f"Cancellation requested: {args.migration_id}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="mssql2pg - Migrate tables from SQL Server to PostgreSQL"
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")
    server_url = os.environ.get("MIGRATION_SERVER_URL", DEFAULT_SERVER_URL)

    common_parser = argparse.ArgumentParser(add_help=False)
    common_parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    # Migration options shared by run and submit
    options_parser = argparse.ArgumentParser(add_help=False, parents=[common_parser])
    options_parser.add_argument("--tables", help="Comma separated tables to migrate (default: MIGRATION_TABLES, else all)")
    options_parser.add_argument("--batch-size", type=int, help=f"Rows per batch (default: MIGRATION_BATCH_SIZE or {DEFAULT_BATCH_SIZE})")
    options_parser.add_argument("--no-skip-existing", action="store_true", help="Count duplicate-key rows as errors")

    # Run migration
    subparsers.add_parser("run", parents=[options_parser], help="Run a migration in this process")

    # Inspect source
    tables_parser = subparsers.add_parser("tables", parents=[common_parser], help="List source tables")
    tables_parser.add_argument("--server", help="Ask a running server instead of connecting directly")
    test_parser = subparsers.add_parser("test", parents=[common_parser], help="Test both database connections")
    test_parser.add_argument("--server", help="Ask a running server instead of connecting directly")

    # HTTP API
    serve_parser = subparsers.add_parser("serve", parents=[common_parser], help="Serve the HTTP API")
    serve_parser.add_argument("--host", default=os.environ.get("HOST", "0.0.0.0"), help="Bind address")
    serve_parser.add_argument("--port", type=int, default=int(os.environ.get("PORT") or DEFAULT_PORT), help="Port")

    # Remote jobs
    submit_parser = subparsers.add_parser("submit", parents=[options_parser], help="Start a migration on a server")
    submit_parser.add_argument("--server", default=server_url, help="Server URL")
    submit_parser.add_argument("--follow", action="store_true", help="Wait and print the summary")
    submit_parser.add_argument("--interval", type=float, default=2.0, help="Seconds between status polls")

    status_parser = subparsers.add_parser("status", parents=[common_parser], help="Show a migration's status")
    status_parser.add_argument("migration_id")
    status_parser.add_argument("--server", default=server_url, help="Server URL")

    cancel_parser = subparsers.add_parser("cancel", parents=[common_parser], help="Cancel a running migration")
    cancel_parser.add_argument("migration_id")
    cancel_parser.add_argument("--server", default=server_url, help="Server URL")

    return parser


COMMANDS = {
    "run": run_migration,
    "tables": run_list_tables,
    "test": run_connection_test,
    "serve": run_server,
    "submit": run_submit,
    "status": run_status,
    "cancel": run_cancel,
}


def main(argv: Optional[List[str]] = None):
    """Main entry point for the CLI."""
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    # Set up logging
    log_level = logging.DEBUG if getattr(args, "verbose", False) else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        sys.exit(1)

    sys.exit(handler(args))


if __name__ == "__main__":
    main()
