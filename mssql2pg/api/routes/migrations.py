"""Migration connection-test, start, status and cancel endpoints."""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ...errors import MigrationError
from ...extractors.mssql_extractor import explain_connection_error
from ...orchestrator import MigrationOrchestrator
from ..models import MSSQLConnectionRequest, PostgresConnectionRequest, StartMigrationRequest

logger = logging.getLogger(__name__)

router = APIRouter()


def get_orchestrator(request: Request) -> MigrationOrchestrator:
    """The orchestrator owned by the running app."""
    return request.app.state.orchestrator


@router.post("/test/mssql")
def test_mssql_connection(data: MSSQLConnectionRequest, orchestrator: MigrationOrchestrator = Depends(get_orchestrator)):
    """Test a SQL Server connection."""
    config = data.to_config()
    try:
        version = orchestrator.extractor_factory(config).test_connection()
    except Exception as e:
        message = e.message if isinstance(e, MigrationError) else explain_connection_error(str(e))
        logger.warning(f"SQL Server connection test failed for {config.server}: {message}")
        return {"success": False, "message": message}
    return {"success": True, "message": "Connection successful", "version": version}


@router.post("/test/postgresql")
def test_postgres_connection(data: PostgresConnectionRequest, orchestrator: MigrationOrchestrator = Depends(get_orchestrator)):
    """Test a PostgreSQL connection."""
    config = data.to_config()
    try:
        version = orchestrator.loader_factory(config).test_connection()
    except Exception as e:
        logger.warning(f"PostgreSQL connection test failed for {config.host}: {e}")
        return {"success": False, "message": str(e) or "Connection failed"}
    return {"success": True, "message": "Connection successful", "version": version}


@router.post("/tables")
def list_tables(data: MSSQLConnectionRequest, orchestrator: MigrationOrchestrator = Depends(get_orchestrator)):
    """List the base tables of a SQL Server database."""
    extractor = orchestrator.extractor_factory(data.to_config())
    try:
        with extractor:
            tables = extractor.list_tables()
    except Exception as e:
        logger.warning(f"Listing tables failed: {e}")
        return {"success": False, "message": str(e), "tables": []}
    return {"success": True, "tables": tables}


@router.post("/start")
def start_migration(data: StartMigrationRequest, orchestrator: MigrationOrchestrator = Depends(get_orchestrator)):
    """Start a migration in the background."""
    if data.mssql_config is None or data.pg_config is None or not data.tables:
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "Missing required configuration or tables"},
        )

    try:
        job = orchestrator.create_job(
            data.mssql_config.to_config(),
            data.pg_config.to_config(),
            data.tables,
            data.options.to_options(),
        )
    except ValueError as e:
        return JSONResponse(status_code=400, content={"success": False, "message": str(e)})

    try:
        migration_id = orchestrator.start(job)
    except Exception as e:
        logger.error(f"Could not start migration {job.id}: {e}")
        return JSONResponse(status_code=500, content={"success": False, "message": str(e)})

    return {"success": True, "migrationId": migration_id}


@router.get("/status/{migration_id}")
def get_migration_status(migration_id: str, orchestrator: MigrationOrchestrator = Depends(get_orchestrator)):
    """Get a snapshot of a migration."""
    job = orchestrator.status(migration_id)
    if job is None:
        return {"success": False, "message": "Migration not found"}
    return {"success": True, "migration": job.to_dict()}


@router.post("/cancel/{migration_id}")
def cancel_migration(migration_id: str, orchestrator: MigrationOrchestrator = Depends(get_orchestrator)):
    """Request cancellation of a running migration."""
    if orchestrator.cancel(migration_id):
        return {"success": True}
    return {"success": False, "message": "Migration not found or not running"}


@router.get("")
def list_migrations(orchestrator: MigrationOrchestrator = Depends(get_orchestrator)):
    """List all migrations."""
    return {"success": True, "migrations": [job.to_dict() for job in orchestrator.list_jobs()]}
