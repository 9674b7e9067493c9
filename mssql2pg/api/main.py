"""FastAPI application entry point."""

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..orchestrator import MigrationOrchestrator
from .routes import migrations


def create_app(orchestrator: Optional[MigrationOrchestrator] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        orchestrator: Orchestrator serving the migration routes (a new one by default)
    """
    app = FastAPI(
        title="mssql2pg API",
        description="SQL Server to PostgreSQL table migration",
        version=__version__,
    )
    app.state.orchestrator = orchestrator or MigrationOrchestrator()

    # The migration UI is served from anywhere
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(migrations.router, prefix="/api/migration", tags=["migration"])

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()
