"""
MSSQL to PostgreSQL Migration Tool

Copies tables from Microsoft SQL Server into PostgreSQL.

Supports:
- Schema introspection of base tables in a source schema
- Column type translation to PostgreSQL types
- Idempotent target table provisioning
- Batched, paginated data transfer with per-row error isolation
- Background jobs with status polling and cancellation (HTTP API)
- One-shot synchronous runs from the command line
"""

__version__ = "0.1.0"
