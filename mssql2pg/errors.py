"""Exception hierarchy for the migration engine."""

from typing import Any, Dict, Optional


class MigrationError(Exception):
    """Base class for all migration exceptions."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConnectivityError(MigrationError):
    """Raised when the source or target database cannot be reached."""


class SchemaError(MigrationError):
    """Raised when introspecting or provisioning a single table fails."""


class RowError(MigrationError):
    """Raised when a single row cannot be inserted into the target."""

    def __init__(self, message: str, unique_violation: bool = False, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.unique_violation = unique_violation


class BatchTransactionError(MigrationError):
    """Raised when a batch transaction cannot be committed or rolled back."""
