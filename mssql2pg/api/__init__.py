"""HTTP API for the migration engine."""

from .main import create_app

__all__ = ["create_app"]
