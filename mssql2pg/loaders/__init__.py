"""Loaders for target databases."""

from .base import BaseLoader, BatchTransaction, LoadResult
from .postgres_loader import PostgresLoader

__all__ = [
    "BaseLoader",
    "BatchTransaction",
    "LoadResult",
    "PostgresLoader",
]
