"""Extractors for source databases."""

from .base import BaseExtractor
from .mssql_extractor import MSSQLExtractor

__all__ = [
    "BaseExtractor",
    "MSSQLExtractor",
]
