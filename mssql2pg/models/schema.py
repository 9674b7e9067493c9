"""Table schema models read from the source catalog."""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class ColumnDescriptor:
    """A single source column, as stored in the source catalog."""
    name: str
    source_type: str  # Engine-native type string, e.g. "nvarchar(50)"
    nullable: bool = True
    default_expression: Optional[str] = None  # Verbatim, never translated
    precision: Optional[int] = None
    scale: Optional[int] = None
    max_length: Optional[int] = None  # -1 for MAX


@dataclass(frozen=True)
class TableSchema:
    """A source table with its columns in physical ordinal order."""
    table_name: str
    columns: Tuple[ColumnDescriptor, ...] = field(default_factory=tuple)

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]
