"""SQL Server to PostgreSQL column type translation."""

import re
from typing import Dict

FALLBACK_TYPE = "TEXT"
DEFAULT_CHAR_LENGTH = 255

# One-to-one mappings for types without length handling
TYPE_MAPPINGS: Dict[str, str] = {
    "text": "TEXT",
    "ntext": "TEXT",
    "int": "INTEGER",
    "bigint": "BIGINT",
    "smallint": "SMALLINT",
    "tinyint": "SMALLINT",
    "bit": "BOOLEAN",
    "datetime": "TIMESTAMP",
    "datetime2": "TIMESTAMP",
    "smalldatetime": "TIMESTAMP",
    "datetimeoffset": "TIMESTAMPTZ",
    "date": "DATE",
    "time": "TIME",
    "float": "REAL",
    "real": "REAL",
    "money": "MONEY",
    "smallmoney": "MONEY",
    "uniqueidentifier": "UUID",
    "image": "BYTEA",
    "varbinary": "BYTEA",
    "binary": "BYTEA",
}

_LENGTH_RE = re.compile(r"\((\d+)\)")
_PRECISION_SCALE_RE = re.compile(r"\((\d+)\s*,\s*(\d+)\)")


def map_type(source_type: str) -> str:
    """
    Translate a SQL Server type string into PostgreSQL type syntax.

    Never fails: types missing from TYPE_MAPPINGS become TEXT.

    Args:
        source_type: Engine-native type, e.g. "nvarchar(50)" or "decimal(10,2)"

    Returns:
        PostgreSQL type, e.g. "VARCHAR(50)" or "NUMERIC(10,2)"
    """
    type_str = (source_type or "").strip().lower()

    if "varchar" in type_str:
        match = _LENGTH_RE.search(type_str)
        return f"VARCHAR({match.group(1)})" if match else FALLBACK_TYPE

    if "char" in type_str:
        match = _LENGTH_RE.search(type_str)
        length = match.group(1) if match else DEFAULT_CHAR_LENGTH
        return f"CHAR({length})"

    if "decimal" in type_str or "numeric" in type_str:
        match = _PRECISION_SCALE_RE.search(type_str)
        if match:
            return f"NUMERIC({match.group(1)},{match.group(2)})"
        return "NUMERIC"

    base_type = type_str.split("(", 1)[0].strip()
    return TYPE_MAPPINGS.get(base_type, FALLBACK_TYPE)
