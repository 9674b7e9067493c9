"""Tests for SQL Server to PostgreSQL type translation."""

import pytest

from mssql2pg.services.type_mapper import TYPE_MAPPINGS, map_type


@pytest.mark.parametrize("source_type,expected", [
    ("int", "INTEGER"),
    ("bigint", "BIGINT"),
    ("tinyint", "SMALLINT"),
    ("bit", "BOOLEAN"),
    ("datetime2", "TIMESTAMP"),
    ("datetimeoffset", "TIMESTAMPTZ"),
    ("uniqueidentifier", "UUID"),
    ("money", "MONEY"),
    ("varbinary(max)", "BYTEA"),
    ("binary(16)", "BYTEA"),
    ("ntext", "TEXT"),
])
def test_lookup_types(source_type, expected):
    assert map_type(source_type) == expected


def test_varchar_keeps_length():
    assert map_type("nvarchar(50)") == "VARCHAR(50)"
    assert map_type("varchar(255)") == "VARCHAR(255)"


def test_varchar_without_length_is_text():
    assert map_type("nvarchar(max)") == "TEXT"
    assert map_type("varchar") == "TEXT"


def test_char_length_and_default():
    assert map_type("nchar(10)") == "CHAR(10)"
    assert map_type("char") == "CHAR(255)"


def test_numeric_precision_and_scale():
    assert map_type("decimal(10,2)") == "NUMERIC(10,2)"
    assert map_type("numeric(18, 4)") == "NUMERIC(18,4)"
    assert map_type("decimal") == "NUMERIC"


def test_case_insensitive():
    assert map_type("NVARCHAR(20)") == "VARCHAR(20)"
    assert map_type("DateTime") == "TIMESTAMP"


def test_unknown_types_fall_back_to_text():
    assert map_type("xml") == "TEXT"
    assert map_type("sql_variant") == "TEXT"
    assert map_type("") == "TEXT"


def test_mapping_is_deterministic():
    for source_type in list(TYPE_MAPPINGS) + ["nvarchar(50)", "decimal(9,3)", "geography"]:
        assert map_type(source_type) == map_type(source_type)
