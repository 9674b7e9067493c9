"""Tests for target table provisioning."""

from unittest.mock import MagicMock

import pytest

from mssql2pg.errors import MigrationError, SchemaError
from mssql2pg.models.schema import ColumnDescriptor, TableSchema
from mssql2pg.services.provisioner import TableProvisioner, build_create_table_sql, column_definition
from tests.fakes import FakeLoader, make_schema


def test_column_definition():
    assert column_definition(ColumnDescriptor("Id", "int", nullable=False)) == '"Id" INTEGER NOT NULL'
    assert column_definition(ColumnDescriptor("Note", "nvarchar(max)")) == '"Note" TEXT'


def test_default_expression_copied_verbatim():
    column = ColumnDescriptor("CreatedAt", "datetime", nullable=False, default_expression="(getdate())")
    assert column_definition(column) == '"CreatedAt" TIMESTAMP NOT NULL DEFAULT (getdate())'


def test_create_table_sql_keeps_column_order():
    schema = TableSchema("Users", (
        ColumnDescriptor("Id", "int", nullable=False),
        ColumnDescriptor("Email", "nvarchar(255)"),
        ColumnDescriptor("Balance", "decimal(12,2)"),
    ))

    assert build_create_table_sql(schema, "users") == (
        'CREATE TABLE IF NOT EXISTS "users" (\n'
        '    "Id" INTEGER NOT NULL,\n'
        '    "Email" VARCHAR(255),\n'
        '    "Balance" NUMERIC(12,2)\n'
        ')'
    )


def test_ensure_table_is_idempotent():
    loader = FakeLoader()
    provisioner = TableProvisioner(loader)

    first = provisioner.ensure_table(make_schema("Users"))
    second = provisioner.ensure_table(make_schema("Users"))

    assert first.created is True
    assert first.target_table == "users"
    assert second.created is False
    assert len(loader.executed) == 1


def test_existing_table_is_left_alone():
    loader = FakeLoader(existing=["users"])

    result = TableProvisioner(loader).ensure_table(make_schema("Users"))

    assert result.created is False
    assert loader.executed == []


def test_explicit_target_name():
    loader = FakeLoader()

    result = TableProvisioner(loader).ensure_table(make_schema("Users"), "App_Users")

    assert result.target_table == "app_users"
    assert 'CREATE TABLE IF NOT EXISTS "app_users"' in loader.executed[0]


def test_existence_check_failure_attempts_create():
    loader = MagicMock()
    loader.table_exists.side_effect = MigrationError("permission denied for schema information_schema")

    result = TableProvisioner(loader).ensure_table(make_schema("Users"))

    assert result.created is True
    loader.execute.assert_called_once()


def test_create_failure_raises_schema_error():
    loader = MagicMock()
    loader.table_exists.return_value = False
    loader.execute.side_effect = MigrationError('type "foo" does not exist')

    with pytest.raises(SchemaError):
        TableProvisioner(loader).ensure_table(make_schema("Users"))
