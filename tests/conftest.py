"""Shared fixtures."""

import pytest

from mssql2pg.models.connection import SourceConnectionConfig, TargetConnectionConfig


@pytest.fixture
def source_config():
    return SourceConnectionConfig(host="sql01", database="Legacy", user="sa", password="secret")


@pytest.fixture
def target_config():
    return TargetConnectionConfig(host="pg01", database="app", user="postgres", password="secret")
