"""Pydantic models for API requests."""

from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..models.connection import SourceConnectionConfig, TargetConnectionConfig
from ..models.migration import DEFAULT_BATCH_SIZE, MigrationOptions


class MSSQLConnectionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    host: str = "localhost"
    port: Optional[Union[int, str]] = None  # Ignored for named instances
    database: str = ""
    user: str = ""
    password: str = ""
    encrypt: bool = False
    trust_cert: bool = Field(False, alias="trustCert")
    schema_name: str = Field("dbo", alias="schema")

    def to_config(self) -> SourceConnectionConfig:
        return SourceConnectionConfig.from_dict(self.model_dump(by_alias=True))


class PostgresConnectionRequest(BaseModel):
    host: str = "localhost"
    port: Optional[Union[int, str]] = None
    database: str = ""
    user: str = ""
    password: str = ""
    ssl: bool = False

    def to_config(self) -> TargetConnectionConfig:
        return TargetConnectionConfig.from_dict(self.model_dump())


class MigrationOptionsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    batch_size: int = Field(DEFAULT_BATCH_SIZE, alias="batchSize")
    skip_existing: bool = Field(True, alias="skipExisting")
    table_mappings: Dict[str, str] = Field(default_factory=dict, alias="tableMappings")

    def to_options(self) -> MigrationOptions:
        return MigrationOptions(
            batch_size=self.batch_size,
            skip_existing_rows=self.skip_existing,
            table_mappings=dict(self.table_mappings),
        )


class StartMigrationRequest(BaseModel):
    """Body of POST /api/migration/start; missing parts are rejected by the route with HTTP 400."""
    model_config = ConfigDict(populate_by_name=True)

    mssql_config: Optional[MSSQLConnectionRequest] = Field(None, alias="mssqlConfig")
    pg_config: Optional[PostgresConnectionRequest] = Field(None, alias="pgConfig")
    tables: List[str] = Field(default_factory=list)
    options: MigrationOptionsRequest = Field(default_factory=MigrationOptionsRequest)
