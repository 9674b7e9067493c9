"""Connection configuration for the source and target databases."""

import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

DEFAULT_MSSQL_PORT = 1433
DEFAULT_POSTGRES_PORT = 5432
DEFAULT_ODBC_DRIVER = "ODBC Driver 17 for SQL Server"


def parse_bool(value: Any) -> bool:
    """Parse a flag that may arrive as a bool or as a string like "true"."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in ("true", "1", "yes", "on")


def parse_port(value: Any, default: int) -> int:
    """Parse a port number, falling back to the default for blank or invalid input."""
    if value is None or value == "":
        return default
    try:
        port = int(value)
    except (TypeError, ValueError):
        return default
    return port or default


@dataclass
class SourceConnectionConfig:
    """Connection settings for the SQL Server source."""
    host: str = "localhost"
    database: str = ""
    user: str = ""
    password: str = ""
    port: Optional[int] = DEFAULT_MSSQL_PORT
    encrypt: bool = False
    trust_server_certificate: bool = False
    schema: str = "dbo"
    driver: str = DEFAULT_ODBC_DRIVER

    @property
    def is_named_instance(self) -> bool:
        """Named instances (host\\instance) are resolved by SQL Server Browser, not by port."""
        return "\\" in (self.host or "")

    @property
    def is_complete(self) -> bool:
        return bool(self.host and self.database)

    @property
    def server(self) -> str:
        """Value of the SERVER keyword in the ODBC connection string."""
        if self.port and not self.is_named_instance:
            return f"{self.host},{self.port}"
        return self.host

    def to_connection_string(self) -> str:
        """Build the pyodbc connection string."""
        parts = [
            f"DRIVER={{{self.driver}}}",
            f"SERVER={self.server}",
            f"DATABASE={self.database}",
            f"UID={self.user}",
            f"PWD={self.password}",
            f"Encrypt={'yes' if self.encrypt else 'no'}",
        ]
        if self.trust_server_certificate:
            parts.append("TrustServerCertificate=yes")
        return ";".join(parts) + ";"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation (password omitted)."""
        return {
            "host": self.host,
            "port": self.port,
            "database": self.database,
            "user": self.user,
            "encrypt": self.encrypt,
            "trustCert": self.trust_server_certificate,
            "schema": self.schema,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SourceConnectionConfig":
        """Create from an API payload (host, port, database, user, password, encrypt, trustCert)."""
        return cls(
            host=data.get("host") or "localhost",
            database=data.get("database") or "",
            user=data.get("user") or "",
            password=data.get("password") or "",
            port=parse_port(data.get("port"), DEFAULT_MSSQL_PORT),
            encrypt=parse_bool(data.get("encrypt")),
            trust_server_certificate=parse_bool(data.get("trustCert", data.get("trust_server_certificate"))),
            schema=data.get("schema") or "dbo",
            driver=data.get("driver") or DEFAULT_ODBC_DRIVER,
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SourceConnectionConfig":
        """Create from MSSQL_* environment variables."""
        env = os.environ if environ is None else environ
        return cls(
            host=env.get("MSSQL_HOST", ""),
            database=env.get("MSSQL_DATABASE", ""),
            user=env.get("MSSQL_USER", ""),
            password=env.get("MSSQL_PASSWORD", ""),
            port=parse_port(env.get("MSSQL_PORT"), DEFAULT_MSSQL_PORT),
            encrypt=parse_bool(env.get("MSSQL_ENCRYPT")),
            trust_server_certificate=parse_bool(env.get("MSSQL_TRUST_CERT")),
            schema=env.get("MSSQL_SCHEMA") or "dbo",
            driver=env.get("MSSQL_DRIVER") or DEFAULT_ODBC_DRIVER,
        )


@dataclass
class TargetConnectionConfig:
    """Connection settings for the PostgreSQL target."""
    host: str = "localhost"
    database: str = ""
    user: str = ""
    password: str = ""
    port: int = DEFAULT_POSTGRES_PORT
    ssl: bool = False
    max_connections: int = 20

    @property
    def is_complete(self) -> bool:
        return bool(self.host and self.database)

    def to_connection_params(self) -> Dict[str, Any]:
        """Convert to psycopg2 connection parameters."""
        return {
            "host": self.host,
            "port": self.port,
            "dbname": self.database,
            "user": self.user,
            "password": self.password,
            "sslmode": "require" if self.ssl else "disable",
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation (password omitted)."""
        return {
            "host": self.host,
            "port": self.port,
            "database": self.database,
            "user": self.user,
            "ssl": self.ssl,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TargetConnectionConfig":
        """Create from an API payload (host, port, database, user, password, ssl)."""
        return cls(
            host=data.get("host") or "localhost",
            database=data.get("database") or "",
            user=data.get("user") or "",
            password=data.get("password") or "",
            port=parse_port(data.get("port"), DEFAULT_POSTGRES_PORT),
            ssl=parse_bool(data.get("ssl")),
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "TargetConnectionConfig":
        """Create from DB_* environment variables."""
        env = os.environ if environ is None else environ
        return cls(
            host=env.get("DB_HOST") or "localhost",
            database=env.get("DB_NAME") or "",
            user=env.get("DB_USER") or "postgres",
            password=env.get("DB_PASSWORD") or "",
            port=parse_port(env.get("DB_PORT"), DEFAULT_POSTGRES_PORT),
            ssl=parse_bool(env.get("DB_SSL")),
        )
