"""HTTP client for a running migration server."""

import logging
import time
from typing import Any, Dict, Iterable, Optional

import requests

from .models.connection import SourceConnectionConfig, TargetConnectionConfig
from .models.migration import MigrationOptions, MigrationStatus

logger = logging.getLogger(__name__)

DEFAULT_SERVER_URL = "http://localhost:3004"

TERMINAL_STATUSES = {status.value for status in MigrationStatus if status.is_terminal}


class MigrationClientError(Exception):
    """Raised when the server answers with success: false."""


def _with_password(config) -> Dict[str, Any]:
    payload = config.to_dict()
    payload["password"] = config.password
    return payload


class MigrationClient:
    """
    Client for the /api/migration endpoints.

    Every call returns the decoded response body; bodies with
    success: false raise MigrationClientError.
    """

    def __init__(self, base_url: str = DEFAULT_SERVER_URL, timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = self._create_session()

    def _create_session(self) -> requests.Session:
        """Create a requests session for JSON calls."""
        session = requests.Session()
        session.headers["Content-Type"] = "application/json"
        return session

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}/api/migration{path}"
        logger.debug(f"{method} {url}")
        response = self._session.request(method, url, json=payload, timeout=self.timeout)

        try:
            body = response.json() if response.text else {}
        except ValueError:
            response.raise_for_status()
            raise

        if body.get("success") is False:
            raise MigrationClientError(body.get("message") or f"Request failed with HTTP {response.status_code}")
        response.raise_for_status()
        return body

    def test_mssql(self, config: SourceConnectionConfig) -> Dict[str, Any]:
        return self._request("POST", "/test/mssql", _with_password(config))

    def test_postgresql(self, config: TargetConnectionConfig) -> Dict[str, Any]:
        return self._request("POST", "/test/postgresql", _with_password(config))

    def list_tables(self, config: SourceConnectionConfig) -> list:
        return self._request("POST", "/tables", _with_password(config))["tables"]

    def start(
        self,
        source_config: SourceConnectionConfig,
        target_config: TargetConnectionConfig,
        tables: Iterable[str],
        options: Optional[MigrationOptions] = None
    ) -> str:
        """
        Submit a migration.

        Returns:
            The server-assigned migration id
        """
        options = options or MigrationOptions()
        body = self._request("POST", "/start", {
            "mssqlConfig": _with_password(source_config),
            "pgConfig": _with_password(target_config),
            "tables": list(tables),
            "options": options.to_dict(),
        })
        return body["migrationId"]

    def status(self, migration_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/status/{migration_id}")["migration"]

    def cancel(self, migration_id: str) -> bool:
        return bool(self._request("POST", f"/cancel/{migration_id}").get("success"))

    def wait(self, migration_id: str, poll_interval: float = 2.0, on_update=None) -> Dict[str, Any]:
        """
        Poll a migration until it reaches a terminal status.

        Args:
            migration_id: Id returned by start()
            poll_interval: Seconds between polls
            on_update: Optional callback receiving each status snapshot

        Returns:
            The final migration snapshot
        """
        while True:
            migration = self.status(migration_id)
            if on_update:
                on_update(migration)
            if migration["status"] in TERMINAL_STATUSES:
                return migration
            time.sleep(poll_interval)
