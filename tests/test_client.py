"""Tests for the HTTP client (requests session mocked)."""

from unittest.mock import MagicMock, patch

import pytest

from mssql2pg.client import MigrationClient, MigrationClientError
from mssql2pg.models.migration import MigrationOptions


def response(body, status_code=200):
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = "{}"
    resp.json.return_value = body
    return resp


@pytest.fixture
def client():
    client = MigrationClient("http://migrator:3004/")
    client._session = MagicMock()
    return client


def test_start_sends_configs_with_passwords(client, source_config, target_config):
    client._session.request.return_value = response({"success": True, "migrationId": "abc"})

    migration_id = client.start(source_config, target_config, ["Users"], MigrationOptions(batch_size=500))

    assert migration_id == "abc"
    method, url = client._session.request.call_args[0]
    payload = client._session.request.call_args[1]["json"]
    assert (method, url) == ("POST", "http://migrator:3004/api/migration/start")
    assert payload["mssqlConfig"]["password"] == "secret"
    assert payload["mssqlConfig"]["trustCert"] is False
    assert payload["pgConfig"]["database"] == "app"
    assert payload["options"] == {"batchSize": 500, "skipExisting": True, "tableMappings": {}}


def test_unsuccessful_body_raises(client):
    client._session.request.return_value = response({"success": False, "message": "Migration not found"})

    with pytest.raises(MigrationClientError, match="Migration not found"):
        client.status("nope")


def test_rejected_start_raises_with_server_message(client, source_config, target_config):
    client._session.request.return_value = response(
        {"success": False, "message": "Missing required configuration or tables"}, status_code=400
    )

    with pytest.raises(MigrationClientError, match="Missing required"):
        client.start(source_config, target_config, [])


def test_list_tables(client, source_config):
    client._session.request.return_value = response({"success": True, "tables": ["Users"]})

    assert client.list_tables(source_config) == ["Users"]
    assert client._session.request.call_args[0][1].endswith("/api/migration/tables")


def test_wait_polls_until_terminal(client):
    client._session.request.side_effect = [
        response({"success": True, "migration": {"status": "running"}}),
        response({"success": True, "migration": {"status": "running"}}),
        response({"success": True, "migration": {"status": "completed"}}),
    ]
    seen = []

    with patch("mssql2pg.client.time.sleep") as sleep:
        final = client.wait("abc", poll_interval=0.1, on_update=lambda m: seen.append(m["status"]))

    assert final == {"status": "completed"}
    assert seen == ["running", "running", "completed"]
    assert sleep.call_count == 2


def test_cancel(client):
    client._session.request.return_value = response({"success": True})

    assert client.cancel("abc") is True
    assert client._session.request.call_args[0] == ("POST", "http://migrator:3004/api/migration/cancel/abc")
