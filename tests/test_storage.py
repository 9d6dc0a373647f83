"""Tests for Azure Storage provisioning and listing."""

from __future__ import annotations

import pytest
from azure.core.exceptions import ResourceExistsError

from config.settings import StorageSettings
from services.storage import AzureStorage


class _FakeCreator:
    def __init__(self, log: list[str], label: str, error: Exception | None = None) -> None:
        self._log = log
        self._label = label
        self._error = error

    def create_table(self) -> None:
        self._create()

    def create_container(self) -> None:
        self._create()

    def create_queue(self) -> None:
        self._create()

    def _create(self) -> None:
        self._log.append(self._label)
        if self._error is not None:
            raise self._error


class _FakeQueue:
    def __init__(self) -> None:
        self.max_messages = None

    def peek_messages(self, max_messages=None):
        self.max_messages = max_messages
        return ["job-1", "job-2"]


def _storage() -> AzureStorage:
    return AzureStorage(StorageSettings(account_name="acct", account_key="secret"))


def test_connection_string_and_table_url() -> None:
    """Connection string and table url come from the account settings."""

    storage = _storage()

    assert storage.connection_string == (
        "DefaultEndpointsProtocol=https;AccountName=acct;AccountKey=secret;EndpointSuffix=core.windows.net"
    )
    assert storage.table_url == "https://acct.table.core.windows.net"


def test_create_resources_tolerates_existing(monkeypatch) -> None:
    """Existing resources are not treated as errors."""

    log: list[str] = []
    storage = _storage()
    monkeypatch.setattr(storage, "get_table_client", lambda: _FakeCreator(log, "table", ResourceExistsError("exists")))
    monkeypatch.setattr(storage, "get_container_client", lambda: _FakeCreator(log, "container"))
    monkeypatch.setattr(storage, "get_queue_client", lambda: _FakeCreator(log, "queue", ResourceExistsError("exists")))

    storage.create_resources()

    assert log == ["table", "container", "queue"]


def test_create_resources_propagates_other_errors(monkeypatch) -> None:
    """Other provisioning errors stop at the failing resource."""

    log: list[str] = []
    storage = _storage()
    monkeypatch.setattr(storage, "get_table_client", lambda: _FakeCreator(log, "table", PermissionError("denied")))
    monkeypatch.setattr(storage, "get_container_client", lambda: _FakeCreator(log, "container"))
    monkeypatch.setattr(storage, "get_queue_client", lambda: _FakeCreator(log, "queue"))

    with pytest.raises(PermissionError):
        storage.create_resources()

    assert log == ["table"]


def test_peek_jobs_uses_configured_count(monkeypatch) -> None:
    """Peeking the queue asks for the configured message count."""

    queue = _FakeQueue()
    storage = _storage()
    monkeypatch.setattr(storage, "get_queue_client", lambda: queue)

    assert storage.peek_jobs() == ["job-1", "job-2"]
    assert queue.max_messages == 32
