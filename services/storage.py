"""Azure Storage access: chats table, documents container and job queue."""

from __future__ import annotations

from typing import Any

from azure.core.credentials import AzureNamedKeyCredential
from azure.core.exceptions import ResourceExistsError
from azure.data.tables import TableClient
from azure.storage.blob import BlobServiceClient, ContainerClient
from azure.storage.queue import QueueClient

from config.settings import StorageSettings
from core.logging import logger as LOGGER


class AzureStorage:
    """Builds storage clients from account name and key."""

    def __init__(self, settings: StorageSettings) -> None:
        self._settings = settings

    @property
    def settings(self) -> StorageSettings:
        return self._settings

    @property
    def connection_string(self) -> str:
        s = self._settings
        return (
            "DefaultEndpointsProtocol=https;"
            f"AccountName={s.account_name};"
            f"AccountKey={s.account_key};"
            f"EndpointSuffix={s.endpoint_suffix}"
        )

    @property
    def table_url(self) -> str:
        s = self._settings
        return f"https://{s.account_name}.table.{s.endpoint_suffix}"

    def _credential(self) -> AzureNamedKeyCredential:
        return AzureNamedKeyCredential(self._settings.account_name, self._settings.account_key)

    def get_table_client(self) -> TableClient:
        return TableClient(self.table_url, self._settings.table_name, credential=self._credential())

    def get_blob_service_client(self) -> BlobServiceClient:
        return BlobServiceClient.from_connection_string(self.connection_string)

    def get_container_client(self) -> ContainerClient:
        return self.get_blob_service_client().get_container_client(self._settings.container_name)

    def get_queue_client(self) -> QueueClient:
        return QueueClient.from_connection_string(self.connection_string, self._settings.queue_name)

    def create_resources(self) -> None:
        """Create the table, container and queue when they do not exist yet.

        Any error other than "already exists" propagates.
        """

        for label, create in (
            ("table", lambda: self.get_table_client().create_table()),
            ("container", lambda: self.get_container_client().create_container()),
            ("queue", lambda: self.get_queue_client().create_queue()),
        ):
            try:
                create()
                LOGGER.info("Created storage %s", label)
            except ResourceExistsError:
                LOGGER.debug("Storage %s already exists", label)

    def list_table_entities(self) -> list[Any]:
        entities: list[Any] = []
        for page in self.get_table_client().list_entities().by_page():
            entities.extend(page)
        return entities

    def list_blobs(self) -> list[Any]:
        return list(self.get_container_client().list_blobs())

    def peek_jobs(self, count: int | None = None) -> list[Any]:
        max_messages = count if count is not None else self._settings.peek_count
        return list(self.get_queue_client().peek_messages(max_messages=max_messages) or [])
