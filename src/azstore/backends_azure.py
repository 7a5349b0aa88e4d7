"""Azure Blob Storage and Table Storage backends.

Implements the ``BlobBackend`` protocol on top of ``azure-storage-blob`` and
the ``TableBackend`` protocol on top of ``azure-data-tables``.  Not-found
responses are translated into ``BlobNotFoundError`` and
``EntityNotFoundError``; every other ``AzureError`` propagates unchanged.
"""

import logging
from typing import Any

from azure.core.credentials import AzureNamedKeyCredential
from azure.core.exceptions import ResourceExistsError, ResourceNotFoundError
from azure.data.tables import EntityProperty, TableClient, TableServiceClient, UpdateMode
from azure.storage.blob import ContainerClient

from azstore.azure.credentials import StorageCredential
from azstore.backends import BlobNotFoundError, EntityNotFoundError, tag_filter
from azstore.constants import ROW_KEY, USER_AGENT

logger = logging.getLogger(__name__)


class AzureBlobBackend:
    """BlobBackend for a single container in a storage account.

    Args:
        container: An authenticated container client.
    """

    def __init__(self, container: ContainerClient) -> None:
        self._container = container

    @classmethod
    def connect(cls, credential: StorageCredential, container_name: str) -> "AzureBlobBackend":
        """Build a backend for ``container_name``, creating the container if needed."""
        container = ContainerClient(
            account_url=credential.account_url,
            container_name=container_name,
            credential={
                "account_name": credential.account_name,
                "account_key": credential.account_key,
            },
            user_agent=USER_AGENT,
        )
        try:
            container.create_container()
            logger.info("created container %s in %s", container_name, credential.account_name)
        except ResourceExistsError:
            pass
        return cls(container)

    def upload(self, name: str, data: bytes, metadata: dict[str, str]) -> None:
        self._container.upload_blob(name, data, overwrite=True, metadata=metadata)

    def download(self, name: str) -> tuple[bytes, dict[str, str]]:
        try:
            downloader = self._container.get_blob_client(name).download_blob()
        except ResourceNotFoundError as exc:
            raise BlobNotFoundError(name) from exc
        return downloader.readall(), dict(downloader.properties.metadata or {})

    def set_tags(self, name: str, tags: dict[str, str]) -> None:
        try:
            self._container.get_blob_client(name).set_blob_tags(tags)
        except ResourceNotFoundError as exc:
            raise BlobNotFoundError(name) from exc

    def find_by_tags(self, tags: dict[str, str]) -> list[str]:
        return [blob.name for blob in self._container.find_blobs_by_tags(tag_filter(tags))]

    def list_names(self, prefix: str) -> list[str]:
        return [blob.name for blob in self._container.list_blobs(name_starts_with=prefix)]

    def delete(self, name: str) -> None:
        try:
            self._container.get_blob_client(name).delete_blob(delete_snapshots="include")
        except ResourceNotFoundError as exc:
            raise BlobNotFoundError(name) from exc


def entity_filter(partition_key: str, properties: dict[str, str]) -> tuple[str, dict[str, str]]:
    """Build a parameterised table query matching the partition and every property."""
    clauses = ["PartitionKey eq @pk"]
    parameters = {"pk": partition_key}
    for index, (key, value) in enumerate(properties.items()):
        clauses.append(f"{key} eq @p{index}")
        parameters[f"p{index}"] = value
    return " and ".join(clauses), parameters


class AzureTableBackend:
    """TableBackend for a single table in a storage account.

    Args:
        table: An authenticated table client.
    """

    def __init__(self, table: TableClient) -> None:
        self._table = table

    @classmethod
    def connect(cls, credential: StorageCredential, table_name: str) -> "AzureTableBackend":
        """Build a backend for ``table_name``, creating the table if needed."""
        service = TableServiceClient(
            endpoint=credential.table_url,
            credential=AzureNamedKeyCredential(credential.account_name, credential.account_key),
            user_agent=USER_AGENT,
        )
        table = service.create_table_if_not_exists(table_name)
        logger.debug("using table %s in %s", table_name, credential.account_name)
        return cls(table)

    def upsert(self, entity: dict[str, Any]) -> None:
        self._table.upsert_entity(entity, mode=UpdateMode.REPLACE)

    def get(self, partition_key: str, row_key: str) -> dict[str, Any]:
        try:
            entity = self._table.get_entity(partition_key, row_key)
        except ResourceNotFoundError as exc:
            raise EntityNotFoundError(partition_key, row_key) from exc
        # Binary properties can come back wrapped with their EDM type.
        return {
            key: value.value if isinstance(value, EntityProperty) else value
            for key, value in entity.items()
        }

    def query(self, partition_key: str, properties: dict[str, str]) -> list[str]:
        query_filter, parameters = entity_filter(partition_key, properties)
        entities = self._table.query_entities(
            query_filter, parameters=parameters, select=[ROW_KEY]
        )
        return [entity[ROW_KEY] for entity in entities]

    def delete(self, partition_key: str, row_key: str) -> None:
        try:
            self._table.delete_entity(partition_key, row_key)
        except ResourceNotFoundError as exc:
            raise EntityNotFoundError(partition_key, row_key) from exc
