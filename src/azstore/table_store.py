"""Record store on Azure Table Storage.

Each record is one entity in the ``porter`` table, keyed by
``PartitionKey=item_type`` and ``RowKey=name``, with the group held in a
``group`` property and the payload in a binary ``data`` property.  Table
queries are consistent, so ``list`` sees a record as soon as ``save``
returns.

Untyped records such as the schema record have no usable partition key of
their own, so they live in the ``schema`` partition.
"""

import logging
import threading
from collections.abc import Callable
from typing import Any

from azstore.azure.credentials import StorageCredential, StorageCredentialResolver
from azstore.backends import EntityNotFoundError, TableBackend
from azstore.backends_azure import AzureTableBackend
from azstore.config import AzureConfig
from azstore.constants import (
    COMPRESSED_METADATA,
    DATA_PROPERTY,
    GROUP_TAG,
    MAX_PAYLOAD_SIZE,
    PARTITION_KEY,
    ROW_KEY,
    SCHEMA_PARTITION,
    TABLE_NAME,
)
from azstore.domain.payload import decode_payload, encode_payload
from azstore.errors import PayloadTooLargeError, RecordNotFoundError

logger = logging.getLogger(__name__)

TableBackendFactory = Callable[[StorageCredential, str], TableBackend]


class TableStore:
    """CrudStore backed by table entities.

    Args:
        config: Host configuration.
        backend: Ready-made backend; skips credential resolution entirely.
        credential_resolver: Resolves the storage account credential.
        backend_factory: Builds a backend from a credential and table name.
    """

    def __init__(
        self,
        config: AzureConfig,
        *,
        backend: TableBackend | None = None,
        credential_resolver: StorageCredentialResolver | None = None,
        backend_factory: TableBackendFactory = AzureTableBackend.connect,
    ) -> None:
        self._config = config
        self._backend = backend
        self._credential_resolver = credential_resolver or StorageCredentialResolver(config)
        self._backend_factory = backend_factory
        self._lock = threading.Lock()

    def count(self, item_type: str, group: str) -> int:
        return len(self.list(item_type, group))

    def list(self, item_type: str, group: str) -> list[str]:
        """Return the names of all records of ``item_type`` in ``group``.

        An empty group matches every record of the type.
        """
        backend = self._connect()
        logger.info("List items for %s/ group=%r", item_type, group)
        properties = {GROUP_TAG: group} if group else {}
        return backend.query(self._partition(item_type), properties)

    def save(self, item_type: str, group: str, name: str, data: bytes) -> None:
        compress = self._config.storage_compress_data
        if compress:
            data = encode_payload(data)
        if len(data) > MAX_PAYLOAD_SIZE:
            raise PayloadTooLargeError(
                item_type, group, name, len(data), MAX_PAYLOAD_SIZE, storage="table"
            )

        backend = self._connect()
        entity: dict[str, Any] = {
            PARTITION_KEY: self._partition(item_type),
            ROW_KEY: name,
            GROUP_TAG: group,
            DATA_PROPERTY: data,
        }
        if compress:
            entity[COMPRESSED_METADATA] = True
        logger.info("Save %s/ group=%r %s (%d bytes)", item_type, group, name, len(data))
        backend.upsert(entity)

    def read(self, item_type: str, name: str) -> bytes:
        """Return a record's payload. Raises RecordNotFoundError if it is absent."""
        backend = self._connect()
        logger.info("Read itemtype %s %s", item_type, name)
        try:
            entity = backend.get(self._partition(item_type), name)
        except EntityNotFoundError as exc:
            raise RecordNotFoundError(item_type, name) from exc

        data = bytes(entity.get(DATA_PROPERTY) or b"")
        if entity.get(COMPRESSED_METADATA) is True:
            return decode_payload(data)
        return data

    def delete(self, item_type: str, name: str) -> None:
        """Remove a record. Deleting an absent record is a no-op."""
        backend = self._connect()
        logger.info("Delete itemtype %s %s", item_type, name)
        try:
            backend.delete(self._partition(item_type), name)
        except EntityNotFoundError:
            logger.debug("%s/%s was already deleted", item_type, name)

    def _connect(self) -> TableBackend:
        if self._backend is not None:
            return self._backend
        with self._lock:
            if self._backend is None:
                credential = self._credential_resolver.resolve()
                self._backend = self._backend_factory(credential, TABLE_NAME)
        return self._backend

    @staticmethod
    def _partition(item_type: str) -> str:
        return item_type or SCHEMA_PARTITION
