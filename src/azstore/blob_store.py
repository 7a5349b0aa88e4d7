"""Tag-indexed record store on Azure Blob Storage.

Records are addressed by ``(item_type, name)`` and stored at the blob path
``{item_type}/{name}``.  Blob storage has no secondary index, so every record
also carries the index tags ``type`` and ``group``, and ``list``/``count``
are answered with a tag query.

The tag index is built asynchronously: a tag write returns before the blob
is findable.  ``save`` therefore writes the tags and polls the index in
parallel and only returns once the new record shows up, so a ``list``
straight after a ``save`` sees it.  If the record does not show up before the
poll timeout, ``save`` raises ``IndexTimeoutError`` even though the payload
is stored.
"""

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor

from azstore.azure.credentials import StorageCredential, StorageCredentialResolver
from azstore.backends import BlobBackend, BlobNotFoundError
from azstore.backends_azure import AzureBlobBackend
from azstore.config import AzureConfig
from azstore.constants import (
    GROUP_TAG,
    MAX_PAYLOAD_SIZE,
    POLL_INTERVAL_SECONDS,
    POLL_TIMEOUT_SECONDS,
    SCHEMA_ITEM_TYPE,
    SCHEMA_NAME,
    TYPE_TAG,
)
from azstore.domain.payload import (
    compression_metadata,
    decode_payload,
    encode_payload,
    is_compressed,
)
from azstore.errors import (
    IndexTimeoutError,
    MigrationError,
    PayloadTooLargeError,
    RecordNotFoundError,
)
from azstore.migration import Migration

logger = logging.getLogger(__name__)

BackendFactory = Callable[[StorageCredential, str], BlobBackend]


class BlobStore:
    """CrudStore backed by tagged blobs.

    Credentials are resolved and the backend is built on first use, once per
    store instance.

    Args:
        config: Host configuration.
        backend: Ready-made backend; skips credential resolution entirely.
        credential_resolver: Resolves the storage account credential.
        backend_factory: Builds a backend from a credential and container name.
        poll_interval: Seconds between tag index checks after a save.
        poll_timeout: Seconds to wait for a saved record to become findable.
        clock: Monotonic clock used for the poll deadline.
    """

    def __init__(
        self,
        config: AzureConfig,
        *,
        backend: BlobBackend | None = None,
        credential_resolver: StorageCredentialResolver | None = None,
        backend_factory: BackendFactory = AzureBlobBackend.connect,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        poll_timeout: float = POLL_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._backend = backend
        self._credential_resolver = credential_resolver or StorageCredentialResolver(config)
        self._backend_factory = backend_factory
        self._poll_interval = poll_interval
        self._poll_timeout = poll_timeout
        self._clock = clock
        self._connect_lock = threading.Lock()
        self._migration_lock = threading.Lock()
        self._migrated = False

    # ------------------------------------------------------------------
    # CrudStore protocol
    # ------------------------------------------------------------------

    def count(self, item_type: str, group: str) -> int:
        return len(self.list(item_type, group))

    def list(self, item_type: str, group: str) -> list[str]:
        """Return the names of all records of ``item_type`` in ``group``.

        An empty group matches every record of the type.
        """
        backend = self._connect()
        tags = self._tags(item_type, group)
        logger.info("List items for %s/ group=%r", item_type, group)
        prefix = self._path(item_type, "")
        return [path.removeprefix(prefix) for path in backend.find_by_tags(tags)]

    def save(self, item_type: str, group: str, name: str, data: bytes) -> None:
        compress = self._config.storage_compress_data
        if compress:
            data = encode_payload(data)
        if len(data) > MAX_PAYLOAD_SIZE:
            raise PayloadTooLargeError(item_type, group, name, len(data), MAX_PAYLOAD_SIZE)

        backend = self._connect()
        path = self._path(item_type, name)
        logger.info(
            "Save %s/ group=%r %s (%d bytes, compressed=%s)",
            item_type,
            group,
            name,
            len(data),
            compress,
        )
        backend.upload(path, data, compression_metadata(compress))
        self._tag_and_wait(backend, path, item_type, group, name)

    def read(self, item_type: str, name: str) -> bytes:
        """Return a record's payload. Raises RecordNotFoundError if it is absent."""
        backend = self._connect()
        path = self._path(item_type, name)
        logger.info("Read itemtype %s %s", item_type, name)
        try:
            data, metadata = backend.download(path)
        except BlobNotFoundError as exc:
            if item_type == SCHEMA_ITEM_TYPE and name == SCHEMA_NAME:
                self._migrate_once(backend)
            raise RecordNotFoundError(item_type, name) from exc

        if is_compressed(metadata):
            return decode_payload(data)
        return data

    def delete(self, item_type: str, name: str) -> None:
        """Remove a record and its tags. Deleting an absent record is a no-op."""
        backend = self._connect()
        path = self._path(item_type, name)
        logger.info("Delete itemtype %s %s", item_type, name)
        try:
            backend.set_tags(path, {})
            backend.delete(path)
        except BlobNotFoundError:
            logger.debug("%s/%s was already deleted", item_type, name)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _connect(self) -> BlobBackend:
        if self._backend is not None:
            return self._backend
        with self._connect_lock:
            if self._backend is None:
                credential = self._credential_resolver.resolve()
                self._backend = self._backend_factory(credential, self._config.storage_container)
        return self._backend

    @staticmethod
    def _path(item_type: str, name: str) -> str:
        return f"{item_type}/{name}" if item_type else name

    @staticmethod
    def _tags(item_type: str, group: str) -> dict[str, str]:
        tags = {TYPE_TAG: item_type}
        if group:
            tags[GROUP_TAG] = group
        return tags

    def _tag_and_wait(
        self, backend: BlobBackend, path: str, item_type: str, group: str, name: str
    ) -> None:
        """Write index tags and block until the tag index returns the record."""
        tags = {TYPE_TAG: item_type, GROUP_TAG: group}
        stop = threading.Event()

        with ThreadPoolExecutor(max_workers=2) as executor:
            tagging = executor.submit(self._set_tags, backend, path, tags, stop)
            polling = executor.submit(self._wait_for_index, backend, path, tags, stop)
            tagging.result()
            if not polling.result():
                raise IndexTimeoutError(item_type, group, name, self._poll_timeout)

    @staticmethod
    def _set_tags(
        backend: BlobBackend, path: str, tags: dict[str, str], stop: threading.Event
    ) -> None:
        try:
            backend.set_tags(path, tags)
        except BaseException:
            stop.set()
            raise

    def _wait_for_index(
        self, backend: BlobBackend, path: str, query: dict[str, str], stop: threading.Event
    ) -> bool:
        """Poll the tag index until ``path`` appears.

        The query matches the exact tags just written, group included even
        when empty, so each poll only returns records that share both the
        type and the group of the saved one.  The index cannot be queried by
        blob name, so the cost of a poll still grows with the size of that
        group.  Returns False when the deadline passes or the wait is stopped.
        """
        deadline = self._clock() + self._poll_timeout
        while True:
            if path in backend.find_by_tags(query):
                return True
            remaining = deadline - self._clock()
            if remaining <= 0:
                logger.warning(
                    "%s did not appear in the tag index after %gs", path, self._poll_timeout
                )
                return False
            if stop.wait(min(self._poll_interval, remaining)):
                return False

    def _migrate_once(self, backend: BlobBackend) -> None:
        """Backfill legacy tags the first time the schema record is missing."""
        with self._migration_lock:
            if self._migrated:
                return
            self._migrated = True
        try:
            count = Migration(backend).run()
            logger.info("migrated %d legacy record(s) to tagged storage", count)
        except MigrationError as exc:
            logger.warning("migration of legacy records failed: %s", exc)
