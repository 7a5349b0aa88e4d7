"""Blob, table and secret backend protocols with in-memory implementations."""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol


class BlobNotFoundError(Exception):
    """Raised by a backend when the named blob does not exist."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"blob {name} does not exist")


class BlobBackend(Protocol):
    """Protocol that all blob backends must satisfy.

    Names are full blob paths inside a single container.
    """

    def upload(self, name: str, data: bytes, metadata: dict[str, str]) -> None:
        """Create or overwrite a blob."""
        ...

    def download(self, name: str) -> tuple[bytes, dict[str, str]]:
        """Return the blob's payload and metadata. Raises BlobNotFoundError."""
        ...

    def set_tags(self, name: str, tags: dict[str, str]) -> None:
        """Replace the blob's index tags. Raises BlobNotFoundError."""
        ...

    def find_by_tags(self, tags: dict[str, str]) -> list[str]:
        """Return names of blobs whose index tags match every pair in ``tags``."""
        ...

    def list_names(self, prefix: str) -> list[str]:
        """Return names of all blobs starting with ``prefix``."""
        ...

    def delete(self, name: str) -> None:
        """Delete a blob and its snapshots. Raises BlobNotFoundError."""
        ...


def tag_filter(tags: dict[str, str]) -> str:
    """Build a blob index filter expression matching every tag exactly."""
    return " AND ".join(f"\"{key}\" = '{value}'" for key, value in tags.items())


@dataclass
class _Blob:
    data: bytes
    metadata: dict[str, str]
    tags: dict[str, str] = field(default_factory=dict)
    # Time at which the current tags become visible to find_by_tags.
    indexed_at: float = 0.0


class MemoryBlobBackend:
    """In-memory BlobBackend with an eventually consistent tag index.

    Tags written by ``set_tags`` only show up in ``find_by_tags`` once
    ``index_delay`` seconds have passed on ``clock``, like the real blob
    index which is built asynchronously.
    """

    def __init__(
        self, index_delay: float = 0.0, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self._blobs: dict[str, _Blob] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self.index_delay = index_delay
        self.uploads: list[str] = []

    def upload(self, name: str, data: bytes, metadata: dict[str, str]) -> None:
        with self._lock:
            # Overwriting a blob drops its index tags, as Put Blob does.
            self._blobs[name] = _Blob(bytes(data), dict(metadata))
            self.uploads.append(name)

    def download(self, name: str) -> tuple[bytes, dict[str, str]]:
        with self._lock:
            blob = self._blobs.get(name)
            if blob is None:
                raise BlobNotFoundError(name)
            return blob.data, dict(blob.metadata)

    def set_tags(self, name: str, tags: dict[str, str]) -> None:
        with self._lock:
            blob = self._blobs.get(name)
            if blob is None:
                raise BlobNotFoundError(name)
            blob.tags = dict(tags)
            blob.indexed_at = self._clock() + self.index_delay

    def get_tags(self, name: str) -> dict[str, str]:
        with self._lock:
            blob = self._blobs.get(name)
            if blob is None:
                raise BlobNotFoundError(name)
            return dict(blob.tags)

    def find_by_tags(self, tags: dict[str, str]) -> list[str]:
        now = self._clock()
        with self._lock:
            return sorted(
                name
                for name, blob in self._blobs.items()
                if blob.indexed_at <= now
                and all(blob.tags.get(key) == value for key, value in tags.items())
            )

    def list_names(self, prefix: str) -> list[str]:
        with self._lock:
            return sorted(name for name in self._blobs if name.startswith(prefix))

    def delete(self, name: str) -> None:
        with self._lock:
            if self._blobs.pop(name, None) is None:
                raise BlobNotFoundError(name)


class SecretNotFoundError(Exception):
    """Raised by a secret backend when the secret (or version) does not exist."""

    def __init__(self, vault_url: str, name: str, version: str = "") -> None:
        self.vault_url = vault_url
        self.name = name
        self.version = version
        suffix = f"/{version}" if version else ""
        super().__init__(f"secret {name}{suffix} not found in {vault_url}")


class SecretBackend(Protocol):
    """Protocol that all secret backends must satisfy."""

    def get_secret(self, vault_url: str, name: str, version: str = "") -> str:
        """Return a secret's value; an empty version means latest."""
        ...

    def set_secret(self, vault_url: str, name: str, value: str) -> None:
        """Create or update a secret."""
        ...


class MemorySecretBackend:
    """In-memory SecretBackend keyed by vault URL and secret name.

    Every ``set_secret`` adds a new version, numbered from ``1``.
    """

    def __init__(self) -> None:
        self._versions: dict[tuple[str, str], list[str]] = {}
        self.requests: list[tuple[str, str, str]] = []

    def get_secret(self, vault_url: str, name: str, version: str = "") -> str:
        self.requests.append((vault_url, name, version))
        versions = self._versions.get((vault_url.rstrip("/"), name))
        if not versions:
            raise SecretNotFoundError(vault_url, name, version)
        if not version:
            return versions[-1]
        if not version.isdigit() or not 1 <= int(version) <= len(versions):
            raise SecretNotFoundError(vault_url, name, version)
        return versions[int(version) - 1]

    def set_secret(self, vault_url: str, name: str, value: str) -> None:
        self._versions.setdefault((vault_url.rstrip("/"), name), []).append(value)


class EntityNotFoundError(Exception):
    """Raised by a table backend when the entity does not exist."""

    def __init__(self, partition_key: str, row_key: str) -> None:
        self.partition_key = partition_key
        self.row_key = row_key
        super().__init__(f"entity {partition_key}/{row_key} does not exist")


class TableBackend(Protocol):
    """Protocol that all table backends must satisfy.

    Entities are plain dicts holding ``PartitionKey``, ``RowKey`` and any
    number of properties.
    """

    def upsert(self, entity: dict[str, Any]) -> None:
        """Create or replace an entity."""
        ...

    def get(self, partition_key: str, row_key: str) -> dict[str, Any]:
        """Return an entity. Raises EntityNotFoundError."""
        ...

    def query(self, partition_key: str, properties: dict[str, str]) -> list[str]:
        """Return row keys in ``partition_key`` whose properties match ``properties``."""
        ...

    def delete(self, partition_key: str, row_key: str) -> None:
        """Delete an entity. Raises EntityNotFoundError."""
        ...


class MemoryTableBackend:
    """In-memory TableBackend. Queries return row keys in key order."""

    def __init__(self) -> None:
        self._entities: dict[tuple[str, str], dict[str, Any]] = {}
        self._lock = threading.Lock()

    def upsert(self, entity: dict[str, Any]) -> None:
        key = (entity["PartitionKey"], entity["RowKey"])
        with self._lock:
            self._entities[key] = dict(entity)

    def get(self, partition_key: str, row_key: str) -> dict[str, Any]:
        with self._lock:
            entity = self._entities.get((partition_key, row_key))
            if entity is None:
                raise EntityNotFoundError(partition_key, row_key)
            return dict(entity)

    def query(self, partition_key: str, properties: dict[str, str]) -> list[str]:
        with self._lock:
            return sorted(
                row_key
                for (pk, row_key), entity in self._entities.items()
                if pk == partition_key
                and all(entity.get(key) == value for key, value in properties.items())
            )

    def delete(self, partition_key: str, row_key: str) -> None:
        with self._lock:
            if self._entities.pop((partition_key, row_key), None) is None:
                raise EntityNotFoundError(partition_key, row_key)
