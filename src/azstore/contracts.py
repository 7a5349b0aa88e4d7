"""Contracts the host programs against."""

from typing import Protocol


class CrudStore(Protocol):
    """Record storage keyed by ``(item_type, name)`` with a ``group`` index."""

    def count(self, item_type: str, group: str) -> int: ...

    def list(self, item_type: str, group: str) -> list[str]:
        """Return record names of ``item_type`` in ``group``; an empty group means all."""
        ...

    def save(self, item_type: str, group: str, name: str, data: bytes) -> None:
        """Create or replace a record."""
        ...

    def read(self, item_type: str, name: str) -> bytes:
        """Return a record's payload. Raises RecordNotFoundError if it is absent."""
        ...

    def delete(self, item_type: str, name: str) -> None:
        """Remove a record. No-op if it does not exist."""
        ...


class SecretsResolver(Protocol):
    """Resolves and stores secret values."""

    def resolve(self, key_name: str, key_value: str) -> str: ...

    def create(self, key_name: str, key_value: str, value: str) -> None: ...
