"""Unit tests for the table record store."""

import pytest

from azstore.azure.credentials import StorageCredential, StorageCredentialResolver
from azstore.backends import MemoryTableBackend
from azstore.config import AzureConfig
from azstore.domain.payload import decode_payload
from azstore.errors import CredentialResolutionError, PayloadTooLargeError, RecordNotFoundError
from azstore.table_store import TableStore

CLAIM = b'{"id": "01", "installation": "mysql", "action": "install"}'


class CountingResolver:
    def __init__(self) -> None:
        self.calls = 0

    def resolve(self) -> StorageCredential:
        self.calls += 1
        return StorageCredential("acct", "key")


class RefusingResolver:
    def resolve(self) -> StorageCredential:
        raise AssertionError("credentials must not be resolved")


def _store(backend=None, compress: bool = False) -> TableStore:
    config = AzureConfig(storage_compress_data=compress)
    return TableStore(config, backend=backend or MemoryTableBackend())


class TestSaveAndList:
    def test_record_is_an_entity(self):
        """
        Given a saved record
        When its entity is inspected
        Then it is keyed by type and name and carries the group and payload
        """
        backend = MemoryTableBackend()
        _store(backend).save("claims", "mysql", "c1", CLAIM)

        assert backend.get("claims", "c1") == {
            "PartitionKey": "claims",
            "RowKey": "c1",
            "group": "mysql",
            "data": CLAIM,
        }

    def test_saved_record_is_listed_immediately(self):
        """
        Given an empty store
        When a record is saved and its group is listed
        Then the record is included and counted
        """
        store = _store()
        store.save("claims", "mysql", "c1", CLAIM)

        assert store.list("claims", "mysql") == ["c1"]
        assert store.count("claims", "mysql") == 1

    def test_group_filter(self):
        """
        Given records of one type in two groups
        When list is called with a group and with no group
        Then the group filter narrows the result and no group matches all
        """
        store = _store()
        store.save("claims", "g1", "c1", CLAIM)
        store.save("claims", "g2", "c2", CLAIM)
        store.save("results", "g1", "r1", CLAIM)

        assert store.list("claims", "g1") == ["c1"]
        assert store.list("claims", "g2") == ["c2"]
        assert store.list("claims", "") == ["c1", "c2"]
        assert store.count("claims", "") == 2
        assert store.count("outputs", "") == 0

    def test_schema_record_uses_schema_partition(self):
        """
        Given the schema record, saved with an empty item type
        When it is read and listed
        Then it lives in the schema partition and round-trips
        """
        backend = MemoryTableBackend()
        store = _store(backend)
        store.save("", "", "schema", b'{"schema": "1.0.0"}')

        assert backend.query("schema", {}) == ["schema"]
        assert store.read("", "schema") == b'{"schema": "1.0.0"}'
        assert store.list("", "") == ["schema"]

    def test_overwrite_replaces_payload(self):
        """
        Given an existing record
        When it is saved again with new data in another group
        Then read returns the new data and only the new group lists it
        """
        store = _store()
        store.save("claims", "g1", "c1", b"old")
        store.save("claims", "g2", "c1", b"new")

        assert store.read("claims", "c1") == b"new"
        assert store.list("claims", "g1") == []
        assert store.list("claims", "g2") == ["c1"]


class TestSizeLimit:
    def test_oversized_payload_is_rejected(self):
        """
        Given a payload over 65536 bytes
        When it is saved
        Then PayloadTooLargeError names table storage and nothing is written
        """
        backend = MemoryTableBackend()

        with pytest.raises(PayloadTooLargeError, match="for table storage") as exc_info:
            _store(backend).save("claims", "g1", "c1", b"x" * 65537)

        assert exc_info.value.size == 65537
        assert backend.query("claims", {}) == []

    def test_limit_is_checked_before_credentials(self):
        """
        Given a store whose credentials have not been resolved yet
        When an oversized payload is saved
        Then the error is raised without resolving credentials
        """
        store = TableStore(AzureConfig(), credential_resolver=RefusingResolver())

        with pytest.raises(PayloadTooLargeError):
            store.save("claims", "g1", "c1", b"x" * 70000)

    def test_limit_applies_to_compressed_size(self):
        """
        Given compression is on and a large but repetitive payload
        When it is saved
        Then it fits because the compressed size is what counts
        """
        store = _store(compress=True)
        data = b"a" * 200_000

        store.save("claims", "g1", "c1", data)

        assert store.read("claims", "c1") == data


class TestCompression:
    def test_compressed_roundtrip(self):
        """
        Given compression is on
        When a record is saved and read
        Then the entity holds compressed data with a marker and read returns
        the original
        """
        backend = MemoryTableBackend()
        store = _store(backend, compress=True)
        store.save("claims", "g1", "c1", CLAIM)

        entity = backend.get("claims", "c1")
        assert entity["compressed"] is True
        assert decode_payload(entity["data"]) == CLAIM
        assert store.read("claims", "c1") == CLAIM

    def test_toggling_compression_keeps_old_records_readable(self):
        """
        Given one record written compressed and one written plain
        When both are read by stores with either setting
        Then every read returns the original payload
        """
        backend = MemoryTableBackend()
        _store(backend, compress=True).save("claims", "g1", "zipped", CLAIM)
        _store(backend, compress=False).save("claims", "g1", "plain", CLAIM)

        assert "compressed" not in backend.get("claims", "plain")
        for compress in (True, False):
            store = _store(backend, compress=compress)
            assert store.read("claims", "zipped") == CLAIM
            assert store.read("claims", "plain") == CLAIM


class TestReadAndDelete:
    def test_read_missing(self):
        """
        Given an empty store
        When a record is read
        Then RecordNotFoundError is raised
        """
        with pytest.raises(RecordNotFoundError, match="claims/c1"):
            _store().read("claims", "c1")

    def test_delete_removes_record(self):
        """
        Given a stored record
        When it is deleted
        Then it can no longer be read or listed
        """
        store = _store()
        store.save("claims", "g1", "c1", CLAIM)

        store.delete("claims", "c1")

        with pytest.raises(RecordNotFoundError):
            store.read("claims", "c1")
        assert store.list("claims", "g1") == []

    def test_delete_missing_is_a_no_op(self):
        """
        Given an empty store
        When a record is deleted, twice
        Then no error is raised
        """
        store = _store()
        store.delete("claims", "c1")
        store.delete("claims", "c1")


class TestConnection:
    def test_credentials_are_resolved_lazily_once(self):
        """
        Given a store built with a credential resolver and backend factory
        When it is constructed and then used several times
        Then credentials are resolved only on first use, exactly once
        """
        resolver = CountingResolver()
        built = []
        backend = MemoryTableBackend()

        def factory(credential, table_name):
            built.append((credential.account_name, table_name))
            return backend

        store = TableStore(AzureConfig(), credential_resolver=resolver, backend_factory=factory)
        assert resolver.calls == 0

        store.save("claims", "g1", "c1", CLAIM)
        store.list("claims", "g1")
        store.read("claims", "c1")

        assert resolver.calls == 1
        assert built == [("acct", "porter")]

    def test_credential_error_surfaces_on_first_use(self):
        """
        Given no connection string or account settings
        When the store is first used
        Then the credential error is raised
        """
        resolver = StorageCredentialResolver(AzureConfig(), environ={})
        store = TableStore(AzureConfig(), credential_resolver=resolver)

        with pytest.raises(CredentialResolutionError, match="was not set"):
            store.list("claims", "")
