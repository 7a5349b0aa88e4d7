"""Unit tests for the in-memory backends used by the stores in tests."""

import pytest

from azstore.backends import (
    BlobNotFoundError,
    EntityNotFoundError,
    MemoryBlobBackend,
    MemorySecretBackend,
    MemoryTableBackend,
    SecretNotFoundError,
    tag_filter,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestTagFilter:
    def test_single_tag(self):
        """
        Given one tag
        When tag_filter is called
        Then an equality expression is built
        """
        assert tag_filter({"type": "claims"}) == "\"type\" = 'claims'"

    def test_multiple_tags_are_joined_with_and(self):
        """
        Given two tags
        When tag_filter is called
        Then both conditions are combined with AND
        """
        assert tag_filter({"type": "claims", "group": "g1"}) == (
            "\"type\" = 'claims' AND \"group\" = 'g1'"
        )


class TestMemoryBlobBackend:
    def test_upload_and_download(self):
        """
        Given an uploaded blob with metadata
        When it is downloaded
        Then data and metadata come back
        """
        backend = MemoryBlobBackend()
        backend.upload("claims/c1", b"data", {"compressed": "true"})

        assert backend.download("claims/c1") == (b"data", {"compressed": "true"})

    def test_download_missing(self):
        """
        Given an empty backend
        When a blob is downloaded
        Then BlobNotFoundError is raised
        """
        with pytest.raises(BlobNotFoundError):
            MemoryBlobBackend().download("missing")

    def test_tags_become_visible_after_index_delay(self):
        """
        Given a backend whose tag index lags by 5 seconds
        When tags are written
        Then find_by_tags only returns the blob once the delay has passed
        """
        clock = FakeClock()
        backend = MemoryBlobBackend(index_delay=5.0, clock=clock)
        backend.upload("claims/c1", b"", {})
        backend.set_tags("claims/c1", {"type": "claims"})

        assert backend.find_by_tags({"type": "claims"}) == []
        clock.now = 5.0
        assert backend.find_by_tags({"type": "claims"}) == ["claims/c1"]

    def test_find_matches_every_tag(self):
        """
        Given blobs in two groups
        When find_by_tags filters on type and group
        Then only blobs matching both are returned
        """
        backend = MemoryBlobBackend()
        for name, group in (("claims/a", "g1"), ("claims/b", "g2")):
            backend.upload(name, b"", {})
            backend.set_tags(name, {"type": "claims", "group": group})

        assert backend.find_by_tags({"type": "claims", "group": "g1"}) == ["claims/a"]
        assert backend.find_by_tags({"type": "claims"}) == ["claims/a", "claims/b"]

    def test_overwrite_drops_tags(self):
        """
        Given a tagged blob
        When it is uploaded again
        Then its tags are gone
        """
        backend = MemoryBlobBackend()
        backend.upload("claims/c1", b"v1", {})
        backend.set_tags("claims/c1", {"type": "claims"})
        backend.upload("claims/c1", b"v2", {})

        assert backend.get_tags("claims/c1") == {}
        assert backend.find_by_tags({"type": "claims"}) == []

    def test_set_tags_on_missing_blob(self):
        """
        Given an empty backend
        When tags are written for a blob
        Then BlobNotFoundError is raised
        """
        with pytest.raises(BlobNotFoundError):
            MemoryBlobBackend().set_tags("missing", {"type": "x"})

    def test_list_names_by_prefix(self):
        """
        Given blobs under several prefixes
        When list_names is called
        Then only names under the prefix are returned
        """
        backend = MemoryBlobBackend()
        for name in ("claims/b", "claims/a", "results/r1", "schema"):
            backend.upload(name, b"", {})

        assert backend.list_names("claims/") == ["claims/a", "claims/b"]

    def test_delete(self):
        """
        Given a stored blob
        When it is deleted twice
        Then the second delete raises BlobNotFoundError
        """
        backend = MemoryBlobBackend()
        backend.upload("x", b"", {})
        backend.delete("x")

        with pytest.raises(BlobNotFoundError):
            backend.delete("x")


class TestMemoryTableBackend:
    def test_upsert_replaces_entity(self):
        """
        Given an entity upserted twice with different properties
        When it is read back
        Then only the second version's properties remain
        """
        backend = MemoryTableBackend()
        backend.upsert({"PartitionKey": "claims", "RowKey": "c1", "data": b"old", "extra": 1})
        backend.upsert({"PartitionKey": "claims", "RowKey": "c1", "data": b"new"})

        assert backend.get("claims", "c1") == {
            "PartitionKey": "claims",
            "RowKey": "c1",
            "data": b"new",
        }

    def test_get_missing(self):
        """
        Given an empty table
        When an entity is read
        Then EntityNotFoundError names the keys
        """
        with pytest.raises(EntityNotFoundError, match="claims/c1"):
            MemoryTableBackend().get("claims", "c1")

    def test_query_filters_partition_and_properties(self):
        """
        Given entities across partitions and groups
        When query is called with and without a property filter
        Then only matching row keys are returned, sorted
        """
        backend = MemoryTableBackend()
        backend.upsert({"PartitionKey": "claims", "RowKey": "c2", "group": "g1"})
        backend.upsert({"PartitionKey": "claims", "RowKey": "c1", "group": "g1"})
        backend.upsert({"PartitionKey": "claims", "RowKey": "c3", "group": "g2"})
        backend.upsert({"PartitionKey": "results", "RowKey": "r1", "group": "g1"})

        assert backend.query("claims", {"group": "g1"}) == ["c1", "c2"]
        assert backend.query("claims", {}) == ["c1", "c2", "c3"]
        assert backend.query("outputs", {}) == []

    def test_delete_missing(self):
        """
        Given an entity
        When it is deleted twice
        Then the second delete raises EntityNotFoundError
        """
        backend = MemoryTableBackend()
        backend.upsert({"PartitionKey": "claims", "RowKey": "c1"})
        backend.delete("claims", "c1")

        with pytest.raises(EntityNotFoundError):
            backend.delete("claims", "c1")


class TestMemorySecretBackend:
    VAULT = "https://kv.vault.azure.net"

    def test_latest_version(self):
        """
        Given a secret set twice
        When it is read without a version
        Then the latest value is returned
        """
        backend = MemorySecretBackend()
        backend.set_secret(self.VAULT, "s", "one")
        backend.set_secret(self.VAULT, "s", "two")

        assert backend.get_secret(self.VAULT, "s") == "two"

    def test_specific_version(self):
        """
        Given a secret set twice
        When version 1 is requested
        Then the first value is returned
        """
        backend = MemorySecretBackend()
        backend.set_secret(self.VAULT, "s", "one")
        backend.set_secret(self.VAULT, "s", "two")

        assert backend.get_secret(self.VAULT, "s", "1") == "one"

    def test_trailing_slash_is_ignored(self):
        """
        Given a secret set under a vault URL
        When it is read with a trailing slash on the URL
        Then it is found
        """
        backend = MemorySecretBackend()
        backend.set_secret(self.VAULT, "s", "v")

        assert backend.get_secret(self.VAULT + "/", "s") == "v"

    @pytest.mark.parametrize("version", ["", "3", "abc"])
    def test_missing(self, version):
        """
        Given no secret or no such version
        When it is read
        Then SecretNotFoundError is raised
        """
        backend = MemorySecretBackend()
        backend.set_secret(self.VAULT, "other", "v")
        if version:
            backend.set_secret(self.VAULT, "s", "v")

        with pytest.raises(SecretNotFoundError):
            backend.get_secret(self.VAULT, "s", version)
