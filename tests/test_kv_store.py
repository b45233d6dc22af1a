"""
Tests for the DynamoDB-backed KV store.
"""

import time
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError


class TestGetPut:
    def test_round_trip(self, store):
        store.put("npm:react", '{"repos": []}')
        assert store.get("npm:react") == '{"repos": []}'

    def test_missing(self, store):
        assert store.get("npm:nope") is None

    def test_overwrite(self, store):
        store.put("k", "one")
        store.put("k", "two")
        assert store.get("k") == "two"

    def test_metadata_listed(self, store):
        store.put("npm:react", "{}", metadata={"fetchedAt": "2025-01-01T00:00:00.000Z", "partial": False})

        result = store.list()

        assert [k.name for k in result.keys] == ["npm:react"]
        assert result.keys[0].metadata == {"fetchedAt": "2025-01-01T00:00:00.000Z", "partial": False}

    def test_expired_item_is_absent(self, store):
        store.table.put_item(Item={"pk": "old", "value": "x", "expires_at": int(time.time()) - 10})

        assert store.get("old") is None
        assert store.exists("old") is False
        assert [k.name for k in store.list().keys] == []

    def test_ttl_sets_expiry(self, store):
        store.put("k", "v", ttl_seconds=300)

        item = store.table.get_item(Key={"pk": "k"})["Item"]
        assert int(item["expires_at"]) > time.time()
        assert store.get("k") == "v"

    def test_delete(self, store):
        store.put("k", "v")
        store.delete("k")
        assert store.get("k") is None
        assert store.exists("k") is False


class TestPutIfAbsent:
    def test_first_writer_wins(self, store):
        assert store.put_if_absent("lock:npm:react", "1", ttl_seconds=300) is True
        assert store.put_if_absent("lock:npm:react", "1", ttl_seconds=300) is False

    def test_expired_lease_can_be_taken(self, store):
        store.table.put_item(
            Item={"pk": "lock:npm:react", "value": "1", "expires_at": int(time.time()) - 1}
        )

        assert store.put_if_absent("lock:npm:react", "1", ttl_seconds=300) is True

    def test_released_lease_can_be_taken(self, store):
        store.put_if_absent("lock:npm:react", "1", ttl_seconds=300)
        store.delete("lock:npm:react")

        assert store.put_if_absent("lock:npm:react", "1", ttl_seconds=300) is True


class TestList:
    def test_pagination(self, store):
        for i in range(5):
            store.put(f"npm:pkg{i}", "{}")

        names = []
        cursor = None
        pages = 0
        while True:
            result = store.list(cursor=cursor, limit=2)
            names.extend(k.name for k in result.keys)
            pages += 1
            if result.list_complete:
                break
            cursor = result.cursor

        assert sorted(names) == [f"npm:pkg{i}" for i in range(5)]
        assert pages >= 3


class TestThrottleRetry:
    def test_retries_throttling(self, store):
        throttled = ClientError(
            {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow down"}},
            "GetItem",
        )
        table = MagicMock()
        table.get_item.side_effect = [throttled, {"Item": {"pk": "k", "value": "v"}}]

        with patch.object(type(store), "table", new=table), patch("shared.kv_store.time.sleep"):
            assert store.get("k") == "v"

        assert table.get_item.call_count == 2

    def test_other_errors_propagate(self, store):
        error = ClientError(
            {"Error": {"Code": "ValidationException", "Message": "bad"}}, "GetItem"
        )
        table = MagicMock()
        table.get_item.side_effect = error

        with patch.object(type(store), "table", new=table):
            with pytest.raises(ClientError):
                store.get("k")

        assert table.get_item.call_count == 1
