import pytest
import redis

from backend import MemoryBackend, RedisBackend
from exceptions import StorageUnavailable


class TestMemoryBackend:
    def test_put_get_delete(self, store):
        assert store.get("room:1") is None
        store.put("room:1", "{}")
        assert store.get("room:1") == "{}"
        store.delete("room:1")
        assert store.get("room:1") is None

    def test_delete_missing_key_is_noop(self, store):
        store.delete("nope")

    def test_ttl_expiry(self, store, clock):
        store.put("marker:user:eve", "x", ttl=60)
        clock.advance(seconds=59)
        assert store.get("marker:user:eve") == "x"
        assert store.ttl("marker:user:eve") == pytest.approx(1)
        clock.advance(seconds=1)
        assert store.get("marker:user:eve") is None
        assert store.ttl("marker:user:eve") is None

    def test_no_ttl_never_expires(self, store, clock):
        store.put("room:1", "x")
        clock.advance(days=30)
        assert store.get("room:1") == "x"
        assert store.ttl("room:1") is None

    def test_put_if_absent(self, store, clock):
        assert store.put_if_absent("room-name:lobby", "a") is True
        assert store.put_if_absent("room-name:lobby", "b") is False
        assert store.get("room-name:lobby") == "a"

    def test_put_if_absent_after_expiry(self, store, clock):
        assert store.put_if_absent("k", "a", ttl=5) is True
        clock.advance(seconds=6)
        assert store.put_if_absent("k", "b") is True
        assert store.get("k") == "b"

    def test_list_keys_by_prefix(self, store, clock):
        store.put("room:1", "x")
        store.put("room:2", "x", ttl=1)
        store.put("room-name:lobby", "1")
        store.put("active-user:eve", "x")
        clock.advance(seconds=2)
        assert store.list_keys("room:") == ["room:1"]
        assert store.list_keys("active-user:") == ["active-user:eve"]

    def test_ping(self):
        assert MemoryBackend().ping() is True


class TestRedisBackend:
    @pytest.fixture
    def client(self, mocker):
        return mocker.Mock(spec=redis.Redis)

    @pytest.fixture
    def backend(self, client):
        return RedisBackend(client=client)

    def test_get(self, backend, client):
        client.get.return_value = "value"
        assert backend.get("room:1") == "value"
        client.get.assert_called_once_with("room:1")

    def test_put_with_ttl_uses_milliseconds(self, backend, client):
        backend.put("marker:room:1", "x", ttl=60)
        client.set.assert_called_once_with("marker:room:1", "x", px=60000)

    def test_put_without_ttl(self, backend, client):
        backend.put("room:1", "x")
        client.set.assert_called_once_with("room:1", "x", px=None)

    def test_put_if_absent_uses_nx(self, backend, client):
        client.set.return_value = True
        assert backend.put_if_absent("room-name:lobby", "1") is True
        client.set.assert_called_once_with("room-name:lobby", "1", nx=True, px=None)

        client.set.return_value = None
        assert backend.put_if_absent("room-name:lobby", "2") is False

    def test_list_keys_scans_prefix(self, backend, client):
        client.scan_iter.return_value = iter(["room:1", "room:2"])
        assert backend.list_keys("room:") == ["room:1", "room:2"]
        client.scan_iter.assert_called_once_with(match="room:*", count=500)

    def test_ttl(self, backend, client):
        client.pttl.return_value = 1500
        assert backend.ttl("k") == 1.5
        client.pttl.return_value = -1
        assert backend.ttl("k") is None
        client.pttl.return_value = -2
        assert backend.ttl("k") is None

    def test_delete(self, backend, client):
        backend.delete("room:1")
        client.delete.assert_called_once_with("room:1")

    def test_redis_errors_become_storage_unavailable(self, backend, client):
        client.get.side_effect = redis.ConnectionError("down")
        with pytest.raises(StorageUnavailable):
            backend.get("room:1")

    def test_connection_failure_on_init(self, mocker):
        fake = mocker.patch("backend.redis.Redis")
        fake.return_value.ping.side_effect = redis.ConnectionError("refused")
        with pytest.raises(StorageUnavailable):
            RedisBackend()
