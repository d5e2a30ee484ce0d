"""Tests for cache service."""

from unittest.mock import MagicMock, patch

import redis

from portal.integrations.cache import NullCacheService, RedisCacheService, create_cache_service


class TestNullCacheService:
    def test_get_json_returns_none(self):
        cache = NullCacheService()
        assert cache.get_json("any_key") is None

    def test_set_json_does_nothing(self):
        cache = NullCacheService()
        cache.set_json("key", {"data": "test"}, 60)  # Should not raise
        assert cache.get_json("key") is None

    def test_delete_does_nothing(self):
        NullCacheService().delete("key")  # Should not raise


class TestRedisCacheService:
    def _service(self, client):
        with patch("portal.integrations.cache.redis.from_url", return_value=client):
            return RedisCacheService("redis://localhost:6379/0")

    def test_json_roundtrip(self):
        client = MagicMock()
        client.get.return_value = '{"w1": true}'
        cache = self._service(client)

        assert cache.get_json("workflows:config") == {"w1": True}
        cache.set_json("workflows:config", {"w1": True}, 60)
        client.setex.assert_called_once_with("workflows:config", 60, '{"w1": true}')

    def test_errors_degrade_to_miss(self):
        client = MagicMock()
        client.get.side_effect = redis.ConnectionError("down")
        client.setex.side_effect = redis.ConnectionError("down")
        client.delete.side_effect = redis.ConnectionError("down")
        cache = self._service(client)

        assert cache.get_json("k") is None
        cache.set_json("k", {}, 60)
        cache.delete("k")

    def test_corrupt_payload_is_a_miss(self):
        client = MagicMock()
        client.get.return_value = "{not json"
        assert self._service(client).get_json("k") is None


class TestCreateCacheService:
    def test_no_url_gives_null_cache(self):
        with patch("portal.integrations.cache.settings") as s:
            s.redis_url = ""
            assert isinstance(create_cache_service(), NullCacheService)

    def test_unreachable_redis_gives_null_cache(self):
        client = MagicMock()
        client.ping.side_effect = redis.ConnectionError("refused")
        with patch("portal.integrations.cache.settings") as s, patch(
            "portal.integrations.cache.redis.from_url", return_value=client
        ):
            s.redis_url = "redis://nowhere:6379/0"
            assert isinstance(create_cache_service(), NullCacheService)
