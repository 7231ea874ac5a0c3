"""Tests for ValkeyClient with redis mocked out."""

from unittest.mock import patch

import pytest
import redis

from clients.valkey_client import ValkeyClient


@pytest.fixture
def redis_mock():
    with patch("clients.valkey_client.redis.from_url") as from_url:
        yield from_url.return_value


class TestValkeyClientInit:

    def test_pings_on_connect(self, redis_mock):
        ValkeyClient("redis://localhost:6379/0")
        redis_mock.ping.assert_called_once()

    def test_unreachable_server_raises(self, redis_mock):
        redis_mock.ping.side_effect = redis.ConnectionError("refused")

        with pytest.raises(redis.ConnectionError):
            ValkeyClient("redis://localhost:6379/0")


class TestLock:

    def test_lock_passes_timeouts(self, redis_mock):
        client = ValkeyClient("redis://localhost:6379/0")

        lock = client.lock("invoice-lock:1", timeout_seconds=30, blocking_timeout_seconds=5)

        redis_mock.lock.assert_called_once_with("invoice-lock:1", timeout=30, blocking_timeout=5)
        assert lock is redis_mock.lock.return_value

    def test_ping_and_close(self, redis_mock):
        client = ValkeyClient("redis://localhost:6379/0")

        assert client.ping() is True
        client.close()
        redis_mock.close.assert_called_once()
