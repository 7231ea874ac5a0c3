"""
Valkey (Redis-compatible) client for cross-process invoice locks.

Simple wrapper around redis-py. Connection URL from Vault.
Fail-fast: raises on connection failure, never returns fallback values.
"""

import logging

import redis
from redis.lock import Lock

logger = logging.getLogger(__name__)


class ValkeyClient:
    """
    Redis-compatible client for Valkey.

    Usage:
        client = ValkeyClient("redis://localhost:6379/0")
        with client.lock("invoice-lock:42", timeout_seconds=30):
            ...
    """

    def __init__(self, url: str):
        """
        Initialize Valkey connection.

        Args:
            url: Redis-compatible connection URL (e.g., redis://localhost:6379/0)

        Raises:
            redis.ConnectionError: If connection fails
        """
        self._client = redis.from_url(url, decode_responses=True)
        # Verify connectivity immediately (fail-fast)
        self._client.ping()
        logger.info("ValkeyClient connected")

    def ping(self) -> bool:
        """
        Health check.

        Returns True if Valkey responds.
        Raises redis.ConnectionError if unreachable.
        """
        self._client.ping()
        return True

    def lock(self, name: str, timeout_seconds: float, blocking_timeout_seconds: float) -> Lock:
        """
        Distributed lock that expires after timeout_seconds.

        The lock expiry bounds how long a crashed holder can block others.
        Acquisition waits up to blocking_timeout_seconds.
        """
        return self._client.lock(
            name,
            timeout=timeout_seconds,
            blocking_timeout=blocking_timeout_seconds,
        )

    def close(self) -> None:
        """Close the connection."""
        self._client.close()
        logger.info("ValkeyClient closed")
