"""
Valkey (Redis-compatible) client backing the verification rate limiter.

Thin wrapper around redis-py; the URL comes from Vault. Fail-fast: raises on
connection failure, never returns fallback values.
"""

import logging

import redis

logger = logging.getLogger(__name__)


class ValkeyClient:
    """
    Counter store for sliding-window rate limits.

    Usage:
        client = ValkeyClient("redis://localhost:6379/0")
        attempts = client.hit("ratelimit:verify:203.0.113.7", window_seconds=60)
    """

    def __init__(self, url: str):
        """
        Connect and ping immediately.

        Raises:
            redis.ConnectionError: If Valkey is unreachable
        """
        self._client = redis.from_url(url, decode_responses=True)
        self._client.ping()
        logger.info("ValkeyClient connected")

    def ping(self) -> bool:
        self._client.ping()
        return True

    def hit(self, key: str, window_seconds: int) -> int:
        """
        Count one attempt and restart the key's window.

        INCR and EXPIRE run in one MULTI so a counter never outlives its
        window. Returns the count including this attempt.
        """
        pipe = self._client.pipeline(transaction=True)
        pipe.incr(key)
        pipe.expire(key, window_seconds)
        count, _ = pipe.execute()
        return count

    def count(self, key: str) -> int:
        """Attempts currently recorded under key; 0 when absent or expired."""
        value = self._client.get(key)
        return int(value) if value is not None else 0

    def ttl(self, key: str) -> int:
        """
        Remaining window in seconds.

        Returns -2 if the key doesn't exist, -1 if it has no expiry.
        """
        return self._client.ttl(key)

    def delete(self, key: str) -> bool:
        """True if the key existed."""
        return self._client.delete(key) > 0

    def close(self) -> None:
        self._client.close()
        logger.info("ValkeyClient closed")
