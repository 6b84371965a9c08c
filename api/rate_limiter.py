"""Rate limiting for the public verification endpoint.

Uses Valkey with sliding window TTL - each attempt resets the expiry.
Clients enumerating verification ids hit an ever-extending lockout.
"""

import logging

from clients.valkey_client import ValkeyClient

logger = logging.getLogger(__name__)


class RateLimitedError(Exception):
    """Too many attempts. Client should wait before retrying."""

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(f"Rate limited. Retry after {retry_after_seconds} seconds.")


class RateLimiter:
    """Per-client rate limiting using Valkey."""

    KEY_PREFIX = "ratelimit:verify:"

    def __init__(self, valkey: ValkeyClient, max_attempts: int, window_seconds: int):
        self._valkey = valkey
        self._max_attempts = max_attempts
        self._window_seconds = window_seconds

    def _key(self, client_id: str) -> str:
        return f"{self.KEY_PREFIX}{client_id.lower()}"

    def check_rate_limit(self, client_id: str) -> None:
        """Count an attempt for client_id.

        Sliding window: TTL resets on every attempt. Hammering extends lockout.

        Raises:
            RateLimitedError: If rate limit exceeded.
        """
        key = self._key(client_id)
        attempts = self._valkey.hit(key, self._window_seconds)

        if attempts > self._max_attempts:
            if attempts == self._max_attempts + 1:
                logger.warning("Verification rate limit reached for %s", client_id)
            raise RateLimitedError(retry_after_seconds=max(self._valkey.ttl(key), 1))

    def get_remaining_attempts(self, client_id: str) -> int:
        """Attempts left in the current window, reported as X-RateLimit-Remaining."""
        return max(self._max_attempts - self._valkey.count(self._key(client_id)), 0)
