"""Expiry-aware token cache with single-flight refresh.

Each cache key moves through these states:

    EMPTY --get--> REFRESHING --success--> VALID
      ^                 |                    |
      +-----failure-----+    <--stale get----+

- A fresh token is served without I/O.
- A missing or stale token starts exactly one refresh task per key; every
  concurrent caller for that key awaits the same task and sees the same outcome.
- A failed refresh leaves the key EMPTY (no placeholder, no retry), so the next
  lookup starts a new refresh.
- Refresh tasks belong to the cache, not to the caller that started them: a
  cancelled caller detaches without cancelling the shared refresh.
"""

import asyncio
import logging
import time
from enum import Enum
from functools import partial
from typing import Any, Awaitable, Callable

from opentelemetry import trace

from fhir_auth.domain.models import CachedToken, CacheKey
from fhir_auth.observability import token_cache_hits, token_cache_refreshes

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

RefreshCallback = Callable[[], Awaitable[CachedToken]]


class CacheState(str, Enum):
    """Per-key cache states."""

    EMPTY = "empty"  # No token
    VALID = "valid"  # Token present (may have gone stale since it was stored)
    REFRESHING = "refreshing"  # A refresh is in flight


class TokenCache:
    """Token cache keyed by (token endpoint, client id).

    Must be used from a single event loop.

    Example:
        cache = TokenCache()
        token = await cache.get(key, lambda: exchange_client.exchange(...))
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        """Initialize the cache.

        Args:
            clock: Returns the current epoch time in seconds
        """
        self._clock = clock
        self._tokens: dict[CacheKey, CachedToken] = {}
        self._inflight: dict[CacheKey, asyncio.Task[CachedToken]] = {}

    def state(self, key: CacheKey) -> CacheState:
        task = self._inflight.get(key)
        if task is not None and not task.done():
            return CacheState.REFRESHING
        if key in self._tokens:
            return CacheState.VALID
        return CacheState.EMPTY

    def peek(self, key: CacheKey) -> CachedToken | None:
        """Return the stored token without refreshing (may be stale)."""
        return self._tokens.get(key)

    async def get(self, key: CacheKey, refresh: RefreshCallback) -> CachedToken:
        """Return a fresh token for key, refreshing it if needed.

        Args:
            key: Cache key
            refresh: Produces a new token; called at most once per in-flight refresh

        Returns:
            A token that was fresh when the lookup (or the awaited refresh) completed

        Raises:
            Exception: Whatever the refresh raised; all waiters receive the same error
        """
        with tracer.start_as_current_span("token_cache.get") as span:
            span.set_attribute("token_cache.key", str(key))

            cached = self._tokens.get(key)
            if cached is not None and not cached.is_stale(self._clock()):
                span.set_attribute("token_cache.hit", True)
                token_cache_hits.add(1)
                logger.debug("Token cache hit", extra={"cache_key": str(key), "expires_at": cached.expires_at})
                return cached

            span.set_attribute("token_cache.hit", False)
            task = self._inflight.get(key)
            if task is None or task.done():
                span.set_attribute("token_cache.refresh_started", True)
                task = self._start_refresh(key, refresh)
            else:
                logger.debug("Awaiting in-flight token refresh", extra={"cache_key": str(key)})

            # Shielded so a cancelled caller leaves the shared refresh running
            return await asyncio.shield(task)

    def _start_refresh(self, key: CacheKey, refresh: RefreshCallback) -> "asyncio.Task[CachedToken]":
        token_cache_refreshes.add(1)
        logger.info("Refreshing token", extra={"cache_key": str(key), "had_token": key in self._tokens})
        task = asyncio.get_running_loop().create_task(self._refresh(key, refresh))
        self._inflight[key] = task
        task.add_done_callback(partial(self._on_refresh_done, key))
        return task

    async def _refresh(self, key: CacheKey, refresh: RefreshCallback) -> CachedToken:
        try:
            token = await refresh()
        except BaseException:
            self._tokens.pop(key, None)
            raise
        self._tokens[key] = token
        return token

    def _on_refresh_done(self, key: CacheKey, task: "asyncio.Task[CachedToken]") -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if task.cancelled():
            logger.warning("Token refresh cancelled", extra={"cache_key": str(key)})
            return
        error = task.exception()
        if error is not None:
            logger.warning("Token refresh failed", extra={"cache_key": str(key), "error": str(error)})

    def invalidate(self, key: CacheKey | None = None) -> None:
        """Drop cached tokens.

        In-flight refreshes are left alone and will store their result.

        Args:
            key: Key to drop, or None to drop every token
        """
        if key is None:
            self._tokens.clear()
            logger.info("Cleared all cached tokens")
        else:
            self._tokens.pop(key, None)
            logger.info("Cleared cached token", extra={"cache_key": str(key)})

    async def wait_idle(self) -> None:
        """Wait until no refresh is in flight. Refresh errors are not raised here."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight.values()), return_exceptions=True)
            # Done callbacks remove finished tasks on the next loop iteration
            await asyncio.sleep(0)

    def get_cache_stats(self) -> dict[str, Any]:
        """Get cache statistics for monitoring."""
        now = self._clock()
        fresh = sum(1 for token in self._tokens.values() if not token.is_stale(now))
        return {
            "total_entries": len(self._tokens),
            "fresh_entries": fresh,
            "stale_entries": len(self._tokens) - fresh,
            "refreshing": len(self._inflight),
        }
