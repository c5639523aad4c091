"""Cache: injected stores keyed by the serialized vendor request."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import json
import logging
import time
from typing import Any, Protocol, runtime_checkable

from promptrelay.models import ProviderResponse, TokenUsage

logger = logging.getLogger(__name__)


@runtime_checkable
class CacheStore(Protocol):
    """Minimal async key/value store used by adapters."""

    async def get(self, key: str) -> Any | None:
        """Return the stored value, or None on a miss."""
        ...

    async def set(self, key: str, value: Any) -> None:
        """Store *value* under *key*."""
        ...


@dataclass
class MemoryCacheStore:
    """In-process store with optional expiration.

    ``ttl_seconds=None`` keeps entries for the lifetime of the store.
    """

    ttl_seconds: float | None = None
    _entries: dict[str, tuple[Any, float | None]] = field(
        default_factory=dict, init=False, repr=False
    )

    async def get(self, key: str) -> Any | None:
        """Get value if present and not expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and time.time() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: Any) -> None:
        """Store value with expiration time, dropping entries that have expired."""
        self._evict_expired()
        expires_at = (
            time.time() + max(0.0, self.ttl_seconds)
            if self.ttl_seconds is not None
            else None
        )
        self._entries[key] = (value, expires_at)

    def _evict_expired(self) -> None:
        if self.ttl_seconds is None:
            return
        now = time.time()
        expired = [
            key
            for key, (_, expires_at) in self._entries.items()
            if expires_at is not None and now >= expires_at
        ]
        for key in expired:
            del self._entries[key]

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def make_cache_key(prefix: str, body: Any) -> str:
    """Key = vendor prefix + canonical JSON of the outbound request body."""
    return f"{prefix}:{json.dumps(body, sort_keys=True, default=str)}"


async def get_cached_response(
    cache: CacheStore | None, key: str
) -> ProviderResponse | None:
    """Return a cached response marked as such, or None on miss.

    A store that fails to read is logged and treated as a miss.
    """
    if cache is None:
        return None
    try:
        value = await cache.get(key)
    except Exception as exc:
        logger.error("Failed to read cached response: %s", exc)
        return None
    if not value:
        return None
    if isinstance(value, ProviderResponse):
        return mark_cached(value)
    return mark_cached(ProviderResponse.from_dict(value))


async def store_response(
    cache: CacheStore | None, key: str, response: ProviderResponse
) -> None:
    """Write a successful response; store failures are logged, not raised."""
    if cache is None or response.error is not None:
        return
    try:
        await cache.set(key, response.to_dict())
    except Exception as exc:
        logger.error("Failed to cache response: %s", exc)


def mark_cached(response: ProviderResponse) -> ProviderResponse:
    """Flag *response* as served from cache, echoing total into ``cached``."""
    usage = response.token_usage or TokenUsage()
    return replace(
        response,
        cached=True,
        token_usage=replace(usage, cached=usage.total),
    )
