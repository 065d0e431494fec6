"""In-memory TTL cache for chat replies.

Short-circuits repeated identical questions on the client side. Keys are
the question text lower-cased and trimmed; only successful replies are
stored. Suitable for a single process.
"""

from __future__ import annotations

import asyncio
import time

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from core.constants import RESPONSE_CACHE_MAX_SIZE, RESPONSE_CACHE_TTL_SECONDS
from models.api_models import ClientChatResponse


@dataclass(slots=True)
class CacheEntry:
    response: ClientChatResponse
    inserted_at: float


def normalize_key(message: str) -> str:
    return message.strip().lower()


class ResponseCache:
    """Bounded reply cache with TTL expiry and oldest-entry eviction.

    Safe for concurrent asyncio callers (uses asyncio.Lock), so the
    evict-then-insert sequence never loses an update.
    """

    def __init__(
        self,
        max_size: int = RESPONSE_CACHE_MAX_SIZE,
        ttl_seconds: float = RESPONSE_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize cache.

        Args:
            max_size: Maximum number of entries
            ttl_seconds: Age after which an entry is treated as absent
            clock: Monotonic time source, injectable for tests
        """
        self._entries: dict[str, CacheEntry] = {}
        self._max_size = max_size
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = asyncio.Lock()
        self._hits = 0
        self._misses = 0

    async def get(self, message: str) -> ClientChatResponse | None:
        """Cached reply for the question, or None when absent or expired."""
        key = normalize_key(message)
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None

            if self._clock() - entry.inserted_at > self._ttl:
                # Expired
                del self._entries[key]
                self._misses += 1
                return None

            self._hits += 1
            return entry.response

    async def set(self, message: str, response: ClientChatResponse) -> None:
        """Store a successful reply; failed replies are ignored."""
        if not response.success:
            return

        key = normalize_key(message)
        async with self._lock:
            if key not in self._entries and len(self._entries) >= self._max_size:
                oldest = min(self._entries, key=lambda k: self._entries[k].inserted_at)
                del self._entries[oldest]

            self._entries[key] = CacheEntry(response=response, inserted_at=self._clock())

    async def clear(self) -> None:
        """Clear all entries."""
        async with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        total = self._hits + self._misses
        hit_rate = self._hits / total if total > 0 else 0.0
        return {
            "size": len(self._entries),
            "max_size": self._max_size,
            "ttl_minutes": self._ttl / 60,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": f"{hit_rate:.1%}",
        }
