"""
Per-user cache of resolved access with TTL and explicit invalidation.

Each entry holds the Principal and its effective permissions, so any key or
region question for that user is answered without touching the store until
the entry expires or is invalidated.

Staleness bound:
    Entries live at most ``ttl_seconds`` after the load that produced them
    started. Invalidation bumps a generation counter; a load that started
    before an invalidation is returned to its caller but never stored, so a
    revoked grant cannot be re-cached by a resolution racing the mutation.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
import logging
import threading
import time

from .scope import applies_globally, applies_to_region
from .types import ResolvedAccess

logger = logging.getLogger(__name__)


Loader = Callable[[int], ResolvedAccess]
Clock = Callable[[], float]


@dataclass(frozen=True)
class _Entry:
    value: ResolvedAccess
    expires_at: float


class AuthorizationCache:
    """
    Thread-safe TTL + LRU cache in front of a resolution loader.

    The loader runs outside the lock. Two callers missing on the same user may
    both load; the later write wins.
    """

    def __init__(
        self,
        loader: Loader,
        *,
        ttl_seconds: float = 60.0,
        max_entries: int = 10_000,
        clock: Clock = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._loader = loader
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: OrderedDict[int, _Entry] = OrderedDict()
        self._generation = 0

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def resolve(self, user_id: int) -> ResolvedAccess:
        """Return the cached access for `user_id`, loading it on miss or expiry."""

        started = self._clock()
        with self._lock:
            entry = self._entries.get(user_id)
            if entry is not None:
                if started < entry.expires_at:
                    self._entries.move_to_end(user_id)
                    return entry.value
                del self._entries[user_id]
            generation = self._generation

        # Errors propagate and nothing is stored.
        value = self._loader(user_id)

        if self._ttl <= 0:
            return value

        with self._lock:
            if generation != self._generation:
                logger.debug("Discarding resolution raced by invalidation user_id=%s", user_id)
                return value
            self._entries[user_id] = _Entry(value=value, expires_at=started + self._ttl)
            self._entries.move_to_end(user_id)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)
        return value

    def get(self, user_id: int, key: str, region_code: str | None = None) -> bool:
        """Answer one key question; `region_code=None` asks the global bucket only."""

        access = self.resolve(user_id)
        if region_code is None:
            return applies_globally(access.permissions, key)
        return applies_to_region(access.permissions, region_code.upper(), key)

    def invalidate(self, user_id: int) -> None:
        with self._lock:
            self._entries.pop(user_id, None)
            self._generation += 1
        logger.debug("Authorization cache invalidated user_id=%s", user_id)

    def invalidate_all(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generation += 1
        logger.debug("Authorization cache flushed")
