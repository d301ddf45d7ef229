"""
Bounded cache of self-signed JWTs.

Background for newcomers:
    A self-signed JWT is only valid for the audience it names, so a credential
    that talks to many services ends up holding one token per target URI.
    This cache keeps them, up to a fixed number of entries. When a new key
    arrives at capacity the oldest-*inserted* key is dropped; refreshing an
    existing key (because its token went stale) replaces the entry in place
    and does not move it in the eviction order. Python dicts keep insertion
    order and keep a key's position on reassignment, which is exactly that
    behaviour.

    Each entry expires a safety window *before* the token itself does, so a
    caller never receives a token that is about to be rejected.
"""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Hashable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedToken:
    """An immutable cache entry. ``generation`` is unique per minted entry."""

    key: Hashable
    token: str
    expires_at: datetime
    generation: int

    def is_live(self, now: datetime) -> bool:
        return now < self.expires_at


class TokenCache:
    """Thread-safe, insertion-ordered, size-bounded token cache."""

    def __init__(self, max_size: int) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._max_size = max_size
        self._entries: dict[Hashable, CachedToken] = {}
        self._lock = threading.Lock()
        self._generations = itertools.count(1)

    @property
    def max_size(self) -> int:
        return self._max_size

    def get_or_create(
        self,
        key: Hashable,
        now: datetime,
        factory: Callable[[], tuple[str, datetime]],
    ) -> CachedToken:
        """
        Return the live entry for ``key`` or mint a replacement.

        ``factory`` returns ``(token, expires_at)`` and is called while the
        lock is held, so the check and the insert are one step for every
        caller of this cache.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.is_live(now):
                return entry

            token, expires_at = factory()
            fresh = CachedToken(key=key, token=token, expires_at=expires_at, generation=next(self._generations))
            if entry is None and len(self._entries) >= self._max_size:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
                logger.debug("JWT cache full (size=%d); evicted oldest entry", self._max_size)
            self._entries[key] = fresh
            return fresh

    def peek(self, key: Hashable) -> CachedToken | None:
        """Return the stored entry for ``key`` whether or not it is still live."""
        with self._lock:
            return self._entries.get(key)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries
