# Overview: Tag-keyed cache of server responses; refetchable copies only.

"""
Resource Cache

Every query result is stored under the resource tags it provides (e.g. a
purchase detail provides "Purchases"). Invalidating a tag marks every entry
that provides it stale, so the next read refetches from the remote API.

OUT-OF-ORDER SETTLEMENT:
Each tag carries a generation counter bumped on invalidation. A fetch that
started before an invalidation of one of its tags is stored as stale when it
lands, so a slow read can never resurrect a pre-mutation balance.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Iterable


logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    tags: frozenset[str]
    data: Any
    stale: bool = False


InvalidationListener = Callable[[frozenset[str]], None]


class ResourceCache:
    def __init__(self):
        self._entries: dict[Hashable, CacheEntry] = {}
        self._generations: dict[str, int] = {}
        self._listeners: list[InvalidationListener] = []
        self._lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def peek(self, key: Hashable) -> CacheEntry | None:
        with self._lock:
            return self._entries.get(key)

    def is_stale(self, key: Hashable) -> bool:
        entry = self.peek(key)
        return entry is None or entry.stale

    def query(self, key: Hashable, tags: Iterable[str], loader: Callable[[], Any]) -> Any:
        """
        Return fresh cached data for `key`, or call `loader` and cache its result.

        Loader errors propagate; nothing is cached for a failed fetch.
        """
        tag_set = frozenset(tags)
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and not entry.stale:
                return entry.data
            started_at = {tag: self._generations.get(tag, 0) for tag in tag_set}

        data = loader()

        with self._lock:
            invalidated_meanwhile = any(
                self._generations.get(tag, 0) != gen for tag, gen in started_at.items()
            )
            self._entries[key] = CacheEntry(tags=tag_set, data=data, stale=invalidated_meanwhile)
        if invalidated_meanwhile:
            logger.debug("Fetch for %r settled after invalidation; kept as stale", key)
        return data

    def store(self, key: Hashable, tags: Iterable[str], data: Any) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(tags=frozenset(tags), data=data)

    def drop(self, key: Hashable) -> None:
        """Forget an entry (e.g. the view reading it was unmounted)."""
        with self._lock:
            self._entries.pop(key, None)

    # -------------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------------

    def subscribe(self, listener: InvalidationListener) -> Callable[[], None]:
        """Register a listener called with each invalidated tag set; returns an unsubscribe."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def invalidate(self, tags: Iterable[str]) -> list[Hashable]:
        """Mark every entry providing any of `tags` stale. Returns the affected keys."""
        tag_set = frozenset(tags)
        if not tag_set:
            return []

        with self._lock:
            for tag in tag_set:
                self._generations[tag] = self._generations.get(tag, 0) + 1
            affected = []
            for key, entry in self._entries.items():
                if entry.tags & tag_set:
                    entry.stale = True
                    affected.append(key)
            listeners = list(self._listeners)

        logger.debug("Invalidated tags %s (%d cached entries)", sorted(tag_set), len(affected))
        for listener in listeners:
            listener(tag_set)
        return affected
