# Overview: Single-flight submission of workflow mutations with tag invalidation on success.

"""
Mutation Runner

SEQUENCE (per mutation):
1. Refuse if a workflow mutation for the same entity is already in flight
2. Mark the entity pending (its action buttons read as disabled)
3. Submit exactly once
4. On success: dispatch the invalidation set for the mutation kind, then
   return the server data. Invalidation runs before control goes back to the
   caller, so any refetch the user triggers afterwards sees fresh data.
5. On failure: log, clear pending, re-raise unchanged. No retry; the entity's
   status is untouched because nothing was applied optimistically.

Two mutations on different entities may settle in any order; the cache
handles that (see cache_service).
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Hashable

from ..api_client import ApiError, Envelope
from ..validation import ValidationError
from .invalidation_service import InvalidationDispatcher


logger = logging.getLogger(__name__)


class MutationPendingError(ValidationError):
    """Another workflow mutation on the same entity has not settled yet."""

    code = "MUTATION_PENDING"


class MutationRunner:
    def __init__(self, dispatcher: InvalidationDispatcher):
        self.dispatcher = dispatcher
        self._pending: dict[Hashable, str] = {}
        self._lock = threading.Lock()

    def is_pending(self, entity_key: Hashable) -> bool:
        with self._lock:
            return entity_key in self._pending

    def pending_mutation(self, entity_key: Hashable) -> str | None:
        with self._lock:
            return self._pending.get(entity_key)

    def _acquire(self, entity_key: Hashable, mutation: str) -> None:
        with self._lock:
            in_flight = self._pending.get(entity_key)
            if in_flight is not None:
                raise MutationPendingError(
                    f"{in_flight} is still in progress for {entity_key[0]} #{entity_key[1]}"
                    if isinstance(entity_key, tuple) and len(entity_key) == 2
                    else f"{in_flight} is still in progress"
                )
            self._pending[entity_key] = mutation

    def _release(self, entity_key: Hashable) -> None:
        with self._lock:
            self._pending.pop(entity_key, None)

    def run(self, mutation: str, entity_key: Hashable, submit: Callable[[], Envelope]) -> Any:
        """
        Submit `submit()` once under the single-flight guard.

        Returns:
            The envelope's `data`

        Raises:
            MutationPendingError: entity already has a mutation in flight
            RemoteRejection / NetworkFailure: from the API client, unchanged
        """
        self._acquire(entity_key, mutation)
        logger.debug("Submitting %s for %r", mutation, entity_key)
        try:
            envelope = submit()
            # Invalidate while still pending so no action reads the old status
            self.dispatcher.dispatch(mutation)
        except ApiError as exc:
            logger.warning("%s for %r failed: %s", mutation, entity_key, exc.message)
            raise
        finally:
            self._release(entity_key)

        return envelope.data
