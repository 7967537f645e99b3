"""Local feedback state cache."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, Mapping, MutableMapping, Optional, Set

from captivate_bridge.feedback.keys import make_cache_key, make_feedback_id, split_feedback_id

logger = logging.getLogger(__name__)

FeedbackState = Dict[str, Any]


class FeedbackCache:
    """Last known resolved state per feedback key.

    Entries never expire; they are overwritten by pushes and refills and only
    removed through :meth:`invalidate_prefix`. Stale marks are tracked per
    composite feedback id (``actorId~feedbackId``) so every option variant
    of a pushed feedback gets re-validated.
    """

    def __init__(self) -> None:
        self._entries: MutableMapping[str, FeedbackState] = {}
        self._stale: Set[str] = set()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def keys(self) -> Iterator[str]:
        return iter(list(self._entries))

    # ------------------------------------------------------------------
    def store(
        self,
        actor_id: str,
        feedback_id: str,
        options: Optional[Mapping[str, Any]],
        state: FeedbackState,
    ) -> str:
        key = make_cache_key(make_feedback_id(actor_id, feedback_id), options)
        self._entries[key] = state
        logger.debug("cache store %s", key)
        return key

    def get(
        self,
        actor_id: str,
        feedback_id: str,
        options: Optional[Mapping[str, Any]],
    ) -> Optional[FeedbackState]:
        return self._entries.get(make_cache_key(make_feedback_id(actor_id, feedback_id), options))

    def store_from_full_id(
        self,
        actor_feedback_id: str,
        options: Optional[Mapping[str, Any]],
        state: FeedbackState,
    ) -> str:
        actor_id, feedback_id = split_feedback_id(actor_feedback_id)
        return self.store(actor_id, feedback_id, options, state)

    def get_from_full_id(
        self,
        actor_feedback_id: str,
        options: Optional[Mapping[str, Any]],
    ) -> Optional[FeedbackState]:
        actor_id, feedback_id = split_feedback_id(actor_feedback_id)
        return self.get(actor_id, feedback_id, options)

    def invalidate_prefix(self, prefix: str) -> int:
        doomed = [key for key in self._entries if key.startswith(prefix)]
        for key in doomed:
            del self._entries[key]
        if doomed:
            logger.debug("cache invalidated %d entries with prefix %r", len(doomed), prefix)
        return len(doomed)

    # ------------------------------------------------------------------
    def mark_stale(self, actor_feedback_id: str) -> None:
        self._stale.add(actor_feedback_id)

    def is_stale(self, actor_feedback_id: str) -> bool:
        return actor_feedback_id in self._stale

    def clear_stale(self, actor_feedback_id: str) -> None:
        self._stale.discard(actor_feedback_id)
