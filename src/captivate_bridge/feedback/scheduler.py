"""Cache miss worklist and the self-stopping rebuild loop."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Set

from captivate_bridge.feedback.cache import FeedbackCache
from captivate_bridge.feedback.keys import is_feedback_id, split_feedback_id
from captivate_bridge.feedback.resolver import FeedbackResolver, RemoteCaller
from captivate_bridge.protocol.replies import parse_json_object

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheMiss:
    feedback_id: str
    options: Mapping[str, Any] = field(default_factory=dict)


class MissQueue:
    """Unordered worklist of feedbacks to fetch; duplicates are allowed."""

    def __init__(self) -> None:
        self._items: List[CacheMiss] = []

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def push(self, miss: CacheMiss) -> None:
        self._items.append(miss)

    def pop(self) -> CacheMiss:
        return self._items.pop()

    def snapshot(self) -> List[CacheMiss]:
        return list(self._items)


class RebuildScheduler:
    """Refill cache misses from Captivate on a short repeating tick.

    ``start_checker`` rebuilds immediately and re-arms a tick while misses
    keep arriving; the first tick that finds the worklist empty stops.
    """

    def __init__(
        self,
        bridge: RemoteCaller,
        cache: FeedbackCache,
        resolver: FeedbackResolver,
        on_settled: Callable[[], None],
        *,
        interval_s: float = 0.5,
    ) -> None:
        self._bridge = bridge
        self._cache = cache
        self._resolver = resolver
        self._on_settled = on_settled
        self._interval_s = float(interval_s)
        self.misses = MissQueue()
        self._tick: Optional[asyncio.TimerHandle] = None
        self._refills: Set[asyncio.Task[None]] = set()

    @property
    def checker_active(self) -> bool:
        return self._tick is not None

    # ------------------------------------------------------------------
    def record_miss(self, feedback_id: str, options: Optional[Mapping[str, Any]] = None) -> bool:
        """Queue ``feedback_id`` unless the cache can already answer it."""

        if self._cache.get_from_full_id(feedback_id, options) is not None:
            return False
        self.queue(feedback_id, options)
        return True

    def queue(self, feedback_id: str, options: Optional[Mapping[str, Any]] = None) -> None:
        self.misses.push(CacheMiss(feedback_id, dict(options or {})))
        logger.debug("queued miss %s %s", feedback_id, dict(options or {}))

    def start_checker(self) -> None:
        """Rebuild now and arm the tick; a no-op while a tick is already armed."""

        if self._tick is not None or not self.misses:
            return
        self.rebuild()
        self._tick = asyncio.get_running_loop().call_later(self._interval_s, self._on_tick)

    def stop_checker(self) -> None:
        tick = self._tick
        self._tick = None
        if tick is not None:
            tick.cancel()

    def _on_tick(self) -> None:
        self._tick = None
        self.start_checker()

    # ------------------------------------------------------------------
    def rebuild(self) -> Optional["asyncio.Task[None]"]:
        """Issue a query for every queued miss; returns the settle task."""

        pending = []
        while self.misses:
            miss = self.misses.pop()
            actor_id, feedback_id = split_feedback_id(miss.feedback_id)
            if not (actor_id and is_feedback_id(feedback_id)):
                logger.debug("skipping miss with non-feedback id %r", miss.feedback_id)
                continue
            logger.debug("rebuilding feedback cache for %s", miss.feedback_id)
            pending.append(self._refill(miss, actor_id, feedback_id))

        if not pending:
            return None
        task = asyncio.get_running_loop().create_task(self._settle(pending))
        self._refills.add(task)
        task.add_done_callback(self._refills.discard)
        return task

    async def query(self, actor_id: str, feedback_id: str, options: Mapping[str, Any]) -> Dict[str, Any]:
        """Ask Captivate for one feedback's current state and resolve it."""

        reply = await self._bridge.call("_cmp_v1_queryFeedbackState", actor_id, feedback_id, dict(options))
        state = parse_json_object(reply, what=f"feedback state for {feedback_id}")
        logger.debug("feedback state received for %s~%s", actor_id, feedback_id)
        return await self._resolver.resolve(state)

    async def _refill(self, miss: CacheMiss, actor_id: str, feedback_id: str) -> bool:
        try:
            state = await self.query(actor_id, feedback_id, miss.options)
        except Exception as exc:
            logger.debug("refill of %s failed: %s", miss.feedback_id, exc)
            return False
        self._cache.store(actor_id, feedback_id, miss.options, state)
        self._cache.clear_stale(miss.feedback_id)
        return True

    async def _settle(self, pending: List[Any]) -> None:
        results = await asyncio.gather(*pending, return_exceptions=True)
        if not any(result is True for result in results):
            # nothing changed; a re-check would only re-poll the same misses
            logger.debug("no refill in the batch succeeded")
            return
        logger.debug("all refills settled; asking the console to check feedbacks")
        try:
            self._on_settled()
        except Exception:
            logger.debug("on_settled callback failed", exc_info=True)

    async def wait_idle(self) -> None:
        """Wait for every in-flight refill batch to settle."""

        while self._refills:
            await asyncio.gather(*list(self._refills), return_exceptions=True)
