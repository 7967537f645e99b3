"""Dispatch Captivate push events to the cache, the registry and the console."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from captivate_bridge.feedback.cache import FeedbackCache
from captivate_bridge.feedback.keys import make_feedback_id
from captivate_bridge.feedback.resolver import FeedbackResolver
from captivate_bridge.host import ConsoleHost
from captivate_bridge.logging_utils import maybe_enable_debug_logger
from captivate_bridge.protocol.replies import MalformedReplyError, parse_json_object
from captivate_bridge.registry.titles import TitleRegistry
from captivate_bridge.router.debounce import Debouncer

logger = logging.getLogger(__name__)

_ROUTER_DEBUG = maybe_enable_debug_logger(logger, "CAPTIVATE_BRIDGE_EVENTS_DEBUG")

REGISTRY_CHANGE_SIGNAL = "_cmp_v1_handleActorRegistryChangeEvent"
FEEDBACK_CHANGE_SIGNAL = "_cmp_v1_handleFeedbackChangeEvent"
NOTIFY_SIGNAL = "onNotify"
SUBSCRIBED_EVENTS = "play,data"


@dataclass(frozen=True)
class FeedbackChange:
    actor_id: str
    feedback_id: str
    options: Mapping[str, Any] = field(default_factory=dict)
    state: Any = None


class NotificationRouter:
    """Routes the three Captivate push streams.

    Feedback changes go through a single inbox so they are applied strictly
    in arrival order even when resolving one of them awaits the engine.
    """

    def __init__(
        self,
        cache: FeedbackCache,
        resolver: FeedbackResolver,
        registry: TitleRegistry,
        host: ConsoleHost,
        refresh: Callable[[], Awaitable[None]],
        *,
        debounce_s: float = 1.0,
    ) -> None:
        self._cache = cache
        self._resolver = resolver
        self._registry = registry
        self._host = host
        self._refresh_debounced = Debouncer(refresh, debounce_s)
        self._inbox: Optional[asyncio.Queue[FeedbackChange]] = None
        self._pump_task: Optional[asyncio.Task[None]] = None
        self._subscribe_task: Optional[asyncio.Task[Any]] = None

    # ------------------------------------------------------------------
    def attach(self, bridge: Any) -> None:
        """Connect to a freshly initialised bridge and subscribe to events."""

        self._stop_pump()
        bridge.signal(REGISTRY_CHANGE_SIGNAL).connect(self.on_registry_changed)
        bridge.signal(FEEDBACK_CHANGE_SIGNAL).connect(self.on_feedback_changed)
        bridge.signal(NOTIFY_SIGNAL).connect(self.on_notify)
        self._subscribe_task = asyncio.get_running_loop().create_task(
            bridge.call("scheduleCommand", "subscribe", {"events": SUBSCRIBED_EVENTS}, {})
        )
        self._subscribe_task.add_done_callback(self._log_subscribe_result)
        self._ensure_pump()

    def detach(self) -> None:
        self._refresh_debounced.cancel()
        self._stop_pump()
        task = self._subscribe_task
        self._subscribe_task = None
        if task is not None and not task.done():
            task.cancel()

    @property
    def refresh_pending(self) -> bool:
        return self._refresh_debounced.pending

    # ------------------------------------------------------------------
    def on_registry_changed(self, element_id: Any = None) -> None:
        logger.debug("registry updated (%s)", element_id)
        self._refresh_debounced()

    def on_feedback_changed(self, actor_id: str, feedback_id: str, options: Any = None, state: Any = None) -> None:
        change = FeedbackChange(
            actor_id=str(actor_id),
            feedback_id=str(feedback_id),
            options=dict(options) if isinstance(options, Mapping) else {},
            state=state,
        )
        if _ROUTER_DEBUG:
            logger.debug("feedback change %s~%s %s", change.actor_id, change.feedback_id, change.options)
        self._ensure_pump().put_nowait(change)

    def on_notify(self, message: Any) -> None:
        try:
            data = parse_json_object(message, what="notification")
        except MalformedReplyError as exc:
            logger.debug("dropping notification: %s", exc)
            return
        event = data.get("event")
        if event != "data":
            if _ROUTER_DEBUG:
                logger.debug("ignoring %s notification", event)
            return
        title_id = data.get("id")
        variables = data.get("variables")
        title = self._registry.titles_by_id.get(title_id) if title_id else None
        if title is None or not isinstance(variables, list):
            return
        updates: Dict[str, Any] = {}
        for variable in variables:
            if not isinstance(variable, Mapping):
                continue
            name, value = variable.get("name"), variable.get("value")
            variable_id = self._registry.set_var(value, title=title, name=name)
            if variable_id is not None:
                updates[variable_id] = value
        if updates:
            self._host.set_variable_values(updates)

    # ------------------------------------------------------------------
    async def apply_feedback_change(self, change: FeedbackChange) -> None:
        raw = change.state
        if not isinstance(raw, Mapping):
            raw = parse_json_object(raw, what=f"pushed state for {change.feedback_id}")
        state = await self._resolver.resolve(raw)
        self._cache.store(change.actor_id, change.feedback_id, change.options, state)
        self._cache.mark_stale(make_feedback_id(change.actor_id, change.feedback_id))
        self._host.check_feedbacks()

    async def drain(self) -> None:
        """Wait until every queued feedback change has been applied."""

        inbox = self._inbox
        if inbox is not None:
            await inbox.join()

    def _ensure_pump(self) -> "asyncio.Queue[FeedbackChange]":
        if self._inbox is None:
            self._inbox = asyncio.Queue()
        if self._pump_task is None or self._pump_task.done():
            self._pump_task = asyncio.get_running_loop().create_task(self._pump(self._inbox))
        return self._inbox

    def _stop_pump(self) -> None:
        task = self._pump_task
        self._pump_task = None
        if task is not None:
            task.cancel()

    async def _pump(self, inbox: "asyncio.Queue[FeedbackChange]") -> None:
        while True:
            change = await inbox.get()
            try:
                await self.apply_feedback_change(change)
            except Exception as exc:
                logger.warning("feedback change for %s~%s dropped: %s", change.actor_id, change.feedback_id, exc)
            finally:
                inbox.task_done()

    @staticmethod
    def _log_subscribe_result(task: "asyncio.Task[Any]") -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("event subscription failed: %s", exc)
            return
        if _ROUTER_DEBUG:
            try:
                logger.debug("event subscription reply: %s", json.dumps(task.result()))
            except (TypeError, ValueError):
                logger.debug("event subscription reply: %r", task.result())
