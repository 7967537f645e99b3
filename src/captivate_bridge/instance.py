"""Console-facing Captivate instance.

Wires the RPC bridge, feedback cache, resolver, rebuild scheduler and
notification router together and implements the console lifecycle hooks
plus the synchronous feedback callback.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Union

from captivate_bridge.bridge.rpc import Connector, NotConnectedError, RpcBridge, UnknownMethodError
from captivate_bridge.config.loader import load_bridge_settings
from captivate_bridge.config.models import BridgeSettings, ConnectionConfig
from captivate_bridge.feedback.cache import FeedbackCache
from captivate_bridge.feedback.resolver import FeedbackResolver
from captivate_bridge.feedback.scheduler import RebuildScheduler
from captivate_bridge.host import ConsoleHost
from captivate_bridge.imaging.compositor import ImageCompositor
from captivate_bridge.imaging.image_store import ImageStore
from captivate_bridge.protocol.replies import MalformedReplyError
from captivate_bridge.registry.definitions import (
    REFRESH_KINDS,
    actor_ids,
    parse_update_timestamp,
    request_definition,
)
from captivate_bridge.registry.titles import TITLE_INFO_ARGS, TitleRegistry
from captivate_bridge.router.notifications import NotificationRouter

logger = logging.getLogger(__name__)

FEEDBACK_TYPE_BOOLEAN = "boolean"
FEEDBACK_TYPE_ADVANCED = "advanced"


@dataclass(frozen=True)
class FeedbackEvent:
    """One feedback evaluation request from the console.

    ``feedback_id`` is the composite ``actorId~feedbackId``.
    """

    feedback_id: str
    options: Mapping[str, Any] = field(default_factory=dict)
    type: str = FEEDBACK_TYPE_BOOLEAN

    @classmethod
    def coerce(cls, event: Union["FeedbackEvent", Mapping[str, Any]]) -> "FeedbackEvent":
        if isinstance(event, cls):
            return event
        feedback_id = event.get("feedbackId", event.get("feedback_id"))
        options = event.get("options")
        return cls(
            feedback_id=str(feedback_id or ""),
            options=dict(options) if isinstance(options, Mapping) else {},
            type=str(event.get("type") or FEEDBACK_TYPE_BOOLEAN),
        )


class CaptivateInstance:
    def __init__(
        self,
        host: ConsoleHost,
        *,
        settings: Optional[BridgeSettings] = None,
        connector: Optional[Connector] = None,
        compositor: Optional[ImageCompositor] = None,
    ) -> None:
        self.host = host
        self.settings = settings or load_bridge_settings()
        self.bridge = RpcBridge(
            settings=self.settings,
            on_status=host.update_status,
            on_ready=self._on_bridge_ready,
            connector=connector,
        )
        self.images = ImageStore()
        self.registry = TitleRegistry()
        self.cache = FeedbackCache()
        self.resolver = FeedbackResolver(
            self.bridge,
            self.images,
            compositor,
            layer_state_key=self.settings.layer_state_key,
        )
        self.scheduler = RebuildScheduler(
            self.bridge,
            self.cache,
            self.resolver,
            host.check_feedbacks,
            interval_s=self.settings.rebuild_interval_s,
        )
        self.router = NotificationRouter(
            self.cache,
            self.resolver,
            self.registry,
            host,
            self.refresh_integrations,
            debounce_s=self.settings.registry_debounce_s,
        )
        self.time_of_last_definition_updates = datetime.now(timezone.utc)

    @property
    def config(self) -> ConnectionConfig:
        return self.bridge.config

    # ------------------------------------------------------------------
    # console lifecycle
    async def init(self, config: Union[ConnectionConfig, Mapping[str, Any]]) -> None:
        await self.config_updated(config)

    async def config_updated(self, config: Union[ConnectionConfig, Mapping[str, Any]]) -> None:
        if not isinstance(config, ConnectionConfig):
            config = ConnectionConfig.from_mapping(config)
        config = replace(config, needs_new_config=False)
        logger.debug("configuration changed: %s", config.to_dict())
        await self.bridge.disconnect()
        self.bridge.configure(config)
        self.bridge.connect()

    async def destroy(self) -> None:
        logger.debug("destroy called")
        self.router.detach()
        self.scheduler.stop_checker()
        await self.bridge.close()

    async def _on_bridge_ready(self, bridge: RpcBridge) -> None:
        self.router.attach(bridge)
        try:
            await self.get_image_set()
        except (MalformedReplyError, NotConnectedError, UnknownMethodError) as exc:
            logger.warning("could not load automation images: %s", exc)
        await self.refresh_integrations()

    # ------------------------------------------------------------------
    # registry
    async def refresh_integrations(self) -> None:
        """Reload titles and the action/feedback/preset definitions."""

        await self.get_current_titles()
        for kind in REFRESH_KINDS:
            try:
                definitions = await request_definition(self.bridge, kind)
            except (MalformedReplyError, NotConnectedError, UnknownMethodError) as exc:
                logger.warning("could not load %s definitions: %s", kind, exc)
                continue
            if kind == "feedbacks":
                for actor_id in actor_ids(definitions):
                    self.cache.invalidate_prefix(f"{actor_id}~")
            self.host.set_definitions(kind, definitions)
        self.time_of_last_definition_updates = datetime.now(timezone.utc)

    async def get_image_set(self) -> None:
        """Request the automation images; the console expects bare base64 PNG."""

        include_mime_prefix = False
        reply = await self.bridge.call("getImageSet", self.settings.image_namespace, include_mime_prefix)
        if not isinstance(reply, Mapping):
            raise MalformedReplyError(f"getImageSet returned {type(reply).__name__}")
        self.images.replace(reply)
        logger.debug("loaded %d automation images", len(self.images))

    async def get_current_titles(self) -> None:
        reply = await self.bridge.call("scheduleCommand", "getTitleControlInfo", dict(TITLE_INFO_ARGS), {})
        try:
            definitions, values = self.registry.load(reply)
        except MalformedReplyError as exc:
            logger.error("could not parse title control info: %s", exc)
            raise
        self.host.set_variable_definitions(definitions)
        self.host.set_variable_values(values)

    async def check_for_definition_updates(self) -> bool:
        """Refresh when the registry reports a newer update timestamp."""

        response = await request_definition(self.bridge, "lastUpdateTimestamp")
        last_update = parse_update_timestamp(response)
        if last_update is None or last_update < self.time_of_last_definition_updates:
            return False
        await self.refresh_integrations()
        self.time_of_last_definition_updates = last_update
        return True

    # ------------------------------------------------------------------
    # feedbacks
    async def query_feedback_details(
        self,
        actor_id: str,
        feedback_id: str,
        options: Mapping[str, Any],
    ) -> Dict[str, Any]:
        return await self.scheduler.query(actor_id, feedback_id, options)

    def prime_feedback_state(self, feedback_id: str, options: Optional[Mapping[str, Any]] = None) -> bool:
        """Fetch a feedback ahead of the first poll; False when already cached."""

        queued = self.scheduler.record_miss(feedback_id, options)
        if queued:
            self.scheduler.start_checker()
        return queued

    def handle_feedback(self, event: Union[FeedbackEvent, Mapping[str, Any]]) -> Any:
        """Answer a console feedback poll from the cache.

        Misses and stale hits are queued for the rebuild loop, which asks
        the console to poll again once the refills settle.
        """

        event = FeedbackEvent.coerce(event)
        result = self.cache.get_from_full_id(event.feedback_id, event.options)

        if result is not None:
            if "imageName" in result:
                result = self.resolver.inline_image(result)
            if self.cache.is_stale(event.feedback_id):
                logger.debug("stale in the cache: %s %s", event.feedback_id, event.options)
                self.scheduler.queue(event.feedback_id, event.options)
            else:
                logger.debug("found in the cache: %s %s", event.feedback_id, event.options)
        else:
            logger.debug("not in the cache: %s %s", event.feedback_id, event.options)
            self.scheduler.queue(event.feedback_id, event.options)

        self.scheduler.start_checker()
        if event.type == FEEDBACK_TYPE_BOOLEAN:
            return bool(result.get("value")) if result else False
        return dict(result) if result is not None else None
