"""Fold play states and images into raw Captivate feedback states.

Raw states may carry:

* ``overlayQueryKey`` / ``pngQueryKey`` naming a layer whose play state
  selects between ``*_running`` and ``*_paused`` field variants;
* ``overlayImageName`` naming an automation image to composite onto the
  ``png64`` base image;
* ``imageName`` naming an automation image to use as ``png64`` directly.

The resolved state keeps none of these helper fields.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Protocol

from captivate_bridge.imaging.compositor import CompositingError, ImageCompositor
from captivate_bridge.imaging.image_store import ImageStore

logger = logging.getLogger(__name__)

PLAY_STATE_RUNNING = "running"
PLAY_STATE_PAUSED = "paused"
PLAY_STATE_UNKNOWN = "unknown"

# (query key field, [(variant field, required play state, target field), ...])
_VARIANT_RULES = (
    (
        "overlayQueryKey",
        (
            ("overlayImageName_running", PLAY_STATE_RUNNING, "overlayImageName"),
            ("overlayImageName_paused", PLAY_STATE_PAUSED, "overlayImageName"),
        ),
    ),
    (
        "pngQueryKey",
        (
            ("png_running", PLAY_STATE_RUNNING, "png"),
            ("png_paused", PLAY_STATE_PAUSED, "png"),
        ),
    ),
)


class RemoteCaller(Protocol):
    async def call(self, method: str, *args: Any) -> Any: ...


def play_state_for(play_states: Mapping[str, Any], query_key: Any) -> str:
    entry = play_states.get(query_key) if isinstance(query_key, str) else None
    if not isinstance(entry, Mapping) or "playState" not in entry:
        return PLAY_STATE_UNKNOWN
    return str(entry["playState"])


class FeedbackResolver:
    def __init__(
        self,
        bridge: RemoteCaller,
        images: ImageStore,
        compositor: Optional[ImageCompositor] = None,
        *,
        layer_state_key: str = "newblue.automation.layerstate",
    ) -> None:
        self._bridge = bridge
        self._images = images
        self._compositor = compositor or ImageCompositor()
        self._layer_state_key = layer_state_key

    async def resolve(self, raw_state: Mapping[str, Any]) -> Dict[str, Any]:
        """Return the displayable form of ``raw_state`` (which is left untouched)."""

        state = dict(raw_state)
        if state.get("overlayQueryKey") or state.get("pngQueryKey"):
            play_states = await self._fetch_play_states()
            self.apply_play_state_variants(state, play_states)
            logger.debug("state with overlay information: %s", sorted(state))
        if "overlayImageName" in state:
            self._apply_overlay(state)
        elif "imageName" in state:
            self._apply_image_name(state)
        return state

    def inline_image(self, state: Mapping[str, Any]) -> Dict[str, Any]:
        """Copy of ``state`` with a plain ``imageName`` swapped for its image data."""

        resolved = dict(state)
        if "imageName" in resolved:
            self._apply_image_name(resolved)
        return resolved

    @staticmethod
    def apply_play_state_variants(state: Dict[str, Any], play_states: Mapping[str, Any]) -> None:
        for query_field, variants in _VARIANT_RULES:
            if query_field not in state:
                continue
            status = play_state_for(play_states, state.get(query_field))
            for variant_field, wanted, target_field in variants:
                if variant_field not in state:
                    continue
                value = state.pop(variant_field)
                if status == wanted:
                    state[target_field] = value
            del state[query_field]

    # ------------------------------------------------------------------
    async def _fetch_play_states(self) -> Mapping[str, Any]:
        try:
            reply = await self._bridge.call("getValueForKey", self._layer_state_key)
        except Exception:
            logger.warning("layer play state lookup failed; assuming unknown", exc_info=True)
            return {}
        if not isinstance(reply, Mapping):
            logger.debug("layer play state reply was not a mapping: %r", type(reply).__name__)
            return {}
        return reply

    def _apply_overlay(self, state: Dict[str, Any]) -> None:
        name = state.pop("overlayImageName")
        overlay = self._images.get(name)
        if not overlay:
            logger.debug("no automation image named %r for overlay", name)
            return
        base = state.get("png64")
        if not base:
            logger.debug("overlay %r requested without a base image", name)
            state.pop("png64", None)
            return
        try:
            state["png64"] = self._compositor.overlay(base, overlay)
        except CompositingError as exc:
            logger.error("Error compositing overlay %r: %s", name, exc)

    def _apply_image_name(self, state: Dict[str, Any]) -> None:
        name = state.pop("imageName")
        image = self._images.get(name)
        if image is not None:
            state["png64"] = image
        else:
            logger.debug("no automation image named %r", name)
