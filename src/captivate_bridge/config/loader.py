"""Environment-derived overrides for :class:`BridgeSettings`."""

from __future__ import annotations

from captivate_bridge.config.models import BridgeSettings
from captivate_bridge.utils.env import env_float, env_seconds_from_ms, env_str


def load_bridge_settings() -> BridgeSettings:
    """Resolve ``CAPTIVATE_BRIDGE_*`` variables into a ``BridgeSettings`` instance."""

    defaults = BridgeSettings()
    return BridgeSettings(
        reconnect_interval_s=env_float(
            "CAPTIVATE_BRIDGE_RECONNECT_S", defaults.reconnect_interval_s, minimum=0.1
        ),
        rebuild_interval_s=env_seconds_from_ms(
            "CAPTIVATE_BRIDGE_REBUILD_MS", defaults.rebuild_interval_s, minimum_s=0.01
        ),
        registry_debounce_s=env_seconds_from_ms("CAPTIVATE_BRIDGE_DEBOUNCE_MS", defaults.registry_debounce_s),
        handshake_timeout_s=env_float(
            "CAPTIVATE_BRIDGE_HANDSHAKE_TIMEOUT_S", defaults.handshake_timeout_s, minimum=0.1
        ),
        image_namespace=env_str("CAPTIVATE_BRIDGE_IMAGE_NAMESPACE", defaults.image_namespace),
        layer_state_key=env_str("CAPTIVATE_BRIDGE_LAYERSTATE_KEY", defaults.layer_state_key),
    )
