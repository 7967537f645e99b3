"""Configuration records for the Captivate bridge."""

from .loader import load_bridge_settings
from .models import DEFAULT_HOST, DEFAULT_PORT, BridgeSettings, ConnectionConfig

__all__ = [
    "BridgeSettings",
    "ConnectionConfig",
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "load_bridge_settings",
]
