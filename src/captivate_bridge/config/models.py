"""Configuration dataclasses for the Captivate bridge."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 9023


def _coerce_str(value: object) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _coerce_port(value: object) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        port = int(value)
    elif isinstance(value, str):
        try:
            port = int(value.strip())
        except ValueError:
            return None
    else:
        return None
    if 1 <= port <= 65535:
        return port
    return None


@dataclass(frozen=True)
class ConnectionConfig:
    """Console configuration record for one Captivate connection.

    ``bonjour_host`` is the auto-discovered ``host:port`` pair and wins over
    the explicit ``host``/``port`` fields when present.
    """

    bonjour_host: Optional[str] = None
    host: Optional[str] = DEFAULT_HOST
    port: Optional[int] = DEFAULT_PORT
    needs_new_config: bool = False

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ConnectionConfig":
        return cls(
            bonjour_host=_coerce_str(data.get("bonjour_host")),
            host=_coerce_str(data.get("host", DEFAULT_HOST)),
            port=_coerce_port(data.get("port", DEFAULT_PORT)),
            needs_new_config=bool(data.get("needs_new_config", False)),
        )

    def server_url(self) -> Optional[str]:
        if self.bonjour_host:
            return f"ws://{self.bonjour_host}"
        if self.host and self.port:
            return f"ws://{self.host}:{self.port}"
        return None

    def cleared(self) -> "ConnectionConfig":
        """Drop the explicit endpoint after a connection error."""

        return replace(self, host=None, port=None, needs_new_config=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "bonjour_host": self.bonjour_host,
            "host": self.host or "",
            "port": self.port if self.port is not None else "",
            "needs_new_config": self.needs_new_config,
        }


@dataclass(frozen=True)
class BridgeSettings:
    """Timing and naming knobs that are not part of the console config."""

    reconnect_interval_s: float = 5.0
    rebuild_interval_s: float = 0.5
    registry_debounce_s: float = 1.0
    handshake_timeout_s: float = 5.0
    image_namespace: str = "automation.glow.base"
    layer_state_key: str = "newblue.automation.layerstate"
