"""Readers for the ``CAPTIVATE_BRIDGE_*`` environment tunables.

Unset and blank variables fall back to the default; unparseable values do
too, so a typo in the environment never stops the bridge from starting.
"""

from __future__ import annotations

import os
from typing import Optional

_TRUTHY = frozenset(("1", "true", "yes", "on"))
_FALSY = frozenset(("0", "false", "no", "off"))


def env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name)
    if v is None or not v.strip():
        return default
    return v.strip()


def env_bool(name: str, default: bool = False) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    s = v.strip().lower()
    if s in _TRUTHY:
        return True
    if s in _FALSY:
        return False
    return default


def env_float(name: str, default: float, *, minimum: Optional[float] = None) -> float:
    v = env_str(name)
    try:
        value = float(v) if v is not None else float(default)
    except ValueError:
        value = float(default)
    if minimum is not None:
        value = max(minimum, value)
    return value


def env_seconds_from_ms(name: str, default_s: float, *, minimum_s: float = 0.0) -> float:
    """Read a millisecond variable and return seconds."""

    return max(minimum_s, env_float(name, default_s * 1000.0) / 1000.0)
