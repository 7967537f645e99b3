"""Debug logging toggles shared by the bridge modules."""

from __future__ import annotations

import logging

from captivate_bridge.utils.env import env_bool

DEBUG_ENV = "CAPTIVATE_BRIDGE_DEBUG"
LOG_FORMAT = "[%(asctime)s] %(name)s - %(levelname)s - %(message)s"


def maybe_enable_debug_logger(logger: logging.Logger, *extra_envs: str) -> bool:
    """Attach a local DEBUG handler to ``logger`` when a debug flag is set.

    ``CAPTIVATE_BRIDGE_DEBUG`` enables every module; ``extra_envs`` lets a
    module accept its own narrower flag as well.
    """

    enabled = env_bool(DEBUG_ENV, False) or any(env_bool(name, False) for name in extra_envs)
    if not enabled:
        return False
    has_local = any(getattr(h, "_captivate_bridge_local", False) for h in logger.handlers)
    if not has_local:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.setLevel(logging.DEBUG)
        setattr(handler, "_captivate_bridge_local", True)
        logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    return True


def configure_logging(debug: bool = False) -> None:
    """Process-wide logging setup used by the command line launcher."""

    if env_bool(DEBUG_ENV, False):
        debug = True
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
    )
