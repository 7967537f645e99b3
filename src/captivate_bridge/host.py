"""Interfaces the bridge uses to talk back to the console."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)


class InstanceStatus(str, Enum):
    CONNECTING = "connecting"
    OK = "ok"
    BAD_CONFIG = "bad_config"
    DISCONNECTED = "disconnected"


class ConsoleHost(Protocol):
    """Sink for everything the bridge reports to the console."""

    def set_variable_definitions(self, definitions: Sequence[Mapping[str, str]]) -> None: ...

    def set_variable_values(self, values: Mapping[str, Any]) -> None: ...

    def check_feedbacks(self) -> None: ...

    def update_status(self, status: InstanceStatus, message: Optional[str] = None) -> None: ...

    def set_definitions(self, kind: str, definitions: Any) -> None: ...


class LoggingConsoleHost:
    """Console stand-in that records and logs what the bridge publishes.

    Used by the command line launcher to run the bridge without a console.
    """

    def __init__(self) -> None:
        self.status: Optional[InstanceStatus] = None
        self.status_message: Optional[str] = None
        self.variable_definitions: List[Dict[str, str]] = []
        self.variable_values: Dict[str, Any] = {}
        self.definitions: Dict[str, Any] = {}
        self.feedback_checks = 0

    def set_variable_definitions(self, definitions: Sequence[Mapping[str, str]]) -> None:
        self.variable_definitions = [dict(d) for d in definitions]
        logger.info("variables defined: %d", len(self.variable_definitions))

    def set_variable_values(self, values: Mapping[str, Any]) -> None:
        self.variable_values.update(values)
        for variable_id, value in values.items():
            logger.debug("variable %s = %r", variable_id, value)

    def check_feedbacks(self) -> None:
        self.feedback_checks += 1
        logger.debug("check feedbacks requested (%d)", self.feedback_checks)

    def update_status(self, status: InstanceStatus, message: Optional[str] = None) -> None:
        self.status = status
        self.status_message = message
        logger.info("status: %s%s", status.value, f" ({message})" if message else "")

    def set_definitions(self, kind: str, definitions: Any) -> None:
        self.definitions[kind] = definitions
        count = len(definitions) if hasattr(definitions, "__len__") else 0
        logger.info("%s definitions received: %d", kind, count)
