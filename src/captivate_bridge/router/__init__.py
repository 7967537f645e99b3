"""Push event routing for Captivate notifications."""

from .debounce import Debouncer, debounce
from .notifications import (
    FEEDBACK_CHANGE_SIGNAL,
    NOTIFY_SIGNAL,
    REGISTRY_CHANGE_SIGNAL,
    SUBSCRIBED_EVENTS,
    FeedbackChange,
    NotificationRouter,
)

__all__ = [
    "Debouncer",
    "FEEDBACK_CHANGE_SIGNAL",
    "FeedbackChange",
    "NOTIFY_SIGNAL",
    "NotificationRouter",
    "REGISTRY_CHANGE_SIGNAL",
    "SUBSCRIBED_EVENTS",
    "debounce",
]
