"""Feedback state cache, resolution and refill scheduling."""

from .cache import FeedbackCache
from .keys import (
    FEEDBACK_ID_PATTERN,
    is_feedback_id,
    make_cache_key,
    make_feedback_id,
    options_fingerprint,
    split_feedback_id,
)
from .resolver import (
    PLAY_STATE_PAUSED,
    PLAY_STATE_RUNNING,
    PLAY_STATE_UNKNOWN,
    FeedbackResolver,
    play_state_for,
)
from .scheduler import CacheMiss, MissQueue, RebuildScheduler

__all__ = [
    "CacheMiss",
    "FEEDBACK_ID_PATTERN",
    "FeedbackCache",
    "FeedbackResolver",
    "MissQueue",
    "PLAY_STATE_PAUSED",
    "PLAY_STATE_RUNNING",
    "PLAY_STATE_UNKNOWN",
    "RebuildScheduler",
    "is_feedback_id",
    "make_cache_key",
    "make_feedback_id",
    "options_fingerprint",
    "play_state_for",
    "split_feedback_id",
]
