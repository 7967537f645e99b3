"""Wire-level helpers for talking to Captivate."""

from __future__ import annotations

from .qwebchannel import QObjectProxy, QSignal, QWebChannel, QWebChannelMessageType
from .replies import MalformedReplyError, parse_json_object, parse_json_reply

__all__ = [
    "MalformedReplyError",
    "QObjectProxy",
    "QSignal",
    "QWebChannel",
    "QWebChannelMessageType",
    "parse_json_object",
    "parse_json_reply",
]
