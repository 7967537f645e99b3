"""Helpers for decoding the JSON payloads Captivate returns."""

from __future__ import annotations

import json
from typing import Any, Dict, Mapping


class MalformedReplyError(ValueError):
    """Raised when a remote reply cannot be decoded into the expected shape."""


def parse_json_reply(reply: Any, *, what: str = "reply") -> Any:
    """Decode ``reply`` when it is JSON text; mappings and lists pass through."""

    if isinstance(reply, (Mapping, list)):
        return reply
    if isinstance(reply, bytes):
        try:
            reply = reply.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedReplyError(f"{what} was not UTF-8") from exc
    if not isinstance(reply, str):
        raise MalformedReplyError(f"{what} had unexpected type {type(reply).__name__}")
    try:
        return json.loads(reply)
    except json.JSONDecodeError as exc:
        raise MalformedReplyError(f"{what} was not valid JSON") from exc


def parse_json_object(reply: Any, *, what: str = "reply") -> Dict[str, Any]:
    """Like :func:`parse_json_reply` but insists on a JSON object."""

    data = parse_json_reply(reply, what=what)
    if not isinstance(data, Mapping):
        raise MalformedReplyError(f"{what} was not a JSON object")
    return dict(data)
