"""Queries against the Captivate companion registry."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from captivate_bridge.feedback.keys import split_feedback_id
from captivate_bridge.feedback.resolver import RemoteCaller
from captivate_bridge.protocol.replies import MalformedReplyError

logger = logging.getLogger(__name__)

DEFINITION_FIELDS = {
    "actions": "companion_actions",
    "presets": "companion_presets",
    "feedbacks": "companion_feedbacks",
    "lastUpdateTimestamp": "lastUpdateTimestamp",
}

# Order used for a full refresh.
REFRESH_KINDS = ("feedbacks", "actions", "presets")


async def request_definition(bridge: RemoteCaller, kind: str) -> Any:
    """Fetch one definition block (``actions``, ``presets``, ...) from Captivate."""

    field = DEFINITION_FIELDS.get(kind)
    if field is None:
        raise ValueError(f"definition kind {kind!r} is not supported")
    reply = await bridge.call("_cmp_v1_query", kind)
    if not isinstance(reply, Mapping):
        raise MalformedReplyError(f"_cmp_v1_query({kind!r}) returned {type(reply).__name__}")
    return reply.get(field)


def actor_ids(feedback_definitions: Any) -> set[str]:
    """Actor ids referenced by the keys of a feedback definition mapping."""

    if not isinstance(feedback_definitions, Mapping):
        return set()
    actors = set()
    for key in feedback_definitions:
        actor_id, feedback_id = split_feedback_id(str(key))
        if actor_id and feedback_id:
            actors.add(actor_id)
    return actors


def parse_update_timestamp(value: Any) -> Optional[datetime]:
    """Parse the ``lastUpdate`` ISO timestamp reported by the registry."""

    if isinstance(value, Mapping):
        value = value.get("lastUpdate")
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logger.debug("unparseable registry timestamp %r", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
