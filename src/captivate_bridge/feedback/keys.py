"""Cache key derivation for feedback states."""

from __future__ import annotations

import hashlib
import json
import re
from typing import Any, Mapping, Optional, Tuple

FEEDBACK_SEPARATOR = "~"
OPTIONS_SEPARATOR = "+"

# Captivate feedback ids look like ``newblue.automation.<...>.feedback.<type>.<name>``.
FEEDBACK_ID_PATTERN = re.compile(r"\.feedback\.")


def make_feedback_id(actor_id: str, feedback_id: str) -> str:
    return f"{actor_id}{FEEDBACK_SEPARATOR}{feedback_id}"


def split_feedback_id(actor_feedback_id: str) -> Tuple[str, str]:
    actor_id, _, feedback_id = str(actor_feedback_id).partition(FEEDBACK_SEPARATOR)
    return actor_id, feedback_id


def is_feedback_id(feedback_id: str) -> bool:
    return bool(FEEDBACK_ID_PATTERN.search(feedback_id or ""))


def _canonical(value: Any) -> Any:
    # 1 and 1.0 compare equal, so they must hash the same
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, Mapping):
        return {str(k): _canonical(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_canonical(v) for v in value]
    return value


def options_fingerprint(options: Mapping[str, Any]) -> str:
    """md5 of the key-order independent JSON form of ``options``."""

    canonical = json.dumps(_canonical(options), sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.md5(canonical.encode("utf-8")).hexdigest()


def make_cache_key(actor_feedback_id: str, options: Optional[Mapping[str, Any]]) -> str:
    if options:
        return f"{actor_feedback_id}{OPTIONS_SEPARATOR}{options_fingerprint(options)}"
    return actor_feedback_id
