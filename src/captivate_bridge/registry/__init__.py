"""Title and definition registries mirrored from Captivate."""

from .definitions import (
    DEFINITION_FIELDS,
    REFRESH_KINDS,
    actor_ids,
    parse_update_timestamp,
    request_definition,
)
from .titles import TITLE_INFO_ARGS, TitleRegistry, make_var_definition

__all__ = [
    "DEFINITION_FIELDS",
    "REFRESH_KINDS",
    "TITLE_INFO_ARGS",
    "TitleRegistry",
    "actor_ids",
    "make_var_definition",
    "parse_update_timestamp",
    "request_definition",
]
