"""Captivate titles and the console variables derived from them."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

from captivate_bridge.protocol.replies import parse_json_object

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")

# Arguments for ``scheduleCommand('getTitleControlInfo', ...)``.
TITLE_INFO_ARGS = {"icon": 1, "height": 72, "width": 72}


def make_var_definition(title: Mapping[str, Any], varname: str) -> Dict[str, str]:
    """Console variable definition for one title variable."""

    name = f"{title.get('name')}: {varname}"
    variable_id = _NON_ALNUM.sub("_", f"{title.get('name')}__{varname}".lower())
    return {"name": name, "variableId": variable_id}


class TitleRegistry:
    """Titles reported by Captivate plus the variable values mirrored to the console."""

    def __init__(self) -> None:
        self.titles: List[Dict[str, Any]] = []
        self.titles_by_name: Dict[str, Dict[str, Any]] = {}
        self.titles_by_id: Dict[Any, Dict[str, Any]] = {}
        # variable id -> {"title": ..., "varname": ..., "value": ...}
        self.var_data: Dict[str, Dict[str, Any]] = {}
        self.var_values: Dict[str, Any] = {}
        self.variable_names: List[str] = []

    def load(self, reply: Any) -> Tuple[List[Dict[str, str]], Dict[str, Any]]:
        """Rebuild from a ``getTitleControlInfo`` reply.

        Returns the console variable definitions and their current values.
        Raises :class:`MalformedReplyError` when the reply is not JSON.
        """

        data = parse_json_object(reply, what="title control info")
        titles = [dict(t) for t in (data.get("titles") or []) if isinstance(t, Mapping)]
        # Captivate lists titles newest first.
        titles.reverse()

        definitions: List[Dict[str, str]] = []
        self.titles = titles
        self.titles_by_name = {}
        self.titles_by_id = {}
        self.var_data = {}
        self.var_values = {}
        varnames = set()
        for title in titles:
            self.titles_by_name[title.get("name")] = title
            self.titles_by_id[title.get("id")] = title
            title["variables"] = [dict(v) for v in (title.get("variables") or []) if isinstance(v, Mapping)]
            for variable in title["variables"]:
                varname = variable.get("variable")
                definition = make_var_definition(title, varname)
                definitions.append(definition)
                variable_id = definition["variableId"]
                self.var_data[variable_id] = {"title": title, "varname": varname, "value": variable.get("value")}
                self.var_values[variable_id] = variable.get("value")
                varnames.add(varname)
        self.variable_names = sorted(str(v) for v in varnames)
        logger.debug("loaded %d titles with %d variables", len(titles), len(definitions))
        return definitions, dict(self.var_values)

    def set_var(
        self,
        value: Any,
        *,
        variable_id: Optional[str] = None,
        title: Optional[Mapping[str, Any]] = None,
        name: Optional[str] = None,
    ) -> Optional[str]:
        """Record a new value; returns the variable id or ``None`` if unknown."""

        if variable_id is None and title is not None and name is not None:
            variable_id = make_var_definition(title, name)["variableId"]
        entry = self.var_data.get(variable_id) if variable_id is not None else None
        if entry is None:
            logger.debug("ignoring value for unknown variable %r", variable_id)
            return None
        entry["value"] = value
        self.var_values[variable_id] = value
        varname = name if name is not None else entry["varname"]
        for titlevar in entry["title"].get("variables") or []:
            if titlevar.get("variable") == varname:
                titlevar["value"] = value
                break
        return variable_id
