"""Domain helpers for query names and ``{{ key }}`` placeholders."""
from __future__ import annotations

import json
import re
from typing import Any, Iterable, Mapping

NAME_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
MUSTACHE_PATTERN = re.compile(r"\{\{(.*?)\}\}", re.DOTALL)
PLUGIN_TYPES = {"sql", "rest"}

INVALID_NAME = "Query name must start with a letter or underscore and contain only letters, digits and underscores"
NO_CONFIGURATION = "No configuration found in query"
NO_DATASOURCE = "Datasource not given"
UNKNOWN_PLUGIN = "Unknown plugin type"


def is_valid_query_name(value: str | None) -> bool:
    if not value:
        return False
    return bool(NAME_PATTERN.fullmatch(value))


def extract_mustache_keys(*values: Any) -> list[str]:
    """Return the sorted set of keys referenced as ``{{ key }}`` inside ``values``."""
    keys: set[str] = set()
    for value in values:
        if value is None:
            continue
        text = value if isinstance(value, str) else json.dumps(value, sort_keys=True)
        for match in MUSTACHE_PATTERN.findall(text):
            key = match.strip()
            if key:
                keys.add(key)
    return sorted(keys)


def params_to_map(params: Iterable[tuple[str, str]]) -> dict[str, str]:
    """Collapse ``(key, value)`` pairs; on conflict the first value wins."""
    mapping: dict[str, str] = {}
    for key, value in params:
        mapping.setdefault(key, value)
    return mapping


def substitute(value: Any, params: Mapping[str, str]) -> Any:
    """Replace known ``{{ key }}`` placeholders in strings nested anywhere in ``value``."""
    if not params:
        return value
    if isinstance(value, str):
        def _replace(match: re.Match) -> str:
            key = match.group(1).strip()
            return str(params[key]) if key in params else match.group(0)

        return MUSTACHE_PATTERN.sub(_replace, value)
    if isinstance(value, dict):
        return {k: substitute(v, params) for k, v in value.items()}
    if isinstance(value, list):
        return [substitute(item, params) for item in value]
    return value


def validate_query(
    *,
    plugin_type: str | None,
    datasource: Mapping[str, Any] | None,
    body: str | None,
    config: Mapping[str, Any] | None,
    name: str,
) -> list[str]:
    """Return the reasons a query cannot run; an empty list means it is valid."""
    invalids: list[str] = []
    if not is_valid_query_name(name):
        invalids.append(INVALID_NAME)
    if not (body or "").strip() and not config:
        invalids.append(NO_CONFIGURATION)
    if not datasource:
        invalids.append(NO_DATASOURCE)
    if (plugin_type or "") not in PLUGIN_TYPES:
        invalids.append(UNKNOWN_PLUGIN)
    return invalids
