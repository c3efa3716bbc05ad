"""Turning resolved parameters into the text payload handed to a unit."""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Mapping, Optional

from .resolver import UNRESOLVED

PLACEHOLDER_PATTERN = re.compile(r"\{\{(\w+)\}\}")


def to_text(value: Any) -> str:
    """Stringify a value; mappings and lists become JSON."""
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, default=_json_default)
    return str(value)


def _json_default(value: Any) -> Any:
    if value is UNRESOLVED:
        return None
    return str(value)


def resolved_parameters(params: Mapping[str, Any]) -> Dict[str, Any]:
    return {name: value for name, value in params.items() if value is not UNRESOLVED}


def render_template(template: str, params: Mapping[str, Any]) -> str:
    """
    Replace ``{{name}}`` placeholders.

    A placeholder whose parameter is missing or unresolved is left as-is so
    the gap stays visible in the payload.
    """

    def substitute(match: re.Match) -> str:
        value = params.get(match.group(1), UNRESOLVED)
        if value is UNRESOLVED:
            return match.group(0)
        return to_text(value)

    return PLACEHOLDER_PATTERN.sub(substitute, template)


def materialize_input(params: Mapping[str, Any], template: Optional[str] = None) -> str:
    """
    Build the single text payload for a unit.

    Precedence: template, then a lone resolved parameter, then the whole
    mapping as pretty JSON, then the empty string.
    """
    if template:
        return render_template(template, params)

    resolved = resolved_parameters(params)
    if len(resolved) == 1:
        return to_text(next(iter(resolved.values())))
    if len(resolved) > 1:
        return json.dumps(dict(params), indent=2, default=_json_default)
    return ""
