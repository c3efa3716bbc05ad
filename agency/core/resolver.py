"""
Input path resolution.

An input mapping binds parameter names to dot-paths such as
``results.research.notes``. The first segment selects a scope
(initial inputs, results of earlier entries, or the shared context) and
the remaining segments walk nested mappings and sequences.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .errors import ConfigurationError

_INDEX_PATTERN = re.compile(r"0|[1-9][0-9]*")


class _Unresolved:
    """Marker bound to parameters whose path did not resolve."""

    _instance: Optional["_Unresolved"] = None

    def __new__(cls) -> "_Unresolved":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "<unresolved>"

    def __copy__(self) -> "_Unresolved":
        return self

    def __deepcopy__(self, memo: Dict[int, Any]) -> "_Unresolved":
        return self


UNRESOLVED = _Unresolved()


class Scope(str, Enum):
    """Named sources an input path can start from."""

    INITIAL_INPUTS = "initialInputs"
    RESULTS = "results"
    CONTEXT = "context"


_SCOPE_ALIASES = {
    "initialInputs": Scope.INITIAL_INPUTS,
    "initial_inputs": Scope.INITIAL_INPUTS,
    "results": Scope.RESULTS,
    "context": Scope.CONTEXT,
}


@dataclass(frozen=True)
class InputPath:
    """A parsed input path: a scope plus the keys to walk inside it."""

    scope: Scope
    keys: Tuple[str, ...] = ()

    @classmethod
    def parse(cls, path: str) -> "InputPath":
        """Parse ``scope.key.key`` text. Raises ConfigurationError if malformed."""
        if not isinstance(path, str) or not path.strip():
            raise ConfigurationError(f"Input path must be a non-empty string: {path!r}")
        parts = path.strip().split(".")
        if any(part == "" for part in parts):
            raise ConfigurationError(f"Input path has an empty segment: {path!r}")
        scope = _SCOPE_ALIASES.get(parts[0])
        if scope is None:
            allowed = ", ".join(s.value for s in Scope)
            raise ConfigurationError(
                f"Input path {path!r} must start with one of: {allowed}"
            )
        return cls(scope=scope, keys=tuple(parts[1:]))

    def __str__(self) -> str:
        return ".".join((self.scope.value,) + self.keys)


@dataclass
class ResolutionSources:
    """The scopes visible to input resolution for one entry."""

    initial_inputs: Mapping = field(default_factory=dict)
    results: Mapping = field(default_factory=dict)
    context: Mapping = field(default_factory=dict)

    def scope(self, scope: Scope) -> Mapping:
        if scope is Scope.INITIAL_INPUTS:
            return self.initial_inputs
        if scope is Scope.RESULTS:
            return self.results
        return self.context


def _step_into(current: Any, key: str) -> Any:
    if isinstance(current, Mapping):
        return current[key] if key in current else UNRESOLVED
    if isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
        if not _INDEX_PATTERN.fullmatch(key):
            return UNRESOLVED
        try:
            return current[int(key)]
        except IndexError:
            return UNRESOLVED
    return UNRESOLVED


def resolve_path(path: InputPath | str, sources: ResolutionSources) -> Any:
    """
    Walk ``path`` through ``sources``.

    Never raises for a missing value: any absent segment, or a segment
    applied to something that cannot be indexed, yields UNRESOLVED.
    """
    if isinstance(path, str):
        try:
            path = InputPath.parse(path)
        except ConfigurationError:
            return UNRESOLVED

    current: Any = sources.scope(path.scope)
    for key in path.keys:
        current = _step_into(current, key)
        if current is UNRESOLVED:
            return UNRESOLVED
    return current


def parse_mapping(mapping: Optional[Mapping[str, str]]) -> Optional[Dict[str, InputPath]]:
    """Parse every path of an input mapping, failing fast on the first bad one."""
    if mapping is None:
        return None
    return {name: InputPath.parse(path) for name, path in mapping.items()}
