"""
Capability Registry.

Capabilities are the tools a unit may call while it works (search,
calculation, document understanding, ...). The engine treats them as
opaque callables with a declared input schema.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from functools import wraps
from typing import Any, Callable, Dict, Iterable, Optional

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def _schema_from_signature(func: Callable) -> Dict[str, Dict[str, Any]]:
    sig = inspect.signature(func)
    return {
        param.name: {
            "annotation": (
                str(param.annotation)
                if param.annotation != inspect.Parameter.empty
                else "Any"
            ),
            "default": (
                param.default if param.default != inspect.Parameter.empty else None
            ),
            "required": param.default == inspect.Parameter.empty,
        }
        for param in sig.parameters.values()
    }


class CapabilityRegistry:
    """
    A registry of named capabilities.

    Each capability is stored with its function, a description and an input
    schema. The schema is derived from the function signature unless one is
    given explicitly.
    """

    def __init__(self):
        self._capabilities: Dict[str, Dict[str, Any]] = {}

    def register(
        self,
        name: Optional[str] = None,
        description: Optional[str] = None,
        input_schema: Optional[Dict[str, Any]] = None,
    ) -> Callable:
        """
        Decorator to register a function as a capability.

        Example:
            @registry.register(name="word_count")
            def word_count(text: str) -> int:
                return len(text.split())
        """

        def decorator(func: Callable) -> Callable:
            if not callable(func):
                raise ConfigurationError(f"Capability {name!r} must be callable")
            capability_name = name or func.__name__
            capability_desc = (description or func.__doc__ or "").strip()
            if not capability_desc:
                raise ConfigurationError(
                    f"Capability {capability_name!r} needs a description or docstring"
                )

            self._capabilities[capability_name] = {
                "function": func,
                "description": capability_desc,
                "input_schema": (
                    input_schema
                    if input_schema is not None
                    else _schema_from_signature(func)
                ),
            }

            @wraps(func)
            def wrapper(*args, **kwargs):
                return func(*args, **kwargs)

            return wrapper

        return decorator

    def add(
        self,
        func: Callable,
        name: Optional[str] = None,
        description: Optional[str] = None,
        input_schema: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Programmatically register a function as a capability."""
        self.register(name=name, description=description, input_schema=input_schema)(
            func
        )

    def get(self, name: str) -> Optional[Callable]:
        capability = self._capabilities.get(name)
        return capability["function"] if capability else None

    def has(self, name: str) -> bool:
        return name in self._capabilities

    async def invoke(self, name: str, *args, **kwargs) -> Any:
        """
        Invoke a capability by name.

        Coroutine functions are awaited; plain functions run in a worker
        thread. Raises KeyError if the capability is not registered.
        """
        func = self.get(name)
        if func is None:
            raise KeyError(f"Capability not found: {name}")
        return await call_capability(func, *args, **kwargs)

    def resolve(self, names: Iterable[str]) -> Dict[str, Callable]:
        """Look up several capabilities; unknown names are skipped with a warning."""
        resolved: Dict[str, Callable] = {}
        for name in names:
            func = self.get(name)
            if func is None:
                logger.warning("Capability %r is not registered; skipping", name)
                continue
            resolved[name] = func
        return resolved

    def list_capabilities(self) -> list[Dict[str, Any]]:
        return [
            {
                "name": name,
                "description": info["description"],
                "input_schema": info["input_schema"],
            }
            for name, info in self._capabilities.items()
        ]


async def call_capability(func: Callable, *args, **kwargs) -> Any:
    if inspect.iscoroutinefunction(func):
        return await func(*args, **kwargs)
    return await asyncio.to_thread(func, *args, **kwargs)
