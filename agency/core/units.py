"""
Units.

A unit is the smallest runnable thing: it takes one text payload plus the
shared run context and returns text or a structured result. Units backed
by a generative model live outside this package; ``FunctionUnit`` adapts
any plain or async callable.
"""

from __future__ import annotations

import asyncio
import inspect
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from .capabilities import call_capability


class Unit(ABC):
    """Base class for everything a group job can dispatch to."""

    def __init__(
        self,
        name: str,
        role: str = "",
        description: str = "",
        capabilities: Optional[Dict[str, Callable]] = None,
    ):
        self.name = name
        self.role = role
        self.description = description
        self.capabilities: Dict[str, Callable] = dict(capabilities or {})

    @abstractmethod
    async def run(self, input: str, context: Dict[str, Any]) -> Any:
        """Perform the unit's task. Failures are raised, not returned."""

    def add_capability(self, name: str, func: Callable) -> None:
        self.capabilities[name] = func

    def capability_names(self) -> List[str]:
        return list(self.capabilities)

    async def use(self, name: str, *args, **kwargs) -> Any:
        """Call one of this unit's capabilities."""
        func = self.capabilities.get(name)
        if func is None:
            raise KeyError(f"Unit {self.name} has no capability: {name}")
        return await call_capability(func, *args, **kwargs)

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "role": self.role,
            "description": self.description,
            "capabilities": self.capability_names(),
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, role={self.role!r})"


class FunctionUnit(Unit):
    """
    A unit backed by ``func(input, context)``.

    When the function declares a third positional parameter it also
    receives the unit itself, which gives it access to ``unit.use(...)``.
    Coroutine functions are awaited; plain functions run in a worker thread.
    """

    def __init__(
        self,
        name: str,
        func: Callable[..., Any],
        role: str = "",
        description: str = "",
        capabilities: Optional[Dict[str, Callable]] = None,
    ):
        super().__init__(
            name=name,
            role=role,
            description=description or (func.__doc__ or "").strip(),
            capabilities=capabilities,
        )
        self.func = func
        self._pass_unit = _accepts_unit(func)

    async def run(self, input: str, context: Dict[str, Any]) -> Any:
        args = (input, context, self) if self._pass_unit else (input, context)
        if inspect.iscoroutinefunction(self.func):
            return await self.func(*args)
        return await asyncio.to_thread(self.func, *args)


def _accepts_unit(func: Callable) -> bool:
    try:
        params = list(inspect.signature(func).parameters.values())
    except (TypeError, ValueError):
        return False
    positional = [
        p
        for p in params
        if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
    ]
    return len(positional) >= 3 or any(p.kind == p.VAR_POSITIONAL for p in params)
