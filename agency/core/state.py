"""
Run State.

Each call to ``run()`` gets its own RunState holding the results store and
the shared context, so overlapping runs on one group or organization never
see each other's results.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from .resolver import ResolutionSources


def error_record(message: str, details: Optional[str] = None) -> Dict[str, Any]:
    """The in-band record stored for an entry that failed."""
    record: Dict[str, Any] = {"error": message}
    if details is not None:
        record["details"] = details
    return record


def is_error_record(value: Any) -> bool:
    return isinstance(value, dict) and "error" in value and set(value) <= {"error", "details"}


class RunState(BaseModel):
    """Results store and shared context for a single run."""

    run_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    owner: str
    workflow: Optional[str] = None

    initial_inputs: Dict[str, Any] = Field(default_factory=dict)
    context: Dict[str, Any] = Field(default_factory=dict)
    results: Dict[str, Any] = Field(default_factory=dict)

    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    model_config = {"arbitrary_types_allowed": True}

    @classmethod
    def start(
        cls,
        owner: str,
        initial_inputs: Optional[Dict[str, Any]] = None,
        initial_context: Optional[Dict[str, Any]] = None,
        workflow: Optional[str] = None,
    ) -> "RunState":
        # Inputs and context are copied shallowly; values are shared with the caller.
        return cls.model_construct(
            run_id=str(uuid.uuid4()),
            owner=owner,
            workflow=workflow,
            initial_inputs=dict(initial_inputs or {}),
            context=dict(initial_context or {}),
            results={},
            started_at=datetime.now(timezone.utc),
            completed_at=None,
        )

    def sources(self) -> ResolutionSources:
        """The scopes visible to input resolution at this point of the run."""
        return ResolutionSources(
            initial_inputs=self.initial_inputs,
            results=self.results,
            context=self.context,
        )

    def record(self, name: str, value: Any) -> None:
        self.results[name] = value

    def complete(self) -> None:
        self.completed_at = datetime.now(timezone.utc)

    def failed_entries(self) -> list[str]:
        return [name for name, value in self.results.items() if is_error_record(value)]
