"""
Workflow Executor.

The execution algorithm shared by groups (jobs dispatched to units) and
organizations (steps dispatched to groups):
- Entries run in declared order, each finishing before the next starts
- A maximal run of adjacent parallel entries forms a batch whose members
  are dispatched concurrently and joined before the workflow advances
- Inputs are bound from earlier results, initial inputs and the shared
  context by dot-path
- Failures are recorded in the results store instead of being raised
"""

from __future__ import annotations

import asyncio
import logging
import traceback
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from .events import EventBus, EventName
from .models import EntryDefinition
from .resolver import UNRESOLVED, resolve_path
from .state import RunState, error_record, is_error_record

logger = logging.getLogger(__name__)

_WARNING_EVENTS = {
    EventName.INPUT_RESOLUTION_WARNING,
    EventName.OUTPUT_KEY_MISSING,
    EventName.ENTRY_SKIPPED,
}


class _EntryTimeout(Exception):
    """Raised when a dispatch exceeds the runner's entry timeout."""


@dataclass
class PlannedEntry:
    """One workflow position resolved against the container's definitions."""

    name: str
    index: int
    parallel: bool
    definition: Optional[EntryDefinition]


def plan_batches(entries: List[PlannedEntry]) -> List[List[PlannedEntry]]:
    """
    Split entries into execution units.

    Every non-parallel entry is its own unit; each maximal run of adjacent
    parallel entries becomes one batch.
    """
    batches: List[List[PlannedEntry]] = []
    i = 0
    while i < len(entries):
        if not entries[i].parallel:
            batches.append([entries[i]])
            i += 1
            continue
        j = i
        while j < len(entries) and entries[j].parallel:
            j += 1
        batches.append(entries[i:j])
        i = j
    return batches


def summarize_result(result: Any) -> str:
    if isinstance(result, str):
        return result if len(result) <= 100 else result[:97] + "..."
    if isinstance(result, Mapping):
        return f"Object with keys: {', '.join(str(k) for k in result)}"
    return f"{type(result).__name__} result"


class WorkflowRunner:
    """
    Base class for containers that execute workflows.

    Subclasses supply the dispatch target for an entry:
    ``_check_target`` reports configuration problems and ``_dispatch``
    performs the call.
    """

    kind = "runner"

    def __init__(
        self,
        name: str,
        description: str = "",
        entry_timeout: Optional[float] = None,
    ):
        self.name = name
        self.description = description
        self.entry_timeout = entry_timeout
        self.events = EventBus()

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on(self, event_name: Any, listener: Callable) -> Callable[[], None]:
        return self.events.on(event_name, listener)

    def off(self, event_name: Any, listener: Callable) -> None:
        self.events.off(event_name, listener)

    def once(self, event_name: Any, listener: Callable) -> Callable[[], None]:
        return self.events.once(event_name, listener)

    def on_any(self, listener: Callable) -> Callable[[], None]:
        return self.events.on_any(listener)

    def _log(self, event: EventName, **data: Any) -> None:
        """Log an event and publish it on the bus."""
        if event is EventName.ENTRY_ERROR:
            logger.error("[%s: %s] %s %s", self.kind, self.name, event.value, data)
        elif event in _WARNING_EVENTS:
            logger.warning("[%s: %s] %s %s", self.kind, self.name, event.value, data)
        else:
            logger.debug("[%s: %s] %s %s", self.kind, self.name, event.value, data)
        payload = {
            "owner": self.name,
            "owner_kind": self.kind,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **data,
        }
        self.events.emit(event, payload)

    # ------------------------------------------------------------------
    # Dispatch hooks
    # ------------------------------------------------------------------

    def _check_target(self, entry: PlannedEntry) -> Optional[str]:
        """Return an error message if the entry cannot be dispatched."""
        return None

    def _target_info(self, entry: PlannedEntry) -> Dict[str, Any]:
        return {}

    async def _dispatch(
        self, entry: PlannedEntry, inputs: Dict[str, Any], state: RunState
    ) -> Any:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def _execute(self, entries: List[PlannedEntry], state: RunState) -> Dict[str, Any]:
        """Run the entries against ``state`` and return its results store."""
        for batch in plan_batches(entries):
            if len(batch) == 1 and not batch[0].parallel:
                entry = batch[0]
                inputs = self._prepare(entry, state)
                if inputs is not None:
                    await self._complete(entry, inputs, state)
            else:
                await self._run_batch(batch, state)
        return state.results

    async def _run_batch(self, batch: List[PlannedEntry], state: RunState) -> None:
        names = [entry.name for entry in batch]
        self._log(EventName.PARALLEL_BATCH_START, entries=names)

        # All inputs are bound before any member starts, so members only
        # see results that existed when the batch began.
        prepared = [(entry, self._prepare(entry, state)) for entry in batch]
        outcomes = await asyncio.gather(
            *(
                self._complete(entry, inputs, state)
                for entry, inputs in prepared
                if inputs is not None
            ),
            return_exceptions=True,
        )

        unhandled = [o for o in outcomes if isinstance(o, BaseException)]
        if unhandled:
            logger.error(
                "[%s: %s] parallel batch %s had %d unhandled failure(s): %r",
                self.kind,
                self.name,
                names,
                len(unhandled),
                unhandled,
            )
        failed = [name for name in names if is_error_record(state.results.get(name))]
        self._log(
            EventName.PARALLEL_BATCH_END,
            entries=names,
            failed=failed,
            unrecorded=[name for name in names if name not in state.results],
        )

    def _prepare(self, entry: PlannedEntry, state: RunState) -> Optional[Dict[str, Any]]:
        """
        Check the entry's target and bind its inputs.

        Returns None when the entry was recorded as a configuration error.
        """
        self._log(EventName.ENTRY_START, entry=entry.name, **self._target_info(entry))

        problem = self._check_target(entry)
        if problem is not None:
            event = (
                EventName.ENTRY_SKIPPED
                if entry.definition is None
                else EventName.ENTRY_ERROR
            )
            self._log(event, entry=entry.name, error=problem)
            state.record(entry.name, error_record(problem))
            return None

        inputs = self._bind_inputs(entry, state)
        self._log(EventName.ENTRY_INPUT_PREPARED, entry=entry.name, inputs=inputs)
        return inputs

    def _bind_inputs(self, entry: PlannedEntry, state: RunState) -> Dict[str, Any]:
        paths = entry.definition.paths() if entry.definition else None
        if paths is None:
            if entry.index == 0 and state.initial_inputs:
                self._log(
                    EventName.INPUT_INFO,
                    entry=entry.name,
                    message="No input mapping; using initial inputs for the first entry.",
                )
                return state.initial_inputs
            self._log(
                EventName.INPUT_INFO,
                entry=entry.name,
                message="No input mapping and not the first entry, or no initial inputs; passing empty input.",
            )
            return {}

        sources = state.sources()
        inputs: Dict[str, Any] = {}
        for param, path in paths.items():
            value = resolve_path(path, sources)
            if value is UNRESOLVED:
                self._log(
                    EventName.INPUT_RESOLUTION_WARNING,
                    entry=entry.name,
                    input_key=param,
                    path=str(path),
                    message="Path did not resolve.",
                )
            inputs[param] = value
        return inputs

    async def _complete(
        self, entry: PlannedEntry, inputs: Dict[str, Any], state: RunState
    ) -> None:
        """Dispatch a prepared entry and record its result or error."""
        try:
            raw = await self._await_dispatch(entry, inputs, state)
        except _EntryTimeout:
            message = f"Entry {entry.name} timed out after {self.entry_timeout}s"
            self._log(EventName.ENTRY_ERROR, entry=entry.name, error=message)
            state.record(entry.name, error_record(message, traceback.format_exc()))
            return
        except Exception as exc:
            details = traceback.format_exc()
            self._log(
                EventName.ENTRY_ERROR, entry=entry.name, error=str(exc), stack=details
            )
            state.record(entry.name, error_record(str(exc), details))
            return

        value = self._extract_output(entry, raw)
        state.record(entry.name, value)
        self._log(
            EventName.ENTRY_SUCCESS,
            entry=entry.name,
            result_preview=summarize_result(raw),
        )

    async def _await_dispatch(
        self, entry: PlannedEntry, inputs: Dict[str, Any], state: RunState
    ) -> Any:
        dispatch = self._dispatch(entry, inputs, state)
        if self.entry_timeout is None:
            return await dispatch
        # Only the deadline itself counts as a timeout; a TimeoutError raised
        # by the target is an ordinary dispatch failure.
        task = asyncio.ensure_future(dispatch)
        try:
            done, _ = await asyncio.wait({task}, timeout=self.entry_timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise
        if task not in done:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise _EntryTimeout()
        return task.result()

    def _extract_output(self, entry: PlannedEntry, raw: Any) -> Any:
        output_key = entry.definition.output_key if entry.definition else None
        if not output_key:
            return raw
        if isinstance(raw, Mapping) and output_key in raw:
            return raw[output_key]
        self._log(
            EventName.OUTPUT_KEY_MISSING,
            entry=entry.name,
            output_key=output_key,
            message="Output key not found in result; storing the full result.",
        )
        return raw
