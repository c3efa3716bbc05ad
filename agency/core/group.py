"""
Group.

A group owns named units and jobs (configured invocations of those
units) plus one workflow: an ordered list of job names, where adjacent
parallel jobs run concurrently.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from .errors import ConfigurationError, WorkflowNotFoundError
from .events import EventName
from .executor import PlannedEntry, WorkflowRunner
from .models import JobDefinition, WorkflowEntry
from .payload import materialize_input, resolved_parameters
from .state import RunState
from .units import Unit

WorkflowItem = Union[str, WorkflowEntry, Dict[str, Any]]


class Group(WorkflowRunner):
    """A container of units and jobs exposing one workflow entry point."""

    kind = "group"

    def __init__(
        self,
        name: str = "Unnamed Group",
        description: str = "",
        units: Optional[Dict[str, Unit]] = None,
        jobs: Optional[Dict[str, Any]] = None,
        workflow: Optional[Iterable[WorkflowItem]] = None,
        entry_timeout: Optional[float] = None,
    ):
        super().__init__(name=name, description=description, entry_timeout=entry_timeout)
        self.units: Dict[str, Unit] = {}
        self.jobs: Dict[str, JobDefinition] = {}
        self.workflow: List[WorkflowEntry] = []

        for unit_name, unit in (units or {}).items():
            self.add_unit(unit_name, unit)
        for job_name, definition in (jobs or {}).items():
            self.add_job(job_name, definition)
        if workflow is not None:
            self.set_workflow(workflow)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add_unit(self, name: str, unit: Unit) -> None:
        if not isinstance(unit, Unit):
            raise ConfigurationError(
                f"Invalid unit instance for {name!r}. Must be an instance of Unit."
            )
        self.units[name] = unit
        self._log(EventName.UNIT_ADDED, unit=name)

    def add_job(self, name: str, definition: Union[JobDefinition, Dict[str, Any]]) -> JobDefinition:
        """Register a job. The definition must name a unit."""
        if isinstance(definition, JobDefinition):
            job = definition
        else:
            try:
                job = JobDefinition.model_validate(definition or {})
            except ValidationError as exc:
                raise ConfigurationError(f"Invalid definition for job {name!r}: {exc}") from exc
        self.jobs[name] = job
        self._log(EventName.JOB_ADDED, job=name, definition=job.model_dump(exclude_none=True))
        return job

    def set_workflow(self, items: Iterable[WorkflowItem]) -> None:
        """Set the workflow from job names or ``{"job": ..., "parallel": ...}`` descriptors."""
        if isinstance(items, (str, bytes)) or not isinstance(items, Iterable):
            raise ConfigurationError("Workflow must be a list of job names or job descriptors.")

        entries: List[WorkflowEntry] = []
        for item in items:
            if isinstance(item, str):
                entry = WorkflowEntry(job=item)
            elif isinstance(item, WorkflowEntry):
                entry = item
            elif isinstance(item, dict):
                try:
                    entry = WorkflowEntry.model_validate(item)
                except ValidationError as exc:
                    raise ConfigurationError(f"Invalid workflow entry {item!r}: {exc}") from exc
            else:
                raise ConfigurationError(f"Invalid workflow entry: {item!r}")
            if entry.job not in self.jobs:
                raise ConfigurationError(
                    f"Workflow of group {self.name!r} references unknown job {entry.job!r}."
                )
            entries.append(entry)

        self.workflow = entries
        self._log(EventName.WORKFLOW_SET, workflow=[e.job for e in entries])

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _plan(self) -> List[PlannedEntry]:
        planned = []
        for index, entry in enumerate(self.workflow):
            job = self.jobs.get(entry.job)
            parallel = entry.parallel if entry.parallel is not None else bool(job and job.parallel)
            planned.append(
                PlannedEntry(name=entry.job, index=index, parallel=parallel, definition=job)
            )
        return planned

    async def run(
        self,
        initial_inputs: Optional[Dict[str, Any]] = None,
        initial_context: Optional[Dict[str, Any]] = None,
        job_name: Optional[str] = None,
    ) -> Any:
        """
        Run the group's workflow.

        Args:
            initial_inputs: Values reachable as ``initialInputs.*``.
            initial_context: Shared context seeded for this run.
            job_name: Run only this job, bypassing the workflow order.

        Returns:
            The results store keyed by job name, or the single job's result
            (or error record) when ``job_name`` is given.

        Raises:
            WorkflowNotFoundError: If ``job_name`` names no registered job.
        """
        if job_name is not None:
            job = self.jobs.get(job_name)
            if job is None:
                raise WorkflowNotFoundError(
                    f"Job {job_name!r} not found in group {self.name!r}."
                )
            entries = [PlannedEntry(name=job_name, index=0, parallel=False, definition=job)]
        else:
            entries = self._plan()

        state = RunState.start(self.name, initial_inputs, initial_context, workflow=job_name)
        self._log(
            EventName.RUN_START,
            run_id=state.run_id,
            job=job_name,
            initial_inputs_count=len(state.initial_inputs),
            context_keys=list(state.context),
        )

        await self._execute(entries, state)
        state.complete()
        self._log(
            EventName.RUN_END,
            run_id=state.run_id,
            job=job_name,
            results_count=len(state.results),
            failed=state.failed_entries(),
        )
        if job_name is not None:
            return state.results.get(job_name)
        return state.results

    def _check_target(self, entry: PlannedEntry) -> Optional[str]:
        if entry.definition is None:
            return f"Job {entry.name} not found."
        if entry.definition.unit_name not in self.units:
            return f"Unit {entry.definition.unit_name} not found for job {entry.name}."
        return None

    def _target_info(self, entry: PlannedEntry) -> Dict[str, Any]:
        if entry.definition is None:
            return {}
        return {"unit": entry.definition.unit_name, "parallel": entry.parallel}

    async def _dispatch(
        self, entry: PlannedEntry, inputs: Dict[str, Any], state: RunState
    ) -> Any:
        job = entry.definition
        unit = self.units[job.unit_name]
        payload = materialize_input(inputs, job.input_template)
        if not job.input_template and len(resolved_parameters(inputs)) > 1:
            self._log(
                EventName.INPUT_SERIALIZED,
                entry=entry.name,
                message="Multiple inputs and no template; serialized to JSON.",
            )
        return await unit.run(payload, state.context)

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "units": {name: unit.describe() for name, unit in self.units.items()},
            "jobs": {
                name: job.model_dump(exclude_none=True) for name, job in self.jobs.items()
            },
            "workflow": [entry.model_dump(exclude_none=True) for entry in self.workflow],
        }
