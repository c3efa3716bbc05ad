"""
Organization.

An organization owns named groups and named workflows of steps. A step
runs a group's whole workflow, or a single one of its jobs, and the
organization stores the outcome under the step name. Every event a group
emits is re-published on the organization's bus as
``group.<group name>.<event>``.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import ValidationError

from .errors import ConfigurationError, WorkflowNotFoundError
from .events import EventName
from .executor import PlannedEntry, WorkflowRunner
from .group import Group
from .models import OrganizationWorkflow, StepDefinition
from .state import RunState

logger = logging.getLogger(__name__)


def forwarded_event_name(group_name: str, event_name: str) -> str:
    return f"group.{group_name}.{event_name}"


class Organization(WorkflowRunner):
    """A container of groups exposing named workflows of steps."""

    kind = "organization"

    def __init__(
        self,
        name: str = "Unnamed Organization",
        description: str = "",
        groups: Optional[Dict[str, Group]] = None,
        workflows: Optional[Dict[str, Any]] = None,
        entry_timeout: Optional[float] = None,
    ):
        super().__init__(name=name, description=description, entry_timeout=entry_timeout)
        self.groups: Dict[str, Group] = {}
        self.workflows: Dict[str, OrganizationWorkflow] = {}
        self._forwarders: Dict[str, Callable[[], None]] = {}

        for group_name, group in (groups or {}).items():
            self.add_group(group_name, group)
        for workflow_name, definition in (workflows or {}).items():
            self.add_workflow(workflow_name, definition)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add_group(self, name: str, group: Group) -> None:
        """Add a group and start re-publishing its events."""
        if not isinstance(group, Group):
            raise ConfigurationError(
                f"Invalid group instance for {name!r}. Must be an instance of Group."
            )
        previous = self._forwarders.pop(name, None)
        if previous is not None:
            previous()

        self.groups[name] = group

        def forward(event_name: str, payload: Dict[str, Any]) -> None:
            self.events.emit(forwarded_event_name(name, event_name), payload)

        self._forwarders[name] = group.on_any(forward)
        self._log(EventName.GROUP_ADDED, group=name)

    def add_workflow(
        self, name: str, definition: Union[OrganizationWorkflow, Dict[str, Any]]
    ) -> OrganizationWorkflow:
        """Register a workflow. The definition must include a ``steps`` list."""
        if isinstance(definition, OrganizationWorkflow):
            workflow = definition
        else:
            if not isinstance(definition, dict) or not isinstance(definition.get("steps"), list):
                raise ConfigurationError(
                    f"Workflow definition for {name!r} must include a 'steps' list."
                )
            try:
                workflow = OrganizationWorkflow.model_validate(definition)
            except ValidationError as exc:
                raise ConfigurationError(f"Invalid workflow {name!r}: {exc}") from exc

        self._check_step_names(name, workflow.steps)
        self.workflows[name] = workflow
        self._log(
            EventName.WORKFLOW_ADDED,
            workflow=name,
            steps=[step.model_dump(exclude_none=True) for step in workflow.steps],
        )
        return workflow

    def add_step(
        self, workflow_name: str, step: Union[StepDefinition, Dict[str, Any]]
    ) -> StepDefinition:
        """Append a step to an existing workflow."""
        workflow = self.workflows.get(workflow_name)
        if workflow is None:
            raise ConfigurationError(
                f"Cannot add a step to unknown workflow {workflow_name!r}."
            )
        if not isinstance(step, StepDefinition):
            try:
                step = StepDefinition.model_validate(step or {})
            except ValidationError as exc:
                raise ConfigurationError(
                    f"Invalid step for workflow {workflow_name!r}: {exc}"
                ) from exc

        self._check_step_names(workflow_name, workflow.steps + [step])
        workflow.steps.append(step)
        self._log(
            EventName.STEP_ADDED,
            workflow=workflow_name,
            step=self._step_name(step, len(workflow.steps) - 1),
        )
        return step

    @staticmethod
    def _step_name(step: StepDefinition, index: int) -> str:
        return step.name or f"step{index + 1}"

    def _check_step_names(self, workflow_name: str, steps: List[StepDefinition]) -> None:
        seen = set()
        for index, step in enumerate(steps):
            step_name = self._step_name(step, index)
            if step_name in seen:
                raise ConfigurationError(
                    f"Workflow {workflow_name!r} has more than one step named {step_name!r}."
                )
            seen.add(step_name)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def run(
        self,
        workflow_name: str,
        initial_inputs: Optional[Dict[str, Any]] = None,
        initial_context: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Run one of the organization's workflows.

        Returns:
            Mapping of step name to result or error record.

        Raises:
            WorkflowNotFoundError: If no workflow is registered under that name.
        """
        workflow = self.workflows.get(workflow_name)
        if workflow is None:
            raise WorkflowNotFoundError(f"Workflow {workflow_name!r} not found.")

        entries = [
            PlannedEntry(
                name=self._step_name(step, index),
                index=index,
                parallel=step.parallel,
                definition=step,
            )
            for index, step in enumerate(workflow.steps)
        ]

        state = RunState.start(self.name, initial_inputs, initial_context, workflow=workflow_name)
        self._log(
            EventName.RUN_START,
            run_id=state.run_id,
            workflow=workflow_name,
            initial_inputs_count=len(state.initial_inputs),
            context_keys=list(state.context),
        )

        await self._execute(entries, state)
        state.complete()
        self._log(
            EventName.RUN_END,
            run_id=state.run_id,
            workflow=workflow_name,
            results_count=len(state.results),
            failed=state.failed_entries(),
        )
        return state.results

    async def run_group(
        self,
        group_name: str,
        inputs: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Run one group's whole workflow directly. Group failures are re-raised."""
        group = self.groups.get(group_name)
        if group is None:
            raise WorkflowNotFoundError(f"Group {group_name!r} not found.")

        self._log(EventName.GROUP_RUN_START, group=group_name)
        try:
            results = await group.run(inputs or {}, context or {})
        except Exception as exc:
            logger.exception("Error running group %s", group_name)
            self._log(EventName.GROUP_RUN_ERROR, group=group_name, error=str(exc))
            raise
        self._log(EventName.GROUP_RUN_SUCCESS, group=group_name)
        return results

    def _check_target(self, entry: PlannedEntry) -> Optional[str]:
        group_name = entry.definition.group_name
        if group_name not in self.groups:
            return f"Group '{group_name}' not found."
        return None

    def _target_info(self, entry: PlannedEntry) -> Dict[str, Any]:
        return {
            "group": entry.definition.group_name,
            "job": entry.definition.job_name,
            "parallel": entry.parallel,
        }

    async def _dispatch(
        self, entry: PlannedEntry, inputs: Dict[str, Any], state: RunState
    ) -> Any:
        step = entry.definition
        group = self.groups[step.group_name]
        return await group.run(inputs, state.context, step.job_name)

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "groups": {name: group.describe() for name, group in self.groups.items()},
            "workflows": {
                name: workflow.model_dump(exclude_none=True)
                for name, workflow in self.workflows.items()
            },
        }
