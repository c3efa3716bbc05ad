"""Core workflow engine components."""

from .capabilities import CapabilityRegistry
from .errors import AgencyError, ConfigurationError, WorkflowNotFoundError
from .events import EventBus, EventName
from .factory import GroupFactory, OrganizationFactory
from .group import Group
from .models import JobDefinition, OrganizationWorkflow, StepDefinition, WorkflowEntry
from .organization import Organization
from .resolver import UNRESOLVED, InputPath, Scope
from .units import FunctionUnit, Unit

__all__ = [
    "AgencyError",
    "CapabilityRegistry",
    "ConfigurationError",
    "EventBus",
    "EventName",
    "FunctionUnit",
    "Group",
    "GroupFactory",
    "InputPath",
    "JobDefinition",
    "Organization",
    "OrganizationFactory",
    "OrganizationWorkflow",
    "Scope",
    "StepDefinition",
    "UNRESOLVED",
    "Unit",
    "WorkflowEntry",
    "WorkflowNotFoundError",
]
