"""Exceptions raised by the workflow engine."""


class AgencyError(Exception):
    """Base class for engine errors."""


class ConfigurationError(AgencyError, ValueError):
    """Raised when a unit, job, step, group or workflow definition is invalid."""


class WorkflowNotFoundError(AgencyError, LookupError):
    """Raised when a run names a workflow, job or group that does not exist."""
