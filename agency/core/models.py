"""
Pydantic models for job, step and workflow definitions.

Definitions accept snake_case field names as well as the camelCase keys
used by JSON configuration files.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

from .resolver import InputPath, parse_mapping

_MODEL_CONFIG = {"populate_by_name": True, "alias_generator": to_camel}


# ============================================================================
# Workflow Entry Definitions
# ============================================================================


class EntryDefinition(BaseModel):
    """Fields shared by group jobs and organization steps."""

    input_mapping: Optional[Dict[str, str]] = Field(
        default=None, description="Parameter name -> dot-path (e.g. results.job1)"
    )
    output_key: Optional[str] = Field(
        default=None, description="Field to extract from a structured result"
    )
    parallel: bool = Field(
        default=False, description="Run concurrently with adjacent parallel entries"
    )

    model_config = _MODEL_CONFIG

    @field_validator("input_mapping")
    @classmethod
    def _validate_paths(cls, mapping: Optional[Dict[str, str]]):
        parse_mapping(mapping)
        return mapping

    def paths(self) -> Optional[Dict[str, InputPath]]:
        """The input mapping with every path parsed."""
        return parse_mapping(self.input_mapping)


class JobDefinition(EntryDefinition):
    """A named, configured invocation of a unit inside a group."""

    unit_name: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("unit_name", "unitName", "agentName"),
        description="Name of the unit that performs the job",
    )
    input_template: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "input_template", "inputTemplate", "inputPromptTemplate"
        ),
        description="Text with {{param}} placeholders",
    )


class StepDefinition(EntryDefinition):
    """A named, configured invocation of a group inside an organization."""

    name: Optional[str] = Field(
        default=None, description="Step name; defaults to step<N> by position"
    )
    group_name: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("group_name", "groupName", "teamName"),
    )
    job_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "job_name", "jobName", "workflow_name", "workflowName"
        ),
        description="Single group job to run; the whole group workflow if omitted",
    )


class WorkflowEntry(BaseModel):
    """A group workflow entry given as a descriptor instead of a bare job name."""

    job: str = Field(..., min_length=1, validation_alias=AliasChoices("job", "jobName", "name"))
    parallel: Optional[bool] = Field(
        default=None, description="Overrides the job's own parallel marker when set"
    )

    model_config = _MODEL_CONFIG


class OrganizationWorkflow(BaseModel):
    """An ordered list of steps run by an organization."""

    name: Optional[str] = None
    description: str = ""
    steps: List[StepDefinition] = Field(default_factory=list)

    model_config = _MODEL_CONFIG


# ============================================================================
# Configuration Models
# ============================================================================


class UnitConfig(BaseModel):
    """Configuration of a unit built by the group factory."""

    name: Optional[str] = None
    role: str = Field(..., min_length=1)
    description: str = ""
    handler: str = Field(..., description="Name of a registered handler function")
    capabilities: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("capabilities", "tools")
    )

    model_config = _MODEL_CONFIG


class GroupConfig(BaseModel):
    """A group with its units declared inline."""

    name: Optional[str] = None
    description: str = ""
    units: Dict[str, UnitConfig] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("units", "agents", "agentsConfig"),
    )
    jobs: Dict[str, JobDefinition] = Field(default_factory=dict)
    workflow: List[Union[str, WorkflowEntry]] = Field(default_factory=list)

    model_config = _MODEL_CONFIG


class OrganizationConfig(BaseModel):
    """An organization with its groups declared inline."""

    name: Optional[str] = None
    description: str = ""
    groups: Dict[str, GroupConfig] = Field(
        default_factory=dict, validation_alias=AliasChoices("groups", "teams")
    )
    workflows: Dict[str, OrganizationWorkflow] = Field(default_factory=dict)

    model_config = _MODEL_CONFIG


class CatalogGroupConfig(GroupConfig):
    """A catalog group referencing catalog units by id."""

    units: List[str] = Field(  # type: ignore[assignment]
        default_factory=list,
        validation_alias=AliasChoices("units", "agents"),
    )


class GroupReference(BaseModel):
    """A catalog group reference, optionally registered under an alias."""

    id: str
    alias: Optional[str] = None


class CatalogOrganizationConfig(BaseModel):
    """A catalog organization referencing catalog groups."""

    name: Optional[str] = None
    description: str = ""
    groups: List[Union[str, GroupReference]] = Field(
        default_factory=list, validation_alias=AliasChoices("groups", "teams")
    )
    workflows: Dict[str, OrganizationWorkflow] = Field(default_factory=dict)

    model_config = _MODEL_CONFIG


class Catalog(BaseModel):
    """Units, groups and organizations declared side by side, keyed by id."""

    units: Dict[str, UnitConfig] = Field(
        default_factory=dict, validation_alias=AliasChoices("units", "agents")
    )
    groups: Dict[str, CatalogGroupConfig] = Field(
        default_factory=dict, validation_alias=AliasChoices("groups", "teams")
    )
    organizations: Dict[str, CatalogOrganizationConfig] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("organizations", "agency", "agencies"),
    )

    model_config = _MODEL_CONFIG
