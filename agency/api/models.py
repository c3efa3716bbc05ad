"""
Pydantic models for API requests and responses.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


# ============================================================================
# Organization Info Models
# ============================================================================


class OrganizationSummary(BaseModel):
    """Brief information about a registered organization."""

    name: str
    description: str
    groups: List[str]
    workflows: List[str]


class ListOrganizationsResponse(BaseModel):
    """Response listing all registered organizations."""

    organizations: List[OrganizationSummary]


class OrganizationInfo(BaseModel):
    """Detailed information about an organization, its groups and workflows."""

    name: str
    description: str
    groups: Dict[str, Any]
    workflows: Dict[str, Any]


# ============================================================================
# Execution Models
# ============================================================================


class RunWorkflowRequest(BaseModel):
    """Request body for running an organization workflow."""

    workflow: str = Field(..., description="Name of the organization workflow")
    initial_inputs: Dict[str, Any] = Field(
        default_factory=dict, description="Values reachable as initialInputs.*"
    )
    initial_context: Dict[str, Any] = Field(
        default_factory=dict, description="Shared context for the run"
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "workflow": "createBlogPost",
                    "initial_inputs": {"topic": "training a pet rabbit"},
                    "initial_context": {"audience": "new pet owners"},
                }
            ]
        }
    }


class RunWorkflowResponse(BaseModel):
    """Response for an organization workflow run."""

    organization: str
    workflow: str
    results: Dict[str, Any] = Field(..., description="Step name -> result or error record")
    failed_steps: List[str] = Field(
        default_factory=list, description="Steps whose result is an error record"
    )


class RunGroupRequest(BaseModel):
    """Request body for running a single group of an organization."""

    initial_inputs: Dict[str, Any] = Field(default_factory=dict)
    initial_context: Dict[str, Any] = Field(default_factory=dict)
    job_name: Optional[str] = Field(
        default=None, description="Run only this job instead of the group workflow"
    )


class RunGroupResponse(BaseModel):
    """Response for a group run."""

    organization: str
    group: str
    job_name: Optional[str] = None
    result: Any


# ============================================================================
# Error Models
# ============================================================================


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(
        default=None, description="Detailed error information"
    )
