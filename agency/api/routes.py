"""
FastAPI Routes for the Workflow Engine.

Provides REST API endpoints for:
- Listing and inspecting registered organizations
- Running organization workflows
- Running a single group (or one of its jobs)
- Streaming organization events over WebSocket
"""

import json
import logging
import os
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect

from .models import (
    ErrorResponse,
    ListOrganizationsResponse,
    OrganizationInfo,
    OrganizationSummary,
    RunGroupRequest,
    RunGroupResponse,
    RunWorkflowRequest,
    RunWorkflowResponse,
)
from ..core.errors import WorkflowNotFoundError
from ..core.organization import Organization
from ..core.state import is_error_record

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/organizations", tags=["Organizations"])

# Registered organizations (populated in main.py)
_organizations: Dict[str, Organization] = {}


def get_entry_timeout() -> Optional[float]:
    """Per-entry timeout from AGENCY_ENTRY_TIMEOUT, if set."""
    raw = os.environ.get("AGENCY_ENTRY_TIMEOUT")
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring invalid AGENCY_ENTRY_TIMEOUT=%r", raw)
        return None


def get_organizations() -> Dict[str, Organization]:
    return _organizations


def register_organization(organization: Organization) -> None:
    """Make an organization available to the API and stream its events."""
    previous = _organizations.get(organization.name)
    if previous is organization:
        return
    _organizations[organization.name] = organization

    async def broadcast(event_name: str, payload: Dict[str, Any]) -> None:
        await manager.broadcast(
            organization.name, {"event": event_name, "payload": payload}
        )

    organization.on_any(broadcast)


def _get_organization(name: str) -> Organization:
    organization = _organizations.get(name)
    if organization is None:
        raise HTTPException(status_code=404, detail=f"Organization not found: {name}")
    return organization


# ============================================================================
# Organization Endpoints
# ============================================================================


@router.get(
    "",
    response_model=ListOrganizationsResponse,
    summary="List all organizations",
    description="Get a list of all registered organizations.",
)
async def list_organizations() -> ListOrganizationsResponse:
    return ListOrganizationsResponse(
        organizations=[
            OrganizationSummary(
                name=org.name,
                description=org.description,
                groups=list(org.groups),
                workflows=list(org.workflows),
            )
            for org in _organizations.values()
        ]
    )


@router.get(
    "/{name}",
    response_model=OrganizationInfo,
    responses={404: {"model": ErrorResponse}},
    summary="Get organization details",
    description="Get groups, units, jobs and workflows of an organization.",
)
async def get_organization(name: str) -> OrganizationInfo:
    return OrganizationInfo(**_get_organization(name).describe())


@router.post(
    "/{name}/run",
    response_model=RunWorkflowResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Run an organization workflow",
    description="Execute a workflow and return the result of every step.",
)
async def run_workflow(name: str, request: RunWorkflowRequest) -> RunWorkflowResponse:
    """
    Run an organization workflow.

    Per-step failures are reported in-band: a failed step's result is an
    error record with an ``error`` field, listed in **failed_steps**.
    """
    organization = _get_organization(name)

    try:
        results = await organization.run(
            request.workflow, request.initial_inputs, request.initial_context
        )
    except WorkflowNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.exception("Workflow %s of %s failed", request.workflow, name)
        raise HTTPException(status_code=500, detail=str(e))

    return RunWorkflowResponse(
        organization=name,
        workflow=request.workflow,
        results=results,
        failed_steps=[step for step, value in results.items() if is_error_record(value)],
    )


@router.post(
    "/{name}/groups/{group}/run",
    response_model=RunGroupResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Run a group",
    description="Run a group's workflow, or a single job when job_name is given.",
)
async def run_group(name: str, group: str, request: RunGroupRequest) -> RunGroupResponse:
    organization = _get_organization(name)

    try:
        if request.job_name:
            target = organization.groups.get(group)
            if target is None:
                raise WorkflowNotFoundError(f"Group {group!r} not found.")
            result = await target.run(
                request.initial_inputs, request.initial_context, request.job_name
            )
        else:
            result = await organization.run_group(
                group, request.initial_inputs, request.initial_context
            )
    except WorkflowNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))

    return RunGroupResponse(
        organization=name, group=group, job_name=request.job_name, result=result
    )


# ============================================================================
# WebSocket Endpoint for Real-time Events
# ============================================================================


class ConnectionManager:
    """Manages WebSocket connections for real-time event streaming."""

    def __init__(self):
        self.active_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, organization: str):
        await websocket.accept()
        if organization not in self.active_connections:
            self.active_connections[organization] = []
        self.active_connections[organization].append(websocket)

    def disconnect(self, websocket: WebSocket, organization: str):
        if organization in self.active_connections:
            self.active_connections[organization].remove(websocket)
            if not self.active_connections[organization]:
                del self.active_connections[organization]

    async def broadcast(self, organization: str, message: dict):
        for connection in list(self.active_connections.get(organization, [])):
            try:
                await connection.send_text(json.dumps(message, default=str))
            except Exception:
                logger.debug("Dropping event for closed connection", exc_info=True)


manager = ConnectionManager()


@router.websocket("/{name}/events")
async def websocket_events(websocket: WebSocket, name: str):
    """
    WebSocket endpoint for streaming organization events.

    Every event of the organization, including those forwarded from its
    groups, is sent as ``{"event": ..., "payload": ...}``.
    """
    await manager.connect(websocket, name)

    try:
        while True:
            data = await websocket.receive_text()

            if data == "ping":
                await websocket.send_text("pong")

    except WebSocketDisconnect:
        manager.disconnect(websocket, name)