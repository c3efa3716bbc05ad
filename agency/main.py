"""
FastAPI Main Application Entry Point.

Configures and runs the Agency Workflow Engine API.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import RedirectResponse

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s"
)

from .api.routes import (  # noqa: E402
    get_entry_timeout,  # noqa: E402
    get_organizations,  # noqa: E402
    register_organization,  # noqa: E402
    router as organization_router,  # noqa: E402
)
from .core.errors import ConfigurationError  # noqa: E402
from .core.factory import GroupFactory, OrganizationFactory  # noqa: E402
from .workflows.blog_pipeline import (  # noqa: E402
    HANDLERS,  # noqa: E402
    capabilities,  # noqa: E402
    create_blog_organization,  # noqa: E402
)

logger = logging.getLogger("agency-workflow-engine")


def load_configured_organization() -> None:
    """Register the organization named by AGENCY_CONFIG_PATH, if any."""
    config_path = os.environ.get("AGENCY_CONFIG_PATH")
    if not config_path:
        return

    factory = OrganizationFactory(
        GroupFactory(
            handlers=HANDLERS,
            capabilities=capabilities,
            entry_timeout=get_entry_timeout(),
        )
    )
    try:
        organization = factory.load_from_file(
            config_path, os.environ.get("AGENCY_ORGANIZATION_ID")
        )
    except ConfigurationError:
        logger.exception("Could not load organization from %s", config_path)
        return
    register_organization(organization)
    logger.info("Registered organization from %s: %s", config_path, organization.name)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan handler.

    Registers the sample organization and any configured one on startup.
    """
    logger.info("Starting Agency Workflow Engine...")

    blog = create_blog_organization(entry_timeout=get_entry_timeout())
    register_organization(blog)
    logger.info(
        "Registered organization: %s (workflows: %s)", blog.name, list(blog.workflows)
    )

    load_configured_organization()
    logger.info("Organizations available: %s", list(get_organizations()))

    yield

    logger.info("Shutting down Agency Workflow Engine...")


# Create FastAPI application
app = FastAPI(
    title="Agency Workflow Engine",
    description="""
Runs multi-step workflows across groups of task-performing units.

## Features

- **Units**: Task performers invoked with one input and a shared context
- **Groups**: Units plus jobs, run in declared order with parallel batches
- **Organizations**: Groups plus named workflows of steps
- **Input Mapping**: Bind inputs to earlier results by dot-path
- **Real-time Events**: WebSocket streaming of nested workflow activity

## Sample Organization

The engine comes with a pre-registered **blogAgency** organization whose
`createBlogPost` workflow researches a topic, writes a post and titles it.
    """,
    version="0.1.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(organization_router)


@app.get("/", tags=["Health"])
async def root():
    """Redirect root to the interactive API docs (Swagger UI)."""
    return RedirectResponse(url="/docs")


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
