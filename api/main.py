"""
GrantPilot API

Grant review and due-diligence orchestration over HTTP.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import applications, assignments, due_diligence, health, oversight, rubrics
from grantpilot import __version__
from grantpilot.config import Settings
from grantpilot.engine import EvaluationService
from grantpilot.logging_config import configure_logging

logger = logging.getLogger("grantpilot.api")


def create_app(
    settings: Optional[Settings] = None,
    service: Optional[EvaluationService] = None,
) -> FastAPI:
    """
    Build the API around one EvaluationService.

    When no service is given, rubric packs are loaded from
    ``settings.packs_dir`` at startup.
    """
    if settings is None:
        settings = Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        if getattr(app.state, "service", None) is None:
            app.state.service = EvaluationService.from_settings(settings)
        logger.info(
            "Loaded %d rubric packs from %s",
            len(app.state.service.rubrics.all()),
            settings.packs_dir,
        )
        yield
        logger.info("Shutting down")

    app = FastAPI(
        title="GrantPilot API",
        description="""
**Grant review and due-diligence orchestration.**

Two blind reviewers score each application against its track rubric; the
averaged score decides approval. Qualifying or oversight-flagged
applications go through a primary/validator due-diligence check.

## Quick Start

1. `GET /rubrics` - See the loaded rubric packs
2. `POST /applications` - Register an application
3. `POST /applications/{id}/reviews` - Submit a review

Callers identify themselves with `X-Actor-Id` and `X-Actor-Role` headers.
        """,
        version=__version__,
        lifespan=lifespan,
    )
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:3001"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(rubrics.router)
    app.include_router(applications.router)
    app.include_router(due_diligence.router)
    app.include_router(oversight.router)
    app.include_router(assignments.router)

    @app.get("/api", tags=["Health"])
    async def api_info():
        """API info endpoint."""
        return {
            "service": "GrantPilot API",
            "version": __version__,
            "status": "running",
            "docs": "/docs",
            "openapi": "/openapi.json",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
