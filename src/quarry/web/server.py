"""
FastAPI app factory for quarry.

Creates and configures the FastAPI application with:
- REST API routers
- CORS middleware
- Service initialization
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import jobs
from .services.job_runner import OrchestratorFactory

logger = logging.getLogger(__name__)


def create_app(
    config_path: Path | None = None,
    db_path: str | Path | None = None,
    orchestrator_factory: OrchestratorFactory | None = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        config_path: Path to quarry.toml (defaults when None)
        db_path: SQLite database path (overrides the config's)
        orchestrator_factory: Builds the orchestrator per job (tests inject fakes)

    Returns:
        Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifecycle."""
        logger.info("Starting quarry API...")
        await jobs.init_job_runner(config_path, db_path, orchestrator_factory)
        logger.info("API ready")

        yield

        logger.info("Shutting down quarry API...")
        await jobs.shutdown_job_runner()
        logger.info("API stopped")

    app = FastAPI(
        title="Quarry",
        description="Iterative web research jobs with cited reports",
        version="0.1.0",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    # CORS middleware (for development with a separate frontend)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",
            "http://localhost:3000",
            "http://127.0.0.1:5173",
            "http://127.0.0.1:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(jobs.router, prefix="/api/jobs", tags=["jobs"])

    @app.get("/api/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
