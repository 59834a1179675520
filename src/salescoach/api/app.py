"""
SalesCoach FastAPI Application.

Backend for AI-assisted sales-call training: voice conversations,
LLM analysis, demo quotas and the dashboard.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response, status
from fastapi.middleware.cors import CORSMiddleware

from salescoach.api.routes import (
    analysis,
    api_keys,
    conversations,
    dashboard,
    profiles,
    sessions,
)
from salescoach.config import settings
from salescoach.logging_config import setup_logging
from salescoach.startup import run_all_startup_checks

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Runs startup checks before the application starts serving requests.
    """
    setup_logging(context="api")

    logger.info("Running startup checks...")
    run_all_startup_checks()
    logger.info("Application startup complete")

    yield

    logger.info("Application shutdown complete")


app = FastAPI(
    lifespan=lifespan,
    title="SalesCoach API",
    description="API for AI-assisted sales conversation training",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Analysis-Cache", "Retry-After"],
)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint - API health check."""
    return {
        "status": "ok",
        "message": "SalesCoach API is running",
        "version": "0.1.0",
    }


@app.get("/health")
def health() -> dict[str, str]:
    """Health check endpoint."""
    from salescoach.db.connection import check_connection

    db_status = "healthy" if check_connection() else "unhealthy"

    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "database": db_status,
    }


@app.get("/ready")
def ready(response: Response) -> dict:
    """
    Readiness probe endpoint for load balancers.

    Returns 200 OK if ready to serve requests, 503 Service Unavailable otherwise.
    """
    from salescoach.startup import check_readiness

    is_ready, details = check_readiness()
    if not is_ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return details


app.include_router(analysis.router, prefix="/analysis", tags=["analysis"])
app.include_router(api_keys.router, prefix="/api-keys", tags=["api-keys"])
app.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
app.include_router(
    conversations.router, prefix="/conversations", tags=["conversations"]
)
app.include_router(profiles.router, prefix="/profile", tags=["profiles"])
app.include_router(sessions.router, prefix="/session", tags=["sessions"])
