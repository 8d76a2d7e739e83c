"""FastAPI application factory.

Main entry point for the costwatch Web API.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from costwatch import __version__
from costwatch.config.app_config import load_app_config
from costwatch.db.database import get_db_path, init_db
from costwatch.logging_config import configure_logging
from costwatch.web.routes import (
    alerts_router,
    analytics_router,
    costs_router,
    health_router,
    jobs_router,
    users_router,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup/shutdown events."""
    # Startup
    init_db(get_db_path())
    config = load_app_config()
    logger.info(
        "api_startup",
        database=str(get_db_path().absolute()),
        admin_key_configured=config.get_admin_key() is not None,
    )
    yield


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    configure_logging(load_app_config().log_level)

    app = FastAPI(
        title="costwatch API",
        description="Cost tracking and anomaly alerts",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health_router)
    app.include_router(costs_router)
    app.include_router(jobs_router)
    app.include_router(alerts_router)
    app.include_router(analytics_router)
    app.include_router(users_router)

    return app


# Default app instance for uvicorn
app = create_app()
