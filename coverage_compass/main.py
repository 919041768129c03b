"""
FastAPI application entry point for the Coverage Compass API.

Configures logging and CORS, creates the history stores in the lifespan and
registers the API routers.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import asyncpg
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from coverage_compass import __version__
from coverage_compass.api import api_router
from coverage_compass.core.config import get_settings
from coverage_compass.core.database import close_db, init_db
from coverage_compass.services.history import create_history_stores

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for startup and shutdown.

    On startup:
        - Initialize the database pool when DATABASE_URL is configured
        - Create the history stores (in-memory when the pool is unavailable)

    On shutdown:
        - Close the database pool
    """
    logger.info("Coverage Compass API starting")
    pool = None
    try:
        pool = await init_db()
        if pool is not None:
            logger.info("Database connection pool initialized")
    except (asyncpg.PostgresError, OSError) as e:
        logger.error(f"Failed to initialize database, falling back to in-memory history: {e}")

    app.state.history_stores = create_history_stores(pool)

    yield

    logger.info("Coverage Compass API shutting down")
    try:
        await close_db()
    except (asyncpg.PostgresError, OSError) as e:
        logger.error(f"Error closing database pool: {e}")


app = FastAPI(
    title="Coverage Compass API",
    version=__version__,
    description=(
        "Dimension coverage reconciliation, data-quality scoring and "
        "mapping compliance for monthly marketing performance extracts."
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring and load balancer probes.

    Returns:
        Dict with status 'healthy'
    """
    return {"status": "healthy"}


@app.get("/")
async def root():
    return {
        "name": "Coverage Compass API",
        "version": __version__,
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


# Run with uvicorn when executed directly
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "coverage_compass.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
