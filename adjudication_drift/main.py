"""
FastAPI application entry point for the Adjudication Drift API.

Configures logging and CORS, manages the issue store pool lifecycle, and
registers the trend routers.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from adjudication_drift import __version__
from adjudication_drift.api import trends_router
from adjudication_drift.core.database import close_db, init_db

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for application startup and shutdown.

    A database that is missing or down at startup does not stop the service;
    requests that need it fail with 503 until it becomes reachable.
    """
    logger.info("Adjudication Drift API starting")
    try:
        pool = await init_db()
        if pool is not None:
            logger.info("Database connection pool initialized")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")

    yield

    logger.info("Adjudication Drift API shutting down")
    try:
        await close_db()
    except Exception as e:
        logger.error(f"Error closing database pool: {e}")


app = FastAPI(
    title="Adjudication Drift API",
    version=__version__,
    description=(
        "Cohort and drift analysis of issues extracted from adjudication "
        "documents (RFE, NOID, Denial)."
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(trends_router)  # Has its own /trends prefix


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring and load balancers."""
    return {"status": "healthy"}


@app.get("/")
async def root():
    """Root endpoint providing API information."""
    return {
        "name": "Adjudication Drift API",
        "version": __version__,
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


# Run with uvicorn when executed directly
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "adjudication_drift.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
