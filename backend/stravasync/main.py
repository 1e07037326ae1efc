"""
Strava Activity Sync API

FastAPI application wiring OAuth, activity sync and statistics.
"""

from contextlib import asynccontextmanager
import logging
import sys

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stravasync import __version__
from stravasync.config import settings
from stravasync.db.session import async_engine, AsyncSessionLocal, init_db, make_store
from stravasync.api.v1.router import api_router
from stravasync.features.strava import (
    EnvSecretStore,
    SecretInitError,
    create_integration,
    load_client_credentials,
)


# === Logging Setup ===
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
    ]
)
logger = logging.getLogger(__name__)


# === Lifespan ===
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Startup
    logger.info("Starting Strava Activity Sync API...")

    # Credentials are resolved before the first request can arrive
    try:
        credentials = load_client_credentials(EnvSecretStore(settings))
    except SecretInitError as e:
        logger.critical(f"Cannot start without Strava credentials: {e}")
        raise

    await init_db(async_engine)
    logger.info("Database initialized")

    http = httpx.AsyncClient(timeout=settings.http_timeout_seconds)
    app.state.integration = create_integration(
        make_store(AsyncSessionLocal),
        http,
        credentials,
        refresh_buffer_seconds=settings.token_refresh_buffer_seconds,
        per_page=settings.sync_per_page,
        max_pages=settings.sync_max_pages,
    )
    logger.info("Strava integration ready")

    yield

    # Shutdown
    await http.aclose()
    await async_engine.dispose()
    logger.info("Shutting down...")


# === App Creation ===
app = FastAPI(
    title="Strava Activity Sync API",
    description="Strava OAuth, activity synchronization and statistics",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# === Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# === Routes ===
app.include_router(api_router, prefix="/api/v1")


# === Health Check ===
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}
