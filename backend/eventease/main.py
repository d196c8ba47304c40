"""
EventEase Registration API - Main Application Entry Point

- Transactional event registration with capacity accounting
- Explicit database handle acquired at startup, disposed at shutdown
- Redis display cache for event listings
- Structured logging with request correlation, Prometheus metrics
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from eventease.core.config import get_settings
from eventease.core.logging import setup_logging, get_logger
from eventease.core.metrics import metrics_endpoint
from eventease.api.router import api_router
from eventease.api.middleware import RequestLoggingMiddleware
from eventease.db.session import Database
from eventease.services.cache_service import EventListCache

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Acquire the database and cache handles; release them on shutdown."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    app.state.database = Database.from_settings(settings)
    app.state.event_cache = await EventListCache.connect(settings)
    if not app.state.event_cache.enabled:
        logger.warning("redis_unavailable", message="Serving event listings without cache")

    yield

    await app.state.event_cache.close()
    await app.state.database.dispose()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Event registration API with atomic capacity accounting",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache = getattr(app.state, "event_cache", None)
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": await cache.stats() if cache else {"status": "disabled"},
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
