"""GameShelf API - FastAPI Application."""

import logging
from contextlib import asynccontextmanager
from datetime import timezone

from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from gameshelf.middleware import CorrelationIDMiddleware, CorrelationIdFilter

# Configure logging - cleaner output for development
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] [%(correlation_id)s] %(message)s",
    datefmt="%H:%M:%S",
)
for _handler in logging.getLogger().handlers:
    _handler.addFilter(CorrelationIdFilter())

# Suppress noisy loggers - SQLAlchemy is especially chatty
logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("asyncio").setLevel(logging.WARNING)
logging.getLogger("apscheduler").setLevel(logging.WARNING)

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from gameshelf.config import get_settings
from gameshelf.api.v1.router import api_router
from gameshelf.core.cache import get_cache
from gameshelf.core.errors import (
    AuthError,
    CollectionError,
    ConfigError,
    GameShelfError,
    NotFoundError,
    ResolutionError,
    SteamError,
)
from gameshelf.core.rawg_client import get_rawg_client
from gameshelf.core.steam_client import get_steam_client
from gameshelf.core.tasks import TaskManager
from gameshelf.db.database import init_db, get_db, async_session
from gameshelf.db.models import CatalogGame, ImportJob
from gameshelf.ingestion.progress import fail_interrupted_jobs, purge_finished_jobs

logger = logging.getLogger(__name__)
settings = get_settings()

# Rate limiter - 100 requests per minute per IP for general endpoints
# Import endpoints have stricter limits applied via decorators
limiter = Limiter(key_func=get_remote_address, default_limits=["100/minute"])

scheduler = AsyncIOScheduler(
    timezone=timezone.utc,
    job_defaults={
        "misfire_grace_time": 60 * 60,  # 1 hour
        "coalesce": True,
        "max_instances": 1,
    },
)
task_manager = TaskManager.get_instance()


async def run_import_job_cleanup():
    """Delete finished import jobs past the retention period."""
    try:
        async with async_session() as session:
            await purge_finished_jobs(session, settings.import_job_retention_days)
    except Exception as e:
        logger.error(f"Import job cleanup failed: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    await init_db()

    # Batches run in-process, so anything still running belongs to a dead process
    async with async_session() as session:
        await fail_interrupted_jobs(session)

    if not settings.rawg_api_key:
        logger.warning("RAWG_API_KEY is not set - catalog lookups and imports will fail with 503")
    if not settings.steam_api_key:
        logger.warning("STEAM_API_KEY is not set - Steam imports will fail with 503")

    # Import job cleanup - 03:30 UTC daily
    scheduler.add_job(
        run_import_job_cleanup,
        CronTrigger(hour=3, minute=30),
        id="import_job_cleanup",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        f"Scheduler started - import job cleanup at 03:30 UTC "
        f"({settings.import_job_retention_days} day retention)"
    )

    yield

    # Shutdown
    logger.info("Shutting down application...")
    await task_manager.cancel_all(timeout=10.0)
    scheduler.shutdown()
    await get_rawg_client().close()
    await get_steam_client().close()
    await get_cache().close()
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.app_name,
    description="Personal game library API backed by the RAWG catalog",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


def _error_status(exc: GameShelfError) -> int:
    if isinstance(exc, AuthError):
        return 401
    if isinstance(exc, ConfigError):
        return 503
    if isinstance(exc, (NotFoundError, CollectionError)):
        return 404
    if isinstance(exc, (ResolutionError, SteamError)):
        return 502
    return 500


@app.exception_handler(GameShelfError)
async def gameshelf_error_handler(request: Request, exc: GameShelfError):
    status_code = _error_status(exc)
    if status_code >= 500:
        logger.warning(f"{request.method} {request.url.path} failed: {type(exc).__name__}: {exc.message}")
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse(status_code=status_code, content={"detail": exc.message}, headers=headers)


# CORS middleware - restricted methods and headers for security
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Correlation-ID"],
    expose_headers=["X-Correlation-ID"],  # Allow frontend to read correlation ID
)

# Correlation ID middleware for request tracing
app.add_middleware(CorrelationIDMiddleware)

# Include API routes
app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": settings.app_name}


@app.get("/health/db")
async def db_status(db: AsyncSession = Depends(get_db)):
    """Check database status and import activity."""
    try:
        result = await db.execute(select(func.count()).select_from(CatalogGame))
        game_count = result.scalar_one_or_none() or 0

        result = await db.execute(
            select(func.count()).select_from(ImportJob).where(ImportJob.status == "running")
        )
        running_imports = result.scalar_one_or_none() or 0

        job = scheduler.get_job("import_job_cleanup")
        next_cleanup = job.next_run_time.isoformat() if job and job.next_run_time else None

        return {
            "status": "healthy",
            "catalog_games": game_count,
            "running_imports": running_imports,
            "background_tasks": len(task_manager.get_running_tasks()),
            "next_cleanup": next_cleanup,
        }
    except Exception as e:
        logger.error(f"Health check DB error: {e}")
        return {
            "status": "error",
            "catalog_games": 0,
            "error": "Database health check failed",
        }


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": settings.app_name,
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }
