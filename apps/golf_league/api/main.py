"""
Golf League API Server

FastAPI server for running league events: rosters, RSVPs, tee sheets and scoring.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
import os
import uvicorn
from dotenv import load_dotenv
from slowapi import _rate_limit_exceeded_handler  # type: ignore
from slowapi.errors import RateLimitExceeded  # type: ignore

from golf_league.api.routes import router, limiter as routes_limiter
from golf_league.api.public_routes import public_router
from golf_league.database import db
from golf_league.services import settings_service
from golf_league.services.rsvp_schedule_service import get_rsvp_schedule_worker

load_dotenv()

# LOG_LEVEL env first; a stored `log_level` setting replaces it once the database is up
logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

IS_TEST_ENV = os.getenv("ENV", "").lower() == "test"


async def _apply_log_level_setting() -> None:
    async with db.AsyncSessionLocal() as session:
        level = await settings_service.get_setting_with_fallback(session, "log_level", "LOG_LEVEL", "INFO")
    level = level.upper()
    if level not in settings_service.LOG_LEVELS:
        logger.warning(f"Ignoring unknown log level '{level}'")
        return
    logging.getLogger().setLevel(level)
    logger.info(f"Log level: {level}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup and shutdown events."""
    # Startup
    logger.info("Starting up Golf League API...")

    # Create tables if they don't exist; migrations remain the source of truth
    try:
        await db.init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)

    await _apply_log_level_setting()

    schedule_worker = get_rsvp_schedule_worker()
    if not IS_TEST_ENV:
        try:
            schedule_worker.start()
        except Exception as e:
            logger.error(f"Failed to start RSVP schedule worker: {e}", exc_info=True)

    yield  # App is running

    # Shutdown
    logger.info("Shutting down Golf League API...")
    try:
        schedule_worker.stop()
    except Exception as e:
        logger.error(f"Error stopping RSVP schedule worker: {e}", exc_info=True)
    await db.dispose_engine()


app = FastAPI(
    title="Golf League API",
    description="API for league events, RSVPs, tee sheets and rolling-average scoring",
    version="1.0.0",
    lifespan=lifespan,
)

# Setup rate limiter
app.state.limiter = routes_limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add CORS middleware; origins configured via ALLOWED_ORIGINS env var
allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router)
app.include_router(public_router)


@app.get("/")
async def root():
    """Service name and where to find the docs; the frontend is served separately."""
    return {"service": app.title, "version": app.version, "docs": "/docs", "health": "/api/health"}


if __name__ == "__main__":
    uvicorn.run(
        "golf_league.api.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )
