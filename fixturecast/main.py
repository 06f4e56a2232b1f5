"""FastAPI application for FixtureCast."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from fixturecast.config import ConfigurationError
from fixturecast.etl.base import FixtureFetchError
from fixturecast.routes import core_router, pipeline_router
from fixturecast.scheduler import start_scheduler, stop_scheduler
from fixturecast.security import limiter
from fixturecast.state import close_all
from fixturecast.storage.base import StateStoreError
from fixturecast.telemetry.sentry import init_sentry
from fixturecast.utils.dates import InvalidDateError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize Sentry for error tracking (before FastAPI app creation)
# Only activates if SENTRY_DSN is set in environment
init_sentry()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting FixtureCast...")
    start_scheduler()
    yield
    logger.info("Shutting down...")
    stop_scheduler()
    await close_all()


app = FastAPI(
    title="FixtureCast",
    description="Daily LLM football predictions with accuracy and calibration tracking",
    version="1.0.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


def _error_response(status_code: int, error: str, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": str(exc)})


@app.exception_handler(InvalidDateError)
async def invalid_date_handler(request: Request, exc: InvalidDateError):
    return _error_response(400, "invalid-date", exc)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error(f"Configuration error on {request.url.path}: {exc}")
    return _error_response(500, "configuration", exc)


@app.exception_handler(FixtureFetchError)
async def fixture_fetch_error_handler(request: Request, exc: FixtureFetchError):
    logger.error(f"Fixture fetch failed on {request.url.path}: {exc}")
    return _error_response(502, "fixture-fetch", exc)


@app.exception_handler(StateStoreError)
async def state_store_error_handler(request: Request, exc: StateStoreError):
    logger.error(f"State store unavailable on {request.url.path}: {exc}")
    return _error_response(503, "state-store", exc)


# Include routers
app.include_router(core_router)
app.include_router(pipeline_router)
