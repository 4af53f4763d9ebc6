from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from mentor_booking.core.config import (
    validate_config,
    APP_NAME,
    APP_VERSION,
    CORS_ORIGINS,
    DEBUG,
    LOG_LEVEL,
    LOG_FORMAT,
    REAPER_INTERVAL_SECONDS,
)
from mentor_booking.core.database import async_session, db_manager
from mentor_booking.core.error_handlers import setup_exception_handlers
from mentor_booking.core.limits import limiter, rate_limit_handler
from mentor_booking.core.logging_utils import (
    setup_logging,
    get_logger,
    log_business_event,
    error_tracker,
)
from mentor_booking.core.middleware import setup_middleware
from mentor_booking.booking.routers import (
    availability,
    maintenance,
    payments,
    sessions,
    slots,
    webhooks,
)
from mentor_booking.booking.services.expiry_reaper import ReaperTask

setup_logging(LOG_LEVEL, LOG_FORMAT)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {APP_NAME} v{APP_VERSION}")

    reaper = ReaperTask(async_session, REAPER_INTERVAL_SECONDS)
    try:
        validate_config()
        logger.info("Configuration validated")

        await db_manager.check_connection()
        await db_manager.create_tables()

        reaper.start()
        app.state.reaper = reaper

        log_business_event(
            "application_started",
            "system",
            0,
            {
                "version": APP_VERSION,
                "environment": "development" if DEBUG else "production",
            },
        )
        logger.info("Application startup completed")

    except Exception as e:
        logger.error(f"Application startup failed: {str(e)}")
        error_tracker.track_error(
            "STARTUP_ERROR",
            str(e),
            {"component": "application_startup", "version": APP_VERSION},
        )
        raise

    yield

    logger.info("Shutting down application...")
    await reaper.stop()
    await db_manager.close_connections()
    logger.info("Application shutdown completed")


app = FastAPI(
    title=APP_NAME,
    description="Mentor session booking: availability, slot holds and payment reconciliation",
    version=APP_VERSION,
    lifespan=lifespan,
    debug=DEBUG,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)

setup_middleware(
    app,
    {
        "slow_request_threshold": 5.0,
        "exclude_paths": [
            "/health",
            "/docs",
            "/openapi.json",
            "/redoc",
            "/favicon.ico",
        ],
    },
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_handler)

app.include_router(availability.router, prefix="/api/v1")
app.include_router(slots.router, prefix="/api/v1")
app.include_router(sessions.router, prefix="/api/v1")
app.include_router(payments.router, prefix="/api/v1")
app.include_router(webhooks.router, prefix="/api/v1")
app.include_router(maintenance.router, prefix="/api/v1")


@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok", "service": APP_NAME, "version": APP_VERSION}


@app.get("/health/errors", tags=["Health"])
async def health_errors():
    """Error counters since process start"""
    return error_tracker.get_stats()
