# sync_guesty/main.py

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sync_guesty import config
from sync_guesty.errors import AppError, ConfigError
from sync_guesty.logging_config import setup_logging
from sync_guesty.middleware import RequestIDMiddleware
from sync_guesty.routes.documents import router as documents_router
from sync_guesty.routes.health import router as health_router
from sync_guesty.routes.metrics import router as metrics_router
from sync_guesty.routes.sync import router as sync_router

# Initialize structured logging
setup_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(
    title="Guesty Sync API",
    description="Admin API for the Guesty listing, availability and reservation sync engine",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS if "*" not in config.ALLOWED_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIDMiddleware)

# Register routers
app.include_router(health_router, tags=["Health"])
app.include_router(metrics_router, tags=["Metrics"])
app.include_router(sync_router, prefix="/sync", tags=["Sync"])
app.include_router(documents_router, prefix="/documents", tags=["Documents"])


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render application errors with their own status code and error body."""
    logger.warning(
        "request_failed",
        path=request.url.path,
        error=exc.message,
        error_code=exc.code,
        status_code=exc.status_code,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.on_event("startup")
def startup_event() -> None:
    """Build the Guesty client and the scheduler, and start the scheduler if enabled."""
    from sync_guesty.db.engine import engine
    from sync_guesty.network.client import GuestyClient
    from sync_guesty.services.scheduler import SyncScheduler
    from sync_guesty.services.sync import run_etl_job

    logger.info("FastAPI application starting up...")

    try:
        client = GuestyClient.from_config()
    except ConfigError as e:
        logger.error("guesty_client_not_configured", error=e.message)
        app.state.guesty_client = None
        app.state.scheduler = None
        return

    scheduler = SyncScheduler(
        job=lambda mode: run_etl_job(client, engine, mode),
        interval_seconds=config.SCHEDULER_INTERVAL_MINUTES * 60,
        jitter_percent=config.SCHEDULER_JITTER_PERCENT,
    )
    app.state.guesty_client = client
    app.state.scheduler = scheduler

    if config.SCHEDULER_ENABLED:
        scheduler.start()
    else:
        logger.info("scheduler_disabled")

    logger.info("FastAPI application initialized", properties=len(config.PROPERTY_IDS))


@app.on_event("shutdown")
def shutdown_event() -> None:
    """Stop future scheduled runs; an in-flight run finishes on its own thread."""
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler is not None:
        scheduler.stop()
