"""
FastAPI application initialization
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from api.routes import consumption, dips, gasbot_sync, health, sync_logs, webhook
from core.config import settings
from core.database import dispose_engines
from core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    ExtractionError,
    PayloadValidationError,
)
from core.logging import setup_logging
import logging
from api.middleware import RequestContextMiddleware
from ingestion.scheduler import IngestionScheduler
from models.base import utcnow

setup_logging(settings.LOG_LEVEL)

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Tank Telemetry Ingestion API",
    description="Webhook ingestion, manual dips and consumption analytics for fuel tank telemetry",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestContextMiddleware)

# Scheduler only runs when enabled
scheduler = IngestionScheduler() if settings.ENABLE_SCHEDULER else None


# Include routers
app.include_router(health.router)
app.include_router(webhook.router)
app.include_router(gasbot_sync.router)
app.include_router(dips.router)
app.include_router(consumption.router)
app.include_router(sync_logs.router)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error(f"Configuration error: {exc.message}", extra={"error_context": exc.to_dict()})
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Server configuration error",
            "message": exc.message,
        },
    )


@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request: Request, exc: AuthenticationError):
    logger.warning(f"Rejected request to {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=401,
        content={"error": "Unauthorized", "message": exc.message},
    )


@app.exception_handler(PayloadValidationError)
async def payload_error_handler(request: Request, exc: PayloadValidationError):
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Invalid payload", "message": exc.message},
    )


@app.exception_handler(ExtractionError)
async def extraction_error_handler(request: Request, exc: ExtractionError):
    logger.error(f"Gasbot API unavailable: {exc.message}", extra={"error_context": exc.to_dict()})
    return JSONResponse(
        status_code=503,
        content={
            "success": False,
            "error": "Gasbot API unavailable",
            "message": exc.message,
            "timestamp": utcnow().isoformat(),
        },
    )


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info("Starting Tank Telemetry Ingestion API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    if not settings.DATABASE_URL:
        logger.warning("DATABASE_URL is not set; ingestion endpoints will return 500")
    if not settings.WEBHOOK_SECRET:
        logger.warning("WEBHOOK_SECRET is not set; webhook requests will be refused")

    if scheduler is not None:
        scheduler.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down Tank Telemetry Ingestion API")
    if scheduler is not None:
        scheduler.stop()
    await dispose_engines()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Tank Telemetry Ingestion API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "webhook": "/webhooks/gasbot",
            "gasbot_sync": "/sync/gasbot",
            "dips": "/dips",
            "recalculate": "/consumption/recalculate",
            "sync_logs": "/sync-logs"
        }
    }
