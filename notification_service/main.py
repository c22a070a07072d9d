"""
Notification Delivery Service - Main Application
FastAPI Entry Point with APScheduler for the outbox and reminder jobs
"""

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse
import structlog

from notification_service import __version__
from notification_service import database
from notification_service.config import settings
from notification_service.routers.outbox import router as outbox_router
from notification_service.scheduler import NotificationJobs
from notification_service.services.monitoring import setup_logging

# Structured Logging Setup
setup_logging()
logger = structlog.get_logger()

# FastAPI App
app = FastAPI(
    title="Notification Delivery Service",
    description="Outbox dispatcher and lifecycle reminder scheduler",
    version=__version__,
    docs_url="/docs" if settings.environment == "development" else None,
    redoc_url="/redoc" if settings.environment == "development" else None,
)

# Register routers
app.include_router(outbox_router)

# Set on startup once the database is configured
notification_jobs = None


def get_notification_jobs() -> NotificationJobs:
    if notification_jobs is None:
        raise HTTPException(status_code=503, detail="Database not configured")
    return notification_jobs


@app.on_event("startup")
async def startup_event():
    """Application Startup"""
    global notification_jobs
    logger.info("startup", environment=settings.environment)

    # Initialize database connection
    database.init_db()

    if database.SessionLocal is None:
        logger.warning("notification_jobs_skipped", reason="database_not_configured")
        return

    logger.info("database_initialized")
    notification_jobs = NotificationJobs(session_factory=database.SessionLocal)
    notification_jobs.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Application Shutdown"""
    logger.info("shutdown")

    if notification_jobs is not None:
        notification_jobs.stop()


@app.get("/")
async def root():
    """Root Endpoint"""
    return {
        "message": "Notification Delivery Service",
        "version": __version__,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    """
    Health Check Endpoint
    Reports scheduler state and configuration
    """
    scheduler_running = notification_jobs is not None and notification_jobs.is_running

    health_status = {
        "status": "healthy",
        "environment": settings.environment,
        "services": {
            "api": "running",
            "scheduler": "running" if scheduler_running else "stopped",
            "database": "configured" if settings.database_url else "not_configured",
            "transport": "webhook" if settings.outbox_webhook_url else "log",
        },
        "jobs_enabled": settings.jobs_enabled,
    }

    return JSONResponse(
        content=health_status,
        status_code=200
    )


@app.post("/api/v1/admin/notification-jobs/outbox/run")
def trigger_outbox_worker():
    """
    Manually run one outbox cycle.

    Skipped (processed=0) when a cycle is already in flight or jobs are disabled.
    """
    jobs = get_notification_jobs()
    processed = jobs.run_outbox_worker_once()
    return {
        "status": "completed",
        "processed": processed
    }


@app.post("/api/v1/admin/notification-jobs/reminders/run")
def trigger_reminder_worker():
    """
    Manually run one reminder cycle (schedule reconciliation + evaluation).
    """
    jobs = get_notification_jobs()
    triggered = jobs.run_reminder_worker_once()
    return {
        "status": "completed",
        "triggered": triggered
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "notification_service.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.environment == "development"
    )
