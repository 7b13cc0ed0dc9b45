"""Main FastAPI application for the reminder service."""
import logging

from fastapi import FastAPI

from reminder_app.config import get_settings
from reminder_app.db.init import init_db
from reminder_app.middleware.cors import add_cors_middleware
from reminder_app.routers import delivery_router, reminders_router
from reminder_app.utils.logger import setup_logging
from reminder_app.utils.metrics import metrics_collector

settings = get_settings()
setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="FollowUpTimer Reminder API",
    description="Reminder scheduling, snooze and multi-channel delivery",
    version="1.0.0",
)

add_cors_middleware(app, settings)


@app.on_event("startup")
async def startup_event():
    """Initialize database tables on startup."""
    try:
        init_db()
        logger.info("Database tables initialized successfully.")
    except Exception as e:
        logger.warning(f"Database initialization failed: {str(e)}. Check DATABASE_URL.")
    logger.info(
        f"Application startup complete (environment={settings.environment}, "
        f"delay_queue_enabled={settings.delay_queue_enabled}, dapr_enabled={settings.dapr_enabled})"
    )


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


@app.get("/")
async def root():
    """Root endpoint - API welcome message."""
    return {
        "message": "Welcome to the FollowUpTimer Reminder API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }


@app.get("/metrics")
async def get_metrics():
    """Scheduling and delivery counters."""
    return metrics_collector.get_metrics()


app.include_router(delivery_router, prefix="/api")  # /api/reminders/deliver
app.include_router(reminders_router, prefix="/api")  # /api/{user_id}/reminders


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "reminder_app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=not settings.is_production,
    )
