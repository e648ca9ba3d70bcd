"""
FastAPI Application Entry Point - Minimarket Orders Service
"""
import logging

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from minimarket_orders.api import documents, health, orders
from minimarket_orders.config import settings
from minimarket_orders.consumers.runtime import NotificationRuntime
from minimarket_orders.database import SessionLocal, init_db
from minimarket_orders.logging_config import configure_logging

configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)
logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title="Minimarket Orders Service",
    description="Web order lifecycle with PDF receipts and email notifications",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router)
app.include_router(orders.router)
app.include_router(documents.router)

# Prometheus metrics
Instrumentator().instrument(app).expose(app)


@app.on_event("startup")
def startup_event():
    """Initialize database and start the notification workers"""
    logger.info("Starting %s...", settings.SERVICE_NAME)
    if getattr(app.state, "runtime", None) is None:
        init_db()
        app.state.runtime = NotificationRuntime(SessionLocal, settings)
    resumed = app.state.runtime.start()
    logger.info("Notification workers running, %s outbox entries resumed", resumed)
    logger.info("Email backend: %s", settings.EMAIL_BACKEND)


@app.on_event("shutdown")
def shutdown_event():
    """Stop the notification workers"""
    logger.info("Shutting down %s...", settings.SERVICE_NAME)
    runtime = getattr(app.state, "runtime", None)
    if runtime is not None:
        runtime.stop()


def run() -> None:
    """Serve the app with uvicorn on the configured host and port"""
    uvicorn.run(app, host=settings.SERVICE_HOST, port=settings.SERVICE_PORT, log_config=None)


if __name__ == "__main__":
    run()
