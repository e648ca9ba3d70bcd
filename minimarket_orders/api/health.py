"""
Health check endpoint
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.orm import Session

from minimarket_orders.config import settings
from minimarket_orders.database import get_db

router = APIRouter(tags=["health"])


@router.get("/health")
def health_check(request: Request, db: Session = Depends(get_db)):
    """
    Health check endpoint

    Checks:
    - Database connectivity
    - Notification worker pool
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "healthy"
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"

    runtime = getattr(request.app.state, "runtime", None)
    if runtime is not None and runtime.pool.running:
        workers_status = "healthy"
        queued = runtime.pool.size()
    else:
        workers_status = "unhealthy: worker pool not running"
        queued = None

    overall_status = "healthy" if (db_status == "healthy" and workers_status == "healthy") else "unhealthy"

    return {
        "service": settings.SERVICE_NAME,
        "status": overall_status,
        "database": db_status,
        "notification_workers": workers_status,
        "queued_jobs": queued,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@router.get("/")
def root():
    """Root endpoint"""
    return {
        "service": settings.SERVICE_NAME,
        "version": "1.0.0",
        "docs": "/docs"
    }
