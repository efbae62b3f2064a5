"""
otpdesk/api/health.py

Purpose: Health endpoints for uptime monitors and orchestration
"""

import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from otpdesk.core.config import settings
from otpdesk.core.logging import get_logger
from otpdesk.db.mongo import check_database_health

logger = get_logger(__name__)
router = APIRouter()

_started_at = time.time()


@router.get("/health")
async def health_check():
    """
    200 while MongoDB answers a ping, 503 otherwise.
    """
    db_healthy = await check_database_health()
    
    health_status = {
        "status": "OK" if db_healthy else "ERROR",
        "message": "Server is running" if db_healthy else "Database connection lost",
        "timestamp": time.time(),
        "database": "Connected" if db_healthy else "Disconnected",
        "uptime": round(time.time() - _started_at, 3),
        "environment": settings.ENVIRONMENT,
    }
    
    return JSONResponse(content=health_status, status_code=200 if db_healthy else 503)
