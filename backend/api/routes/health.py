"""Liveness and readiness probes.

Mounted twice: under the versioned API and at ``/api/health`` for load
balancers. Neither probe needs an actor.
"""

import logging
import time
from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.config import get_settings
from db import database

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health")

STARTED_AT = time.monotonic()


@router.get("")
async def liveness() -> dict[str, Any]:
    settings = get_settings()
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "healthy",
        "uptime_seconds": round(time.monotonic() - STARTED_AT, 1),
    }


@router.get("/ready", responses={503: {"description": "Database unreachable"}})
async def readiness():
    """Ping the database the engine persists runs to."""
    try:
        async with database.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.error("Readiness check failed, database unreachable: %s", e)
        return JSONResponse(status_code=503, content={"status": "unhealthy", "database": "unavailable"})
    return {"status": "healthy", "database": "ok"}
