"""
Liveness / readiness probe.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_db
from app.core import clock
from app.core.config import settings
from app.services.scheduler import enforcement_scheduler

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


@router.get("/health")
async def health(db: AsyncSession = Depends(get_db)) -> dict:
    database = "ok"
    try:
        await db.execute(text("SELECT 1"))
    except Exception as exc:  # noqa: BLE001
        logger.warning("Health check database probe failed: %s", exc)
        database = "unavailable"
    return {
        "status": "ok" if database == "ok" else "degraded",
        "database": database,
        "scheduler": "running" if enforcement_scheduler.running else "stopped",
        "timezone": settings.ORG_TIMEZONE,
        "server_time": clock.now().isoformat(),
        "version": settings.VERSION,
    }
