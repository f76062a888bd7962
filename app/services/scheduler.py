"""
Enforcement scheduler — owns the periodic enforcement jobs.

Jobs are keyed by name.  ``reschedule`` removes every job and re-adds it
from a fresh config snapshot under one lock, so a config change never
leaves a stale timer running next to its replacement.  ``max_instances=1``
with ``coalesce`` means an overlapping tick is skipped, not stacked.
"""

from __future__ import annotations

import asyncio
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core import clock
from app.core.config import settings
from app.db.session import async_session_factory
from app.services import enforcement
from app.services.notifications import NotificationHub, notification_hub
from app.services.shifts import ScheduleSnapshot

logger = logging.getLogger(__name__)

UNTIME_EXPIRY = "untime-expiry"
FORCED_LOGOUT = "forced-logout"
ENDING_SOON_ALERT = "ending-soon-alert"
QR_ROTATE = "qr-rotate"
JOB_IDS = (UNTIME_EXPIRY, FORCED_LOGOUT, ENDING_SOON_ALERT, QR_ROTATE)


class EnforcementScheduler:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        hub: NotificationHub,
    ) -> None:
        self.session_factory = session_factory
        self.hub = hub
        self.scheduler = AsyncIOScheduler(timezone=clock.org_tz())
        self._lock = asyncio.Lock()
        self.snapshot: ScheduleSnapshot | None = None

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Enforcement scheduler started")

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Enforcement scheduler stopped")

    def job_ids(self) -> list[str]:
        return [job.id for job in self.scheduler.get_jobs()]

    async def reschedule(self, snapshot: ScheduleSnapshot) -> None:
        """Cancel every enforcement job and re-arm it for ``snapshot``."""
        async with self._lock:
            for job_id in JOB_IDS:
                if self.scheduler.get_job(job_id) is not None:
                    self.scheduler.remove_job(job_id)
            self._arm(snapshot)
            self.snapshot = snapshot

    def _arm(self, snapshot: ScheduleSnapshot) -> None:
        tz = clock.org_tz()
        common = {"max_instances": 1, "coalesce": True, "replace_existing": True}

        self.scheduler.add_job(
            enforcement.expire_untime,
            IntervalTrigger(minutes=1, timezone=tz),
            id=UNTIME_EXPIRY,
            args=[self.session_factory],
            **common,
        )

        logout_at = snapshot.enforcement_time()
        self.scheduler.add_job(
            enforcement.force_logout,
            CronTrigger(hour=logout_at.hour, minute=logout_at.minute, timezone=tz),
            id=FORCED_LOGOUT,
            args=[self.session_factory],
            **common,
        )

        self.scheduler.add_job(
            enforcement.send_ending_soon_alerts,
            IntervalTrigger(seconds=settings.ALERT_TICK_SECONDS, timezone=tz),
            id=ENDING_SOON_ALERT,
            args=[self.session_factory, self.hub, snapshot],
            **common,
        )

        self.scheduler.add_job(
            enforcement.rotate_qr,
            IntervalTrigger(minutes=settings.QR_SESSION_TTL_MINUTES, timezone=tz),
            id=QR_ROTATE,
            args=[self.session_factory],
            **common,
        )
        logger.info(
            "Enforcement jobs armed: forced logout daily at %s (%s), alerts every %ss",
            logout_at.strftime("%H:%M"), settings.ORG_TIMEZONE, settings.ALERT_TICK_SECONDS,
        )


# Global instance
enforcement_scheduler = EnforcementScheduler(async_session_factory, notification_hub)
