"""Internal task scheduler using APScheduler.

Reclaims expired commit records within the FastAPI process. Uses a
PostgreSQL advisory lock so only one instance purges when several are
running (e.g., Fly.io auto-scaling).
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import text

from commit_relay.config import settings
from commit_relay.core.database import direct_session_maker
from commit_relay.domain.commit_operations import commit_ops

logger = logging.getLogger(__name__)

# Advisory lock ID (arbitrary unique integer)
COMMIT_PURGE_LOCK_ID = 734121


@asynccontextmanager
async def advisory_lock(lock_id: int) -> AsyncIterator[bool]:
    """
    Acquire a PostgreSQL advisory lock for the duration of the context.

    Uses pg_try_advisory_lock(), which returns immediately: if another
    process holds the lock we yield False and the caller skips.
    """
    async with direct_session_maker() as session:
        result = await session.execute(
            text("SELECT pg_try_advisory_lock(:lock_id)"),
            {"lock_id": lock_id},
        )
        acquired = result.scalar()

        if not acquired:
            yield False
            return

        try:
            yield True
        finally:
            await session.execute(
                text("SELECT pg_advisory_unlock(:lock_id)"),
                {"lock_id": lock_id},
            )
            await session.commit()


async def run_commit_purge() -> int | None:
    """
    Delete commit records past their ttl.

    Returns the number of rows removed, or None if skipped or failed.
    """
    async with advisory_lock(COMMIT_PURGE_LOCK_ID) as acquired:
        if not acquired:
            logger.info("[scheduler] Commit-purge: skipped (another instance is running)")
            return None

        try:
            async with direct_session_maker() as db:
                removed = await commit_ops.delete_expired(db)
                await db.commit()
        except Exception as e:
            logger.exception(f"[scheduler] Commit-purge: failed with error: {e}")
            return None

        logger.info(f"[scheduler] Commit-purge: removed {removed} expired commits")
        return removed


class Scheduler:
    """Manages the APScheduler instance and job registration."""

    def __init__(self) -> None:
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        """Start the scheduler and register jobs."""
        if not settings.scheduler_enabled:
            logger.info("[scheduler] Disabled via SCHEDULER_ENABLED=false")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            run_commit_purge,
            trigger=IntervalTrigger(minutes=settings.commit_purge_interval_minutes),
            id="commit_purge",
            name="Expired Commit Purge",
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info(
            f"[scheduler] Started with commit-purge every "
            f"{settings.commit_purge_interval_minutes} min"
        )

    def stop(self) -> None:
        """Gracefully shut down the scheduler."""
        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("[scheduler] Stopped")

    async def trigger_now(self, job_id: str) -> int | None:
        """Run a job immediately (for testing/debugging)."""
        if job_id == "commit_purge":
            return await run_commit_purge()
        return None


scheduler = Scheduler()
