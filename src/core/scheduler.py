"""Background task scheduler using APScheduler.

Manages scheduled jobs for:
- Expired session sweep (every SESSION_SWEEP_INTERVAL_SECONDS, default 60 s)
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import (  # type: ignore[import-untyped]
    AsyncIOScheduler,
)
from apscheduler.triggers.interval import (  # type: ignore[import-untyped]
    IntervalTrigger,
)

from services.sessions import SessionStore


logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "sweep_expired_sessions"


async def run_session_sweep(store: SessionStore) -> None:
    """Scheduled job: drop sessions older than the store's TTL."""
    try:
        removed = store.sweep_expired()
        if removed:
            logger.info(f"Session sweep removed {removed} expired sessions")
    except Exception as e:
        logger.error(f"Session sweep failed: {e}", exc_info=True)


def setup_scheduler(store: SessionStore, interval_seconds: int) -> AsyncIOScheduler:
    """Create a scheduler with the session sweep job registered (not started)."""
    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        run_session_sweep,
        trigger=IntervalTrigger(seconds=interval_seconds),
        args=[store],
        id=SWEEP_JOB_ID,
        name="Expired session sweep",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    logger.info(f"Scheduler configured: session sweep ({interval_seconds} s)")
    return scheduler


@asynccontextmanager
async def scheduler_lifespan(
    store: SessionStore, interval_seconds: int
) -> AsyncGenerator[AsyncIOScheduler, None]:
    """Context manager for scheduler lifecycle.

    Usage in FastAPI:
        @asynccontextmanager
        async def lifespan(app: FastAPI):
            async with scheduler_lifespan(store, 60):
                yield
    """
    scheduler = setup_scheduler(store, interval_seconds)
    scheduler.start()
    logger.info("Background scheduler started")
    try:
        yield scheduler
    finally:
        if scheduler.running:
            scheduler.shutdown(wait=False)
            logger.info("Background scheduler shut down")
