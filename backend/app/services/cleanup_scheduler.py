"""
Cleanup Scheduler Service

Periodically evicts abandoned upload sessions and removes orphaned slicing
working directories. Uses APScheduler for the recurring job.

Signed artifacts in the upload directory are never swept: download links
are permanent.
"""

import logging
import shutil
from datetime import datetime, timedelta
from pathlib import Path

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.config import settings
from .service_factory import get_orchestrator, get_upload_sessions

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()

WORKDIR_PREFIX = "slice-"

JOB_ID = "cleanup_stale_state"


async def cleanup_stale_state() -> dict:
    """
    Evict idle sessions and delete orphaned working directories.

    Sessions still accumulating with no chunk for SESSION_TTL_HOURS are
    dropped. ``slice-*`` directories under SLICE_WORKDIR whose modification time
    exceeds the same TTL are removed. Nothing outside SLICE_WORKDIR is touched.

    Returns:
        dict: Summary of cleanup operation with counts
    """
    ttl = timedelta(hours=settings.SESSION_TTL_HOURS)
    cutoff = datetime.now() - ttl
    cleanup_summary = {
        "sessions_evicted": 0,
        "directories_scanned": 0,
        "workdirs_deleted": 0,
        "errors": 0,
    }

    for manager in (get_upload_sessions(), get_orchestrator().sessions):
        cleanup_summary["sessions_evicted"] += len(manager.evict_idle(ttl))

    dir_path = Path(settings.SLICE_WORKDIR)

    if not dir_path.exists():
        logger.debug(f"Working directory root does not exist: {dir_path}")
    else:
        cleanup_summary["directories_scanned"] += 1

        try:
            for workdir in dir_path.iterdir():
                if not workdir.is_dir() or not workdir.name.startswith(WORKDIR_PREFIX):
                    continue

                try:
                    folder_mtime = datetime.fromtimestamp(workdir.stat().st_mtime)

                    if folder_mtime < cutoff:
                        shutil.rmtree(workdir)
                        cleanup_summary["workdirs_deleted"] += 1
                        logger.info(f"Cleaned up orphaned working directory: {workdir}")

                except OSError as e:
                    cleanup_summary["errors"] += 1
                    logger.error(f"Failed to clean up folder {workdir}: {e}")

        except OSError as e:
            cleanup_summary["errors"] += 1
            logger.error(f"Failed to scan directory {dir_path}: {e}")

    logger.info(
        f"Cleanup completed: {cleanup_summary['sessions_evicted']} sessions evicted, "
        f"{cleanup_summary['workdirs_deleted']} working directories deleted, "
        f"{cleanup_summary['errors']} errors"
    )

    return cleanup_summary


def start_cleanup_scheduler():
    """
    Start the cleanup scheduler.

    Safe to call multiple times - will not add duplicate jobs.
    """
    if scheduler.running:
        logger.debug("Scheduler already running")
        return

    if not scheduler.get_job(JOB_ID):
        scheduler.add_job(
            cleanup_stale_state,
            "interval",
            hours=settings.CLEANUP_INTERVAL_HOURS,
            id=JOB_ID,
            name="Evict idle sessions and orphaned working directories",
            replace_existing=True,
        )
        logger.info(
            f"Scheduled cleanup job: every {settings.CLEANUP_INTERVAL_HOURS} hour(s), "
            f"TTL: {settings.SESSION_TTL_HOURS} hours"
        )

    scheduler.start()
    logger.info("Cleanup scheduler started")


def stop_cleanup_scheduler():
    """Stop the cleanup scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Cleanup scheduler stopped")


def get_scheduler_status() -> dict:
    """
    Get current scheduler status for health checks.

    Returns:
        dict: Scheduler status including running state and job info
    """
    job = scheduler.get_job(JOB_ID)
    return {
        "running": scheduler.running,
        "job_scheduled": job is not None,
        "next_run": str(job.next_run_time) if job else None,
        "interval_hours": settings.CLEANUP_INTERVAL_HOURS,
        "ttl_hours": settings.SESSION_TTL_HOURS,
    }
