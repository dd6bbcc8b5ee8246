"""
Scheduled maintenance tasks for MidCar.

Uses APScheduler BackgroundScheduler to run periodic jobs.
Only one worker starts the scheduler (file-lock guard) to avoid
duplicate execution and wasted DB connections.
"""

import os
import atexit
import fcntl
import logging
from apscheduler.schedulers.background import BackgroundScheduler

logger = logging.getLogger('midcar.tasks.scheduler')

scheduler = BackgroundScheduler(daemon=True)
_lock_file = None


def refresh_insurance_states():
    """Mark active policies past their expiry date as vencida."""
    try:
        from insurance.repositories import PolicyRepository
        count = PolicyRepository().refresh_states()
        if count > 0:
            logger.info(f"Insurance refresh: {count} policies marked vencida")
    except Exception as e:
        logger.error(f"Insurance state refresh failed: {e}")


def _acquire_scheduler_lock():
    """Try to acquire an exclusive file lock. Returns True if this process won."""
    global _lock_file
    try:
        lock_path = os.path.join(os.path.dirname(__file__), '..', '.scheduler.lock')
        _lock_file = open(lock_path, 'w')
        fcntl.flock(_lock_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        _lock_file.write(str(os.getpid()))
        _lock_file.flush()
        return True
    except (IOError, OSError):
        if _lock_file:
            _lock_file.close()
            _lock_file = None
        return False


def start_scheduler():
    """Start the background scheduler.

    Uses a file lock so only one gunicorn worker runs the scheduler.
    Other workers skip silently.
    """
    if scheduler.running:
        return

    if not _acquire_scheduler_lock():
        logger.debug(f"Scheduler lock held by another worker, skipping (pid={os.getpid()})")
        return

    scheduler.add_job(
        refresh_insurance_states,
        'cron',
        hour=0,
        minute=15,
        id='refresh_insurance_states',
        replace_existing=True,
        misfire_grace_time=300,
        coalesce=True,
    )

    scheduler.start()
    atexit.register(lambda: scheduler.shutdown(wait=False))
    logger.info(f"Background scheduler started (pid={os.getpid()})")


def stop_scheduler():
    """Stop the background scheduler."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Background scheduler stopped")
