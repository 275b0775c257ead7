# taskboard/scheduler.py
"""
Process-wide BackgroundScheduler. Each signed-in session adds its own
refresh job to it and removes that job at logout or once the session goes idle.
"""
import logging
import threading

from apscheduler.schedulers.background import BackgroundScheduler

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_scheduler = None


def get_scheduler() -> BackgroundScheduler:
    """Shared scheduler, started on first use"""
    global _scheduler
    with _lock:
        if _scheduler is None or not _scheduler.running:
            _scheduler = BackgroundScheduler(daemon=True)
            _scheduler.start()
            logger.info("background scheduler started")
        return _scheduler


def shutdown_scheduler(wait: bool = False) -> None:
    global _scheduler
    with _lock:
        if _scheduler is not None and _scheduler.running:
            _scheduler.shutdown(wait=wait)
            logger.info("background scheduler stopped")
        _scheduler = None
