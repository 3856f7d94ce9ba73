# salon_booking/scheduler.py
import logging
from datetime import datetime
from typing import Callable, List, Optional

from apscheduler.schedulers.background import BackgroundScheduler

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """
    Runs follow-up work off the request path:
    - Appointment confirmation emails once a booking has committed

    Jobs are one-off and run in the scheduler's thread pool as soon as
    possible. Failing to enqueue is logged and never reaches the caller.
    """

    def __init__(self, scheduler: Optional[BackgroundScheduler] = None):
        self.scheduler = scheduler or BackgroundScheduler(
            job_defaults={"coalesce": False, "misfire_grace_time": None}
        )
        self.is_running = False

    def start(self):
        """Start the dispatcher"""
        if self.is_running:
            logger.warning("Notification dispatcher is already running")
            return

        self.scheduler.start()
        self.is_running = True
        logger.info("Notification dispatcher started successfully")

    def shutdown(self, wait: bool = True):
        """Shutdown the dispatcher, letting queued jobs finish when ``wait``"""
        if not self.is_running:
            return

        self.scheduler.shutdown(wait=wait)
        self.is_running = False
        logger.info("Notification dispatcher shut down")

    def dispatch(self, func: Callable, *args, name: Optional[str] = None) -> bool:
        """Queue ``func(*args)`` to run once, right away. Returns False if it could not be queued."""
        try:
            self.scheduler.add_job(
                func,
                trigger="date",
                run_date=datetime.now(self.scheduler.timezone),
                args=list(args),
                name=name or getattr(func, "__name__", "notification"),
            )
            return True
        except Exception as e:
            logger.error(f"Could not dispatch {name or func}: {e}")
            return False

    def pending_notifications(self) -> List[str]:
        """Names of dispatched notifications that have not run yet, oldest first."""
        return [job.name for job in self.scheduler.get_jobs()]
