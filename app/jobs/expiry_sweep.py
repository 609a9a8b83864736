"""
Reservation Expiry Scheduler - periodic sweep of stale reservations
"""
import asyncio
from typing import Optional
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.core import settings
from app.services.expiry_service import ExpirySweeper

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "expire_reservations"

# Global scheduler instance
_scheduler = None


class ReservationExpiryScheduler:
    """
    Runs the expiry sweeper on an interval inside the web process
    """

    def __init__(self, interval_minutes: Optional[int] = None, session_factory=None):
        self.scheduler = AsyncIOScheduler()
        self.interval_minutes = interval_minutes or settings.EXPIRY_SWEEP_INTERVAL_MINUTES
        self.session_factory = session_factory
        self.is_running = False

    def schedule_sweep(self):
        """Register (or replace) the interval sweep job"""
        self.scheduler.add_job(
            func=self._run_sweep,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=SWEEP_JOB_ID,
            name="Expire inventory reservations",
            replace_existing=True,
            max_instances=1,  # Prevent overlapping sweeps
            coalesce=True,
        )
        logger.info(f"Scheduled reservation expiry sweep every {self.interval_minutes} minutes")

    def start(self):
        """Start the scheduler"""
        if not self.is_running:
            self.schedule_sweep()
            self.scheduler.start()
            self.is_running = True
            logger.info("Reservation expiry scheduler started")

    def stop(self):
        """Stop the scheduler"""
        if self.is_running:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("Reservation expiry scheduler stopped")

    def _run_sweep(self):
        """Execute one sweep; failures are logged by the sweeper and retried next tick"""
        run = ExpirySweeper.run(self.session_factory)
        if run.status != "success":
            logger.warning(f"Reservation sweep did not complete: {run.error_message}")
        return run


# ========== Global Functions ==========

def get_scheduler() -> "ReservationExpiryScheduler":
    """Get or create the global scheduler instance"""
    global _scheduler
    if _scheduler is None:
        _scheduler = ReservationExpiryScheduler()
    return _scheduler


def start_scheduler():
    """Start the global scheduler"""
    scheduler = get_scheduler()
    scheduler.start()


def stop_scheduler():
    """Stop the global scheduler"""
    global _scheduler
    if _scheduler:
        _scheduler.stop()
        _scheduler = None


# ========== CLI Commands ==========

if __name__ == "__main__":
    """
    Run scheduler standalone for testing:
    python -m app.jobs.expiry_sweep          # interval loop
    python -m app.jobs.expiry_sweep sweep    # one sweep and exit
    """
    import sys

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    if len(sys.argv) > 1 and sys.argv[1] == "sweep":
        run = ExpirySweeper.run()
        print(f"Sweep {run.status}: expired={run.expired_count}")
    else:
        print("Starting reservation expiry scheduler...")
        print("Press Ctrl+C to stop")

        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            start_scheduler()
            loop.run_forever()
        except KeyboardInterrupt:
            stop_scheduler()
            print("Scheduler stopped")
