# Jobs Package - Scheduled background tasks
from .expiry_sweep import ReservationExpiryScheduler, get_scheduler, start_scheduler, stop_scheduler

__all__ = ["ReservationExpiryScheduler", "get_scheduler", "start_scheduler", "stop_scheduler"]
