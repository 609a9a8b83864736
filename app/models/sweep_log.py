"""
Sweep Log Model - Track expiry sweeper runs
"""
from sqlalchemy import Column, String, Integer
import enum

from app.core import Base
from .base import UUIDMixin, UTCDateTime, utcnow


class SweepStatus(str, enum.Enum):
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class SweepRun(Base, UUIDMixin):
    """Log of expiry sweeper runs"""
    __tablename__ = "sweep_run"

    started_at = Column(UTCDateTime, default=utcnow, nullable=False, index=True)
    completed_at = Column(UTCDateTime)
    status = Column(String(20), default=SweepStatus.RUNNING.value, nullable=False)

    expired_count = Column(Integer, default=0, nullable=False)

    # Error message if failed
    error_message = Column(String(500))
