"""
Audit Log Model
"""
from sqlalchemy import Column, String, JSON
from app.core import Base
from .base import UUIDMixin, UTCDateTime, utcnow

class AuditLog(Base, UUIDMixin):
    """Audit Log for tracking changes"""
    __tablename__ = "audit_log"

    table_name = Column(String(100), nullable=False, index=True)
    record_id = Column(String(50), nullable=False, index=True)

    action = Column(String(20), nullable=False)  # INSERT, STATUS_CHANGE, ADJUST

    performed_by = Column(String(100))
    performed_at = Column(UTCDateTime, default=utcnow, index=True)

    # Before/After data
    before_data = Column(JSON)
    after_data = Column(JSON)
