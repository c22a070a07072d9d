"""
ReminderSchedule Model
Active (event type, offset) reminder definitions with their trigger stamps
"""

import uuid

from sqlalchemy import Column, Integer, String, DateTime, Boolean, Index
from notification_service.database import Base
from notification_service.services.dates import utcnow

EVENT_TRIAL_EXPIRY = "trial.expiry"
EVENT_SUBSCRIPTION_RENEWAL = "subscription.renewal"

REMINDER_EVENT_TYPES = (EVENT_TRIAL_EXPIRY, EVENT_SUBSCRIPTION_RENEWAL)

SCOPE_PLATFORM = "platform"


class ReminderSchedule(Base):
    """
    One row per (scope, event_type, trigger_offset_days).

    Rows are created by schedule reconciliation and stamped by every
    evaluation pass. Never deleted or deactivated by the scheduler.
    """
    __tablename__ = "reminder_schedules"

    # Primary Key
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    scope = Column(String(50), nullable=False, default=SCOPE_PLATFORM)
    event_type = Column(String(100), nullable=False)
    trigger_offset_days = Column(Integer, nullable=True)
    # Days before (or at) the event date

    cadence = Column(String(50), nullable=False, default="daily")
    # Informational only: evaluation runs on the reminder interval timer

    is_active = Column(Boolean, nullable=False, default=True)

    # Trigger Stamps
    last_triggered_at = Column(DateTime, nullable=True)
    next_trigger_at = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('ix_reminder_schedules_scope_event_active', 'scope', 'event_type', 'is_active'),
    )

    def __repr__(self):
        return f"<ReminderSchedule(id={self.id}, event='{self.event_type}', offset={self.trigger_offset_days}, active={self.is_active})>"
