"""
Reminder Schedule Store
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from notification_service.models.reminder_schedule import ReminderSchedule, SCOPE_PLATFORM


class ReminderScheduleStore:
    def __init__(self, db: Session):
        self.db = db

    def list_active(
        self,
        event_types: Iterable[str],
        due_at: Optional[datetime] = None,
        scope: str = SCOPE_PLATFORM
    ) -> List[ReminderSchedule]:
        """
        Active schedules for the given event types.

        With ``due_at``, only schedules never stamped or whose next trigger
        is at or before that time.
        """
        query = self.db.query(ReminderSchedule).filter(
            ReminderSchedule.scope == scope,
            ReminderSchedule.is_active.is_(True),
            ReminderSchedule.event_type.in_(list(event_types))
        )
        if due_at is not None:
            query = query.filter(or_(
                ReminderSchedule.next_trigger_at.is_(None),
                ReminderSchedule.next_trigger_at <= due_at
            ))
        return query.order_by(
            ReminderSchedule.event_type.asc(),
            ReminderSchedule.trigger_offset_days.desc()
        ).all()

    def insert_many(self, schedules: List[Dict[str, Any]]) -> int:
        if not schedules:
            return 0
        self.db.add_all([ReminderSchedule(**values) for values in schedules])
        self.db.commit()
        return len(schedules)

    def update(self, schedule_id: str, fields: Dict[str, Any]) -> None:
        self.db.query(ReminderSchedule).filter(
            ReminderSchedule.id == schedule_id
        ).update(fields, synchronize_session=False)
        self.db.commit()
