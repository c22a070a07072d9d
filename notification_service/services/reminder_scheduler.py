"""
Reminder Scheduler

Keeps platform reminder schedules in line with policy and emits lifecycle
reminders (trial expiry, subscription renewal) for every active tenant.

Idempotency: before writing, each (tenant, owner, reminder) is checked for a
notification / outbox row created since the start of today. A second pass on
the same day therefore writes nothing new.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional

import structlog
from sqlalchemy.orm import Session, sessionmaker

from notification_service.models.reminder_schedule import (
    EVENT_TRIAL_EXPIRY,
    REMINDER_EVENT_TYPES,
    SCOPE_PLATFORM,
)
from notification_service.services.dates import (
    add_days,
    diff_in_days,
    next_monthly_date,
    start_of_day,
    utcnow,
)
from notification_service.services.notification_sink import NotificationSink
from notification_service.services.outbox_store import OutboxStore
from notification_service.services.policy import (
    CATEGORY_RENEWAL_REMINDER,
    CATEGORY_TRIAL_MILESTONE,
    CHANNEL_EMAIL,
    CHANNEL_IN_APP,
    NotificationPolicy,
    PolicyResolver,
)
from notification_service.services.reminder_store import ReminderScheduleStore
from notification_service.services.tenant_directory import TenantDirectory, TenantOwner

logger = structlog.get_logger(__name__)


@dataclass
class ReminderContext:
    tenant_id: str
    tenant_name: str
    domain: Optional[str]
    event_type: str
    offset_days: int
    due_date: datetime

    @property
    def notification_type(self) -> str:
        return f"{self.event_type}.d{self.offset_days}"

    @property
    def template_id(self) -> str:
        return f"reminder.{self.event_type}.d{self.offset_days}"


@dataclass
class ReminderCopy:
    title: str
    body: str
    severity: str


def format_due_date(value: datetime) -> str:
    """Human-readable date, e.g. 'Mon Jan 15 2024'."""
    return value.strftime("%a %b %d %Y")


def iso_utc(value: datetime) -> str:
    return f"{value.isoformat()}Z"


def build_reminder_copy(context: ReminderContext) -> ReminderCopy:
    due = format_due_date(context.due_date)

    if context.event_type == EVENT_TRIAL_EXPIRY:
        if context.offset_days > 1:
            return ReminderCopy(
                title=f"Trial ends in {context.offset_days} days",
                body=f"{context.tenant_name} trial ends on {due}. Review plan and billing before expiration.",
                severity="warning",
            )
        return ReminderCopy(
            title="Trial ends tomorrow",
            body=f"{context.tenant_name} trial ends on {due}. Action is required to avoid interruption.",
            severity="critical",
        )

    if context.offset_days > 1:
        return ReminderCopy(
            title=f"Renewal due in {context.offset_days} days",
            body=f"{context.tenant_name} next subscription renewal is {due}.",
            severity="info",
        )
    return ReminderCopy(
        title="Renewal due tomorrow",
        body=f"{context.tenant_name} subscription renews on {due}.",
        severity="warning",
    )


class ReminderScheduler:
    """
    Policy-driven reminder generation.

    Assumes a single active scheduler; concurrent instances are tolerated
    through the per-day existence checks, not prevented.
    """

    def __init__(self, session_factory: sessionmaker, clock: Callable[[], datetime] = utcnow):
        self.session_factory = session_factory
        self.clock = clock
        self.logger = logger.bind(job="reminder_worker")

    def reconcile_schedules(self) -> int:
        """
        Create missing (event_type, offset) schedules for every policy offset.

        Existing schedules are never deactivated, even when policy drops
        their offset.

        Returns:
            Number of schedules created
        """
        session = self.session_factory()
        try:
            resolver = PolicyResolver(session)
            offsets = resolver.reminder_offsets()
            if not offsets:
                return 0

            store = ReminderScheduleStore(session)
            existing = store.list_active(REMINDER_EVENT_TYPES)
            existing_keys = {
                (schedule.event_type, schedule.trigger_offset_days)
                for schedule in existing
                if schedule.trigger_offset_days is not None
            }

            to_create = [
                {
                    "scope": SCOPE_PLATFORM,
                    "event_type": event_type,
                    "cadence": "daily",
                    "trigger_offset_days": offset,
                    "is_active": True,
                }
                for event_type in REMINDER_EVENT_TYPES
                for offset in offsets
                if (event_type, offset) not in existing_keys
            ]

            created = store.insert_many(to_create)
            if created:
                self.logger.info(
                    "reminder_schedules_created",
                    created=created,
                    schedules=[f"{s['event_type']}:{s['trigger_offset_days']}" for s in to_create]
                )
            return created

        finally:
            session.close()

    def evaluate_due_reminders(self) -> int:
        """
        Fire every reminder due today.

        Returns:
            Number of notifications and outbox messages created (for logging)
        """
        now = self.clock()
        today = start_of_day(now)
        next_day = today + timedelta(days=1)
        triggered = 0

        session = self.session_factory()
        try:
            resolver = PolicyResolver(session)
            notification_policy = resolver.notification_policy()
            billing_policy = resolver.billing_policy()

            schedule_store = ReminderScheduleStore(session)
            schedules = schedule_store.list_active(REMINDER_EVENT_TYPES, due_at=now)
            tenants = TenantDirectory(session).list_active_tenants_with_owners()

            if not schedules or not tenants:
                return 0

            trial_days = billing_policy.default_trial_days

            for schedule in schedules:
                # Plain values: commits below expire ORM state
                schedule_id = schedule.id
                event_type = schedule.event_type
                last_triggered_at = schedule.last_triggered_at
                offset_days = schedule.trigger_offset_days or 0
                triggered_before_schedule = triggered

                for tenant in tenants:
                    if not tenant.owners:
                        continue

                    trial_ends_at = add_days(tenant.created_at, trial_days)

                    if event_type == EVENT_TRIAL_EXPIRY:
                        if diff_in_days(trial_ends_at, today) != offset_days:
                            continue
                        due_date = trial_ends_at
                        category = CATEGORY_TRIAL_MILESTONE
                    else:
                        if trial_ends_at > today:
                            continue
                        due_date = next_monthly_date(trial_ends_at, today)
                        if diff_in_days(due_date, today) != offset_days:
                            continue
                        category = CATEGORY_RENEWAL_REMINDER

                    context = ReminderContext(
                        tenant_id=tenant.id,
                        tenant_name=tenant.name,
                        domain=tenant.domain,
                        event_type=event_type,
                        offset_days=offset_days,
                        due_date=due_date,
                    )
                    triggered += self.emit_reminder(session, context, tenant.owners, notification_policy, category)

                schedule_store.update(schedule_id, {
                    "last_triggered_at": now if triggered > triggered_before_schedule else last_triggered_at,
                    "next_trigger_at": next_day,
                    "updated_at": now,
                })

        except Exception as e:
            session.rollback()
            self.logger.error("reminder_evaluation_failed", error=str(e), triggered=triggered, exc_info=True)

        finally:
            session.close()

        return triggered

    def emit_reminder(
        self,
        session: Session,
        context: ReminderContext,
        owners: List[TenantOwner],
        policy: NotificationPolicy,
        category: str
    ) -> int:
        """
        Write the in-app notification and/or outbox email for each owner,
        skipping any already written today.

        Returns:
            Number of rows created
        """
        in_app_enabled = policy.is_channel_enabled(category, CHANNEL_IN_APP)
        email_enabled = policy.is_channel_enabled(category, CHANNEL_EMAIL)
        if not in_app_enabled and not email_enabled:
            return 0

        now = self.clock()
        day_start = start_of_day(now)
        copy = build_reminder_copy(context)
        sink = NotificationSink(session)
        outbox = OutboxStore(session)
        created = 0

        log = self.logger.bind(
            tenant_id=context.tenant_id,
            reminder_type=context.notification_type
        )

        for owner in owners:
            email = (owner.email or "").strip().lower()
            if not email:
                continue

            if in_app_enabled:
                existing = sink.find_existing(context.tenant_id, context.notification_type, email, day_start)
                if existing is None:
                    sink.insert(
                        tenant_id=context.tenant_id,
                        notification_type=context.notification_type,
                        title=copy.title,
                        body=copy.body,
                        severity=copy.severity,
                        target_user_id=owner.id,
                        target_email=email,
                        meta={
                            "tenantId": context.tenant_id,
                            "dueDate": iso_utc(context.due_date),
                            "domain": context.domain,
                        },
                        now=now,
                    )
                    created += 1
                    log.info("reminder_notification_created", target_email=email)

            if email_enabled:
                existing = outbox.find_existing(context.tenant_id, context.template_id, email, day_start)
                if existing is None:
                    outbox.insert(
                        tenant_id=context.tenant_id,
                        template_id=context.template_id,
                        recipient=email,
                        payload={
                            "tenantId": context.tenant_id,
                            "tenantName": context.tenant_name,
                            "domain": context.domain,
                            "dueDate": iso_utc(context.due_date),
                            "offsetDays": context.offset_days,
                            "eventType": context.event_type,
                            "title": copy.title,
                            "body": copy.body,
                        },
                        now=now,
                    )
                    created += 1
                    log.info("reminder_email_queued", recipient=email, template_id=context.template_id)

        return created
