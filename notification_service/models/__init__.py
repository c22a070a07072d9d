"""
Database Models
"""

from notification_service.models.outbox_message import OutboxMessage
from notification_service.models.reminder_schedule import ReminderSchedule
from notification_service.models.notification import Notification
from notification_service.models.platform_setting import PlatformSetting
from notification_service.models.tenant import Tenant, TenantUser

__all__ = [
    "OutboxMessage",
    "ReminderSchedule",
    "Notification",
    "PlatformSetting",
    "Tenant",
    "TenantUser",
]
