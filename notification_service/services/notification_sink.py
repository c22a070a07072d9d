"""
Notification Sink
Write side of the in-app notification store
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from notification_service.models.notification import Notification


class NotificationSink:
    def __init__(self, db: Session):
        self.db = db

    def find_existing(
        self,
        tenant_id: Optional[str],
        notification_type: str,
        target_email: str,
        since: datetime,
        scope: str = "tenant"
    ) -> Optional[Notification]:
        return self.db.query(Notification).filter(
            Notification.tenant_id == tenant_id,
            Notification.scope == scope,
            Notification.type == notification_type,
            Notification.target_email == target_email,
            Notification.created_at >= since
        ).first()

    def insert(
        self,
        tenant_id: Optional[str],
        notification_type: str,
        title: str,
        body: str,
        severity: str,
        target_user_id: Optional[str],
        target_email: Optional[str],
        meta: Optional[Dict[str, Any]],
        now: datetime,
        scope: str = "tenant"
    ) -> Notification:
        notification = Notification(
            tenant_id=tenant_id,
            scope=scope,
            type=notification_type,
            title=title,
            body=body,
            severity=severity,
            target_user_id=target_user_id,
            target_email=target_email,
            meta=meta,
            created_at=now,
        )
        self.db.add(notification)
        self.db.commit()
        return notification
