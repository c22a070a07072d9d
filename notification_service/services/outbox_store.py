"""
Outbox Store
Persistence operations on outbox_messages used by producers and the outbox worker
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from notification_service.models.outbox_message import (
    OutboxMessage,
    STATUS_PENDING,
    STATUS_SENDING,
    STATUS_SENT,
)

ERROR_MAX_LENGTH = 500


class OutboxStore:
    """
    Single-row reads and writes on the outbox.

    Every mutation commits immediately; there are no multi-row transactions.
    """

    def __init__(self, db: Session):
        self.db = db

    def find_due_batch(self, limit: int, max_retries: int) -> List[OutboxMessage]:
        """Pending messages with retries left, oldest first."""
        return self.db.query(OutboxMessage).filter(
            OutboxMessage.status == STATUS_PENDING,
            OutboxMessage.retry_count < max_retries
        ).order_by(OutboxMessage.created_at.asc()).limit(limit).all()

    def claim(
        self,
        message_id: str,
        expected_retry_count: int,
        now: datetime,
        expected_status: str = STATUS_PENDING
    ) -> bool:
        """
        Compare-and-swap expected_status (normally Pending) -> Sending.

        UPDATE ... WHERE id=? AND status=? AND retry_count=?
        Returns False when another worker got there first.
        """
        updated = self.db.query(OutboxMessage).filter(
            OutboxMessage.id == message_id,
            OutboxMessage.status == expected_status,
            OutboxMessage.retry_count == expected_retry_count
        ).update(
            {"status": STATUS_SENDING, "updated_at": now},
            synchronize_session=False
        )
        self.db.commit()
        return updated == 1

    def mark_sent(self, message_id: str, now: datetime) -> None:
        self.db.query(OutboxMessage).filter(
            OutboxMessage.id == message_id
        ).update(
            {"status": STATUS_SENT, "sent_at": now, "error": None, "updated_at": now},
            synchronize_session=False
        )
        self.db.commit()

    def mark_retry_or_failed(
        self,
        message_id: str,
        retry_count: int,
        status: str,
        error: str,
        now: datetime
    ) -> None:
        self.db.query(OutboxMessage).filter(
            OutboxMessage.id == message_id
        ).update(
            {
                "status": status,
                "retry_count": retry_count,
                "error": (error or "")[:ERROR_MAX_LENGTH],
                "updated_at": now,
            },
            synchronize_session=False
        )
        self.db.commit()

    def find_existing(
        self,
        tenant_id: Optional[str],
        template_id: str,
        recipient: str,
        since: datetime
    ) -> Optional[OutboxMessage]:
        """Any message for the same tenant/template/recipient created at or after ``since``."""
        return self.db.query(OutboxMessage).filter(
            OutboxMessage.tenant_id == tenant_id,
            OutboxMessage.template_id == template_id,
            OutboxMessage.recipient == recipient,
            OutboxMessage.created_at >= since
        ).first()

    def insert(
        self,
        tenant_id: Optional[str],
        template_id: str,
        recipient: str,
        payload: Optional[Dict[str, Any]],
        now: datetime
    ) -> OutboxMessage:
        message = OutboxMessage(
            tenant_id=tenant_id,
            template_id=template_id,
            recipient=recipient,
            payload=payload,
            status=STATUS_PENDING,
            retry_count=0,
            created_at=now,
            updated_at=now,
        )
        self.db.add(message)
        self.db.commit()
        return message
