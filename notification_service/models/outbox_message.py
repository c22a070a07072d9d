"""
OutboxMessage Model
One row per intended notification delivery (transactional outbox pattern)
"""

import uuid

from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, ForeignKey, Index
from notification_service.database import Base
from notification_service.services.dates import utcnow

# Status values. Sent and Failed are terminal.
STATUS_PENDING = "Pending"
STATUS_SENDING = "Sending"
STATUS_SENT = "Sent"
STATUS_FAILED = "Failed"

OUTBOX_STATUSES = (STATUS_PENDING, STATUS_SENDING, STATUS_SENT, STATUS_FAILED)


class OutboxMessage(Base):
    """
    Pending outbound message consumed by the outbox worker.

    Created in Pending by producers (the reminder scheduler), mutated only by
    the outbox worker, never deleted. Gives at-least-once delivery: the row
    exists before any send is attempted.
    """
    __tablename__ = "outbox_messages"

    # Primary Key
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Delivery Target
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=True)
    # Platform-level messages have no tenant

    template_id = Column(String(255), nullable=False)
    # e.g., 'reminder.trial.expiry.d3'

    recipient = Column(String(320), nullable=False)

    payload = Column(JSON, nullable=True)
    # Opaque document handed to the transport

    # State Machine
    status = Column(String(20), nullable=False, default=STATUS_PENDING)
    retry_count = Column(Integer, nullable=False, default=0)
    error = Column(Text, nullable=True)
    # Last failure, truncated to 500 characters

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)
    sent_at = Column(DateTime, nullable=True)

    # Indexes for polling and per-tenant inspection
    __table_args__ = (
        Index('ix_outbox_messages_status_created_at', 'status', 'created_at'),
        Index('ix_outbox_messages_tenant_id_status', 'tenant_id', 'status'),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "template_id": self.template_id,
            "recipient": self.recipient,
            "payload": self.payload,
            "status": self.status,
            "retry_count": self.retry_count,
            "error": self.error,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
        }

    def __repr__(self):
        return f"<OutboxMessage(id={self.id}, template='{self.template_id}', status='{self.status}', retries={self.retry_count})>"
