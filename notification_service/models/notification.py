"""
Notification Model
In-app notifications read by the UI
"""

import uuid

from sqlalchemy import Column, String, DateTime, Text, JSON, ForeignKey, Index
from notification_service.database import Base
from notification_service.services.dates import utcnow


class Notification(Base):
    """
    In-app notification. The reminder scheduler only writes these;
    listing and read-state live with the UI.
    """
    __tablename__ = "notifications"

    # Primary Key
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=True)
    scope = Column(String(50), nullable=False, default="tenant")
    type = Column(String(255), nullable=False)
    # e.g., 'trial.expiry.d3'

    # Content
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)
    severity = Column(String(20), nullable=False, default="info")
    # 'info', 'warning', 'critical'

    # Target
    target_user_id = Column(String(36), ForeignKey("tenant_users.id", ondelete="SET NULL"), nullable=True)
    target_email = Column(String(320), nullable=True)

    meta = Column(JSON, nullable=True)

    # Timestamps
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index('ix_notifications_scope_created_at', 'scope', 'created_at'),
        Index('ix_notifications_tenant_id_created_at', 'tenant_id', 'created_at'),
        Index('ix_notifications_target_email_created_at', 'target_email', 'created_at'),
    )

    def __repr__(self):
        return f"<Notification(id={self.id}, type='{self.type}', target='{self.target_email}')>"
