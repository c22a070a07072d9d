"""
PlatformSetting Model
Generic key/value settings store holding JSON policy documents
"""

import uuid

from sqlalchemy import Column, String, DateTime, JSON
from notification_service.database import Base
from notification_service.services.dates import utcnow


class PlatformSetting(Base):
    """
    Named JSON document, e.g. 'notification_policy' or 'billing_policy'.
    """
    __tablename__ = "platform_settings"

    # Primary Key
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    key = Column(String(255), unique=True, nullable=False, index=True)
    value = Column(JSON, nullable=True)
    updated_by_email = Column(String(320), nullable=True)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<PlatformSetting(key='{self.key}')>"
