"""
Tenant Directory Models
Read-only from the notification jobs' point of view
"""

import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from notification_service.database import Base
from notification_service.services.dates import utcnow

TENANT_STATUS_ACTIVE = "Active"
TENANT_STATUS_CANCELLED = "Cancelled"

USER_STATUS_INVITED = "Invited"
USER_STATUS_ACTIVE = "Active"

ROLE_OWNER = "Owner"


class Tenant(Base):
    """Customer organisation. ``created_at`` is day zero of the trial."""
    __tablename__ = "tenants"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    domain = Column(String(255), nullable=True)
    status = Column(String(50), nullable=False, default=TENANT_STATUS_ACTIVE)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    users = relationship("TenantUser", back_populates="tenant")

    def __repr__(self):
        return f"<Tenant(id={self.id}, name='{self.name}', status='{self.status}')>"


class TenantUser(Base):
    """User account inside a tenant."""
    __tablename__ = "tenant_users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    email = Column(String(320), nullable=False)
    name = Column(String(255), nullable=True)
    role = Column(String(50), nullable=True)
    status = Column(String(50), nullable=False, default=USER_STATUS_ACTIVE)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    tenant = relationship("Tenant", back_populates="users")

    __table_args__ = (
        Index('ix_tenant_users_tenant_id_role', 'tenant_id', 'role'),
    )

    def __repr__(self):
        return f"<TenantUser(id={self.id}, email='{self.email}', role='{self.role}')>"
