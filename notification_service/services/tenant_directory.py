"""
Tenant Directory
Read-only snapshots of billable tenants and their owners
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from notification_service.models.tenant import (
    Tenant,
    TenantUser,
    TENANT_STATUS_CANCELLED,
    USER_STATUS_ACTIVE,
    USER_STATUS_INVITED,
    ROLE_OWNER,
)


@dataclass
class TenantOwner:
    id: str
    email: str


@dataclass
class TenantSnapshot:
    id: str
    name: str
    domain: Optional[str]
    status: str
    created_at: datetime
    owners: List[TenantOwner] = field(default_factory=list)


class TenantDirectory:
    def __init__(self, db: Session):
        self.db = db

    def list_active_tenants_with_owners(self) -> List[TenantSnapshot]:
        """Every tenant not Cancelled, with its Invited/Active owners (possibly none)."""
        tenants = self.db.query(Tenant).filter(
            Tenant.status != TENANT_STATUS_CANCELLED
        ).order_by(Tenant.created_at.asc()).all()

        if not tenants:
            return []

        owners = self.db.query(TenantUser).filter(
            TenantUser.tenant_id.in_([t.id for t in tenants]),
            TenantUser.role == ROLE_OWNER,
            TenantUser.status.in_([USER_STATUS_INVITED, USER_STATUS_ACTIVE])
        ).order_by(TenantUser.created_at.asc()).all()

        owners_by_tenant = {}
        for owner in owners:
            owners_by_tenant.setdefault(owner.tenant_id, []).append(
                TenantOwner(id=owner.id, email=owner.email)
            )

        return [
            TenantSnapshot(
                id=tenant.id,
                name=tenant.name,
                domain=tenant.domain,
                status=tenant.status,
                created_at=tenant.created_at,
                owners=owners_by_tenant.get(tenant.id, []),
            )
            for tenant in tenants
        ]
