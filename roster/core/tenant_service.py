"""
Tenant directory: resolves principals to their owning tenant.

- A principal's tenant is optional; None means a legacy/untenanted account and callers must
  pass it on explicitly (the uniqueness guard treats it as the unscoped, global check).
- Tenants are referenced here, never created or deleted.
"""
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from roster.auth.models import User
from roster.core.exceptions import NotFoundError
from roster.core.models import Tenant


async def get_tenant(db: AsyncSession, tenant_id: UUID) -> Optional[Tenant]:
    return await db.get(Tenant, tenant_id)


async def get_tenant_or_404(db: AsyncSession, tenant_id: UUID) -> Tenant:
    tenant = await get_tenant(db, tenant_id)
    if tenant is None:
        raise NotFoundError("Tenant not found", "tenant", [tenant_id])
    return tenant


async def list_tenants(db: AsyncSession) -> List[Tenant]:
    result = await db.execute(select(Tenant).order_by(Tenant.name))
    return list(result.scalars().all())


async def get_principal_or_404(db: AsyncSession, principal_id: UUID) -> User:
    user = await db.get(User, principal_id)
    if user is None:
        raise NotFoundError("User not found", "user", [principal_id])
    return user


async def resolve_principal_tenant(db: AsyncSession, principal_id: UUID) -> Optional[UUID]:
    """Return the tenant the principal currently belongs to, or None when untenanted."""
    result = await db.execute(select(User.id, User.tenant_id).where(User.id == principal_id))
    row = result.one_or_none()
    if row is None:
        raise NotFoundError("User not found", "user", [principal_id])
    return row.tenant_id
