from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from roster.auth.dependencies import get_current_user
from roster.auth.schemas import Principal
from roster.core import tenant_service
from roster.core.exceptions import ServiceError
from roster.db.session import get_db

from .schemas import TenantResponse

router = APIRouter(prefix="/api/v1/tenants", tags=["tenants"])


@router.get("", response_model=List[TenantResponse])
async def list_tenants(
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    """Institutions a principal can be affiliated with (e.g. for the profile form)."""
    tenants = await tenant_service.list_tenants(db)
    return [TenantResponse.model_validate(t) for t in tenants]


@router.get("/{tenant_id}", response_model=TenantResponse)
async def get_tenant(
    tenant_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    try:
        tenant = await tenant_service.get_tenant_or_404(db, tenant_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return TenantResponse.model_validate(tenant)
