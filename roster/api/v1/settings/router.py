from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from roster.auth.dependencies import get_current_user
from roster.auth.schemas import Principal
from roster.core.exceptions import ServiceError
from roster.db.session import get_db

from .schemas import ProfileResponse, ProfileUpdate
from . import service

router = APIRouter(prefix="/api/v1/settings", tags=["settings"])


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    try:
        return await service.get_profile(db, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.put("/profile", response_model=ProfileResponse)
async def update_profile(
    payload: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    try:
        return await service.update_profile(db, current_user, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
