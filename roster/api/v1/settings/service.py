import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from roster.auth.models import User
from roster.auth.schemas import Principal
from roster.core import tenant_service
from roster.core.exceptions import ConflictError

from .schemas import ProfileResponse, ProfileUpdate

logger = logging.getLogger(__name__)


async def _to_response(db: AsyncSession, user: User) -> ProfileResponse:
    tenant_name: Optional[str] = None
    if user.tenant_id is not None:
        tenant = await tenant_service.get_tenant(db, user.tenant_id)
        tenant_name = tenant.name if tenant else None
    return ProfileResponse(
        id=user.id,
        full_name=user.full_name,
        email=user.email,
        role=user.role,
        tenant_id=user.tenant_id,
        tenant_name=tenant_name,
        created_at=user.created_at,
    )


def _email_conflict(email: str) -> ConflictError:
    return ConflictError("Email already registered", field="email", value=email)


async def get_profile(db: AsyncSession, principal: Principal) -> ProfileResponse:
    user = await tenant_service.get_principal_or_404(db, principal.id)
    return await _to_response(db, user)


async def update_profile(
    db: AsyncSession,
    principal: Principal,
    payload: ProfileUpdate,
) -> ProfileResponse:
    """
    Update the caller's own profile. Reassigning the tenant changes the scope used for
    courses and students the caller creates from now on; existing records keep theirs.
    """
    user = await tenant_service.get_principal_or_404(db, principal.id)

    email = payload.email.lower() if payload.email is not None else None
    if email is not None and email != user.email:
        result = await db.execute(select(User.id).where(User.email == email, User.id != user.id))
        if result.scalar_one_or_none() is not None:
            raise _email_conflict(email)
    if payload.tenant_id is not None:
        await tenant_service.get_tenant_or_404(db, payload.tenant_id)

    if payload.full_name is not None:
        user.full_name = payload.full_name.strip()
    if email is not None:
        user.email = email
    if payload.tenant_id is not None and payload.tenant_id != user.tenant_id:
        logger.info("User %s moved from tenant %s to %s", user.id, user.tenant_id, payload.tenant_id)
        user.tenant_id = payload.tenant_id
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise _email_conflict(email or user.email) from e
    await db.refresh(user)
    return await _to_response(db, user)
