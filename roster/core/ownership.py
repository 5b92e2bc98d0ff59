"""
Ownership policy for owned resources (courses and students).

Every authorization decision about who may read, change, delete, reassign or list an owned
resource is made here. Functions are pure: they look only at the principal and owner ids they
are given and never touch the database.

Rules:
1. read/update/delete: admins always; otherwise only the owner.
2. ownership transfer: a payload proposing a different owner needs an admin, even when the
   caller owns the resource.
3. listing by owner: admins may list anyone's resources; others only their own.
"""
import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from roster.auth.schemas import Principal
from roster.core.enums import DenyReason, Role
from roster.core.exceptions import ForbiddenError

logger = logging.getLogger(__name__)

DENY_MESSAGES = {
    DenyReason.NOT_OWNER: "You do not have permission to access this resource",
    DenyReason.OWNERSHIP_IMMUTABLE: "Ownership can only be changed by an admin",
    DenyReason.LISTING_NOT_PERMITTED: "You do not have permission to view resources owned by this user",
}


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: Optional[DenyReason] = None

    @classmethod
    def allow(cls) -> "AccessDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: DenyReason) -> "AccessDecision":
        return cls(allowed=False, reason=reason)

    def enforce(self, message: Optional[str] = None) -> None:
        """Raise ForbiddenError when the decision is a denial."""
        if self.allowed:
            return
        raise ForbiddenError(message or DENY_MESSAGES[self.reason], self.reason)


def authorize_access(principal: Principal, resource_owner: UUID) -> AccessDecision:
    if principal.role == Role.ADMIN:
        return AccessDecision.allow()
    if resource_owner == principal.id:
        return AccessDecision.allow()
    logger.info("Principal %s denied access to resource owned by %s", principal.id, resource_owner)
    return AccessDecision.deny(DenyReason.NOT_OWNER)


def authorize_ownership_change(
    principal: Principal,
    current_owner: UUID,
    proposed_owner: Optional[UUID],
) -> AccessDecision:
    if proposed_owner is None or proposed_owner == current_owner:
        return AccessDecision.allow()
    if principal.role == Role.ADMIN:
        return AccessDecision.allow()
    logger.info(
        "Principal %s denied ownership transfer from %s to %s",
        principal.id,
        current_owner,
        proposed_owner,
    )
    return AccessDecision.deny(DenyReason.OWNERSHIP_IMMUTABLE)


def authorize_owner_listing(principal: Principal, target_owner: UUID) -> AccessDecision:
    if principal.role == Role.ADMIN or target_owner == principal.id:
        return AccessDecision.allow()
    return AccessDecision.deny(DenyReason.LISTING_NOT_PERMITTED)


def authorize(
    principal: Principal,
    resource_owner: UUID,
    proposed_owner: Optional[UUID] = None,
) -> AccessDecision:
    """Combined check for a write: base access first, then the ownership-transfer rule."""
    decision = authorize_access(principal, resource_owner)
    if not decision.allowed:
        return decision
    return authorize_ownership_change(principal, resource_owner, proposed_owner)
