"""
Uniqueness guard for tenant-scoped keys (course codes, student numbers).

The guard is an early, friendly rejection layer. The authoritative check is the composite
unique constraint on (tenant_id, key) in the database: two concurrent creates can both pass
the guard, and the loser then fails on flush/commit. Callers translate that IntegrityError
with `storage_conflict` so both paths surface as the same ConflictError.

The tenant scope is always passed explicitly. `tenant_id=None` means the acting principal
(or the record) has no tenant; the guard then falls back to a global check across all
tenants instead of skipping the check.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from roster.core.enums import EntityKind
from roster.core.exceptions import ConflictError, ValidationFailure
from roster.core.models import Course, Student

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScopedKey:
    model: Any
    field: str
    label: str
    max_length: int

    @property
    def column(self):
        return getattr(self.model, self.field)


SCOPED_KEYS = {
    EntityKind.COURSE: ScopedKey(Course, "code", "Course code", 50),
    EntityKind.STUDENT: ScopedKey(Student, "student_number", "Student number", 50),
}


@dataclass(frozen=True)
class KeyCheck:
    unique: bool
    conflicting_id: Optional[UUID] = None


def normalize_key(kind: EntityKind, raw: Any) -> str:
    """Strip a candidate key and reject blank or oversized input. Keys compare case-sensitively."""
    scoped = SCOPED_KEYS[kind]
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationFailure(f"{scoped.label} is required")
    key = raw.strip()
    if len(key) > scoped.max_length:
        raise ValidationFailure(f"{scoped.label} must be at most {scoped.max_length} characters")
    return key


def _validate_scope(tenant_id: Optional[UUID], exclude_id: Optional[UUID]) -> None:
    if tenant_id is not None and not isinstance(tenant_id, UUID):
        raise ValidationFailure("Invalid tenant scope")
    if exclude_id is not None and not isinstance(exclude_id, UUID):
        raise ValidationFailure("Invalid record id")


async def check_key_unique(
    db: AsyncSession,
    kind: EntityKind,
    key: str,
    tenant_id: Optional[UUID],
    exclude_id: Optional[UUID] = None,
) -> KeyCheck:
    _validate_scope(tenant_id, exclude_id)
    scoped = SCOPED_KEYS[kind]
    key = normalize_key(kind, key)

    stmt = select(scoped.model.id).where(scoped.column == key)
    if tenant_id is not None:
        stmt = stmt.where(scoped.model.tenant_id == tenant_id)
    else:
        # TODO: drop the global fallback once legacy users without a tenant are backfilled
        logger.warning("Unscoped uniqueness check for %s %r (no tenant)", kind.value, key)
    if exclude_id is not None:
        stmt = stmt.where(scoped.model.id != exclude_id)

    result = await db.execute(stmt.limit(1))
    conflicting_id = result.scalar_one_or_none()
    if conflicting_id is None:
        return KeyCheck(unique=True)
    return KeyCheck(unique=False, conflicting_id=conflicting_id)


def _conflict_message(kind: EntityKind, key: str, scoped: bool) -> str:
    label = SCOPED_KEYS[kind].label
    if scoped:
        return f"{label} '{key}' already exists for your institution"
    return f"{label} '{key}' already exists"


async def ensure_key_unique(
    db: AsyncSession,
    kind: EntityKind,
    key: str,
    tenant_id: Optional[UUID],
    exclude_id: Optional[UUID] = None,
) -> None:
    """Raise ConflictError if `key` is already taken in the given scope."""
    check = await check_key_unique(db, kind, key, tenant_id, exclude_id=exclude_id)
    if check.unique:
        return
    key = normalize_key(kind, key)
    raise ConflictError(
        _conflict_message(kind, key, tenant_id is not None),
        field=SCOPED_KEYS[kind].field,
        value=key,
        conflicting_id=check.conflicting_id,
        detected_by="guard",
    )


def is_unique_violation(exc: IntegrityError) -> bool:
    err_msg = (str(exc.orig) if getattr(exc, "orig", None) else str(exc)).lower()
    return "unique" in err_msg or "duplicate" in err_msg


def storage_conflict(kind: EntityKind, key: str, tenant_id: Optional[UUID]) -> ConflictError:
    """ConflictError for a unique-constraint violation that slipped past the guard."""
    logger.warning("Storage-level unique violation for %s %r (tenant=%s)", kind.value, key, tenant_id)
    return ConflictError(
        _conflict_message(kind, key, tenant_id is not None),
        field=SCOPED_KEYS[kind].field,
        value=key,
        detected_by="storage",
    )
