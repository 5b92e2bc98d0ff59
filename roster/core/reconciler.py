"""
Student–course enrollment reconciliation.

The link table is symmetric; every operation is anchored on one side (a course operating on
many students, or a student operating on many courses) and behaves identically from either side.

All three modes validate before they mutate: the anchor must exist and every referenced id on
the other side must exist, otherwise NotFoundError lists all missing ids and nothing is written.
The anchor row is read FOR UPDATE so the membership snapshot and the writes that follow form one
unit on backends with row locks. A concurrent write anchored on the other side is not covered by
that lock; the link table's keys reject it at flush and the calling service re-runs the operation
once against fresh state.

Functions flush but never commit; the calling service owns the transaction.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Set
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from roster.core.enums import EntityKind, ReconcileMode
from roster.core.exceptions import ConflictError, NotFoundError, ValidationFailure
from roster.core.models import Course, Enrollment, Student

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinkSide:
    anchor_model: Any
    anchor_field: str
    other_model: Any
    other_field: str
    other_kind: EntityKind

    @property
    def anchor_column(self):
        return getattr(Enrollment, self.anchor_field)

    @property
    def other_column(self):
        return getattr(Enrollment, self.other_field)


LINK_SIDES = {
    EntityKind.COURSE: LinkSide(Course, "course_id", Student, "student_id", EntityKind.STUDENT),
    EntityKind.STUDENT: LinkSide(Student, "student_id", Course, "course_id", EntityKind.COURSE),
}


@dataclass
class ReconcileResult:
    """Ids linked to the anchor after the operation, plus what changed."""

    linked: Set[UUID]
    added: Set[UUID] = field(default_factory=set)
    removed: Set[UUID] = field(default_factory=set)


def _dedupe(other_ids: Iterable[Any]) -> List[UUID]:
    ids: List[UUID] = []
    seen: Set[UUID] = set()
    for other_id in other_ids or []:
        if not isinstance(other_id, UUID):
            raise ValidationFailure(f"Invalid id: {other_id!r}")
        if other_id not in seen:
            seen.add(other_id)
            ids.append(other_id)
    return ids


async def _lock_anchor(db: AsyncSession, anchor_kind: EntityKind, anchor_id: UUID) -> None:
    model = LINK_SIDES[anchor_kind].anchor_model
    result = await db.execute(select(model.id).where(model.id == anchor_id).with_for_update())
    if result.scalar_one_or_none() is None:
        raise NotFoundError(f"{anchor_kind.value.capitalize()} not found", anchor_kind.value, [anchor_id])


async def find_missing(db: AsyncSession, kind: EntityKind, ids: List[UUID]) -> List[UUID]:
    """Return the ids (in input order) that have no row of the given kind."""
    if not ids:
        return []
    model = Course if kind == EntityKind.COURSE else Student
    result = await db.execute(select(model.id).where(model.id.in_(ids)))
    existing = set(result.scalars().all())
    return [i for i in ids if i not in existing]


async def _prepare(
    db: AsyncSession,
    anchor_kind: EntityKind,
    anchor_id: UUID,
    other_ids: Iterable[Any],
) -> List[UUID]:
    ids = _dedupe(other_ids)
    await _lock_anchor(db, anchor_kind, anchor_id)
    other_kind = LINK_SIDES[anchor_kind].other_kind
    missing = await find_missing(db, other_kind, ids)
    if missing:
        raise NotFoundError(
            f"One or more {other_kind.value}s do not exist: {', '.join(str(i) for i in missing)}",
            other_kind.value,
            missing,
        )
    return ids


async def current_links(db: AsyncSession, anchor_kind: EntityKind, anchor_id: UUID) -> Set[UUID]:
    side = LINK_SIDES[anchor_kind]
    result = await db.execute(select(side.other_column).where(side.anchor_column == anchor_id))
    return set(result.scalars().all())


async def _insert(db: AsyncSession, side: LinkSide, anchor_id: UUID, ids: List[UUID]) -> None:
    if not ids:
        return
    db.add_all([Enrollment(**{side.anchor_field: anchor_id, side.other_field: other_id}) for other_id in ids])
    await db.flush()


async def _delete(db: AsyncSession, side: LinkSide, anchor_id: UUID, ids: Iterable[UUID]) -> None:
    ids = list(ids)
    if not ids:
        return
    await db.execute(
        delete(Enrollment).where(side.anchor_column == anchor_id, side.other_column.in_(ids))
    )


async def link(
    db: AsyncSession,
    anchor_kind: EntityKind,
    anchor_id: UUID,
    other_ids: Iterable[Any],
) -> ReconcileResult:
    """Add links; pairs that already exist are left untouched."""
    ids = await _prepare(db, anchor_kind, anchor_id, other_ids)
    side = LINK_SIDES[anchor_kind]
    current = await current_links(db, anchor_kind, anchor_id)
    to_add = [i for i in ids if i not in current]
    await _insert(db, side, anchor_id, to_add)
    logger.debug("Linked %s %s: +%d", anchor_kind.value, anchor_id, len(to_add))
    return ReconcileResult(linked=current | set(to_add), added=set(to_add))


async def unlink(
    db: AsyncSession,
    anchor_kind: EntityKind,
    anchor_id: UUID,
    other_ids: Iterable[Any],
) -> ReconcileResult:
    """Remove the named links; pairs that are not linked are ignored."""
    ids = await _prepare(db, anchor_kind, anchor_id, other_ids)
    side = LINK_SIDES[anchor_kind]
    current = await current_links(db, anchor_kind, anchor_id)
    await _delete(db, side, anchor_id, ids)
    removed = current & set(ids)
    logger.debug("Unlinked %s %s: -%d", anchor_kind.value, anchor_id, len(removed))
    return ReconcileResult(linked=current - removed, removed=removed)


async def replace(
    db: AsyncSession,
    anchor_kind: EntityKind,
    anchor_id: UUID,
    desired_ids: Iterable[Any],
) -> ReconcileResult:
    """Make the anchor's links equal `desired_ids`. Unchanged links keep their created_at."""
    ids = await _prepare(db, anchor_kind, anchor_id, desired_ids)
    side = LINK_SIDES[anchor_kind]
    current = await current_links(db, anchor_kind, anchor_id)
    desired = set(ids)
    to_remove = current - desired
    to_add = [i for i in ids if i not in current]
    await _delete(db, side, anchor_id, to_remove)
    await _insert(db, side, anchor_id, to_add)
    logger.info(
        "Replaced %s %s links: +%d -%d",
        anchor_kind.value,
        anchor_id,
        len(to_add),
        len(to_remove),
    )
    return ReconcileResult(linked=desired, added=set(to_add), removed=to_remove)


async def reconcile_links(
    db: AsyncSession,
    mode: ReconcileMode,
    anchor_kind: EntityKind,
    anchor_id: UUID,
    other_ids: Iterable[Any],
) -> ReconcileResult:
    if mode == ReconcileMode.ADD:
        return await link(db, anchor_kind, anchor_id, other_ids)
    if mode == ReconcileMode.REMOVE:
        return await unlink(db, anchor_kind, anchor_id, other_ids)
    if mode == ReconcileMode.REPLACE:
        return await replace(db, anchor_kind, anchor_id, other_ids)
    raise ValidationFailure(f"Unknown reconcile mode: {mode!r}")


def concurrent_change(anchor_kind: EntityKind, anchor_id: UUID) -> ConflictError:
    """ConflictError for a link write the database rejected twice in a row."""
    logger.warning("Links of %s %s kept changing underneath the write", anchor_kind.value, anchor_id)
    return ConflictError(
        f"Enrollments of this {anchor_kind.value} were changed by another request; try again",
        field="enrollment",
        value=str(anchor_id),
        detected_by="storage",
    )
