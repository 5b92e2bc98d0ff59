"""Removes a course or student together with every row that references it."""

import logging
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from roster.core.enums import EntityKind
from roster.core.exceptions import NotFoundError
from roster.core.models import Course, Enrollment, ScheduleEntry, Student

logger = logging.getLogger(__name__)


async def cascade_delete(db: AsyncSession, kind: EntityKind, entity_id: UUID) -> None:
    """
    Delete enrollments (and, for a course, schedule entries) and then the entity itself.

    Runs inside the caller's transaction and only flushes, so the caller's commit or rollback
    applies to the dependents and the entity together.
    """
    model = Course if kind == EntityKind.COURSE else Student
    result = await db.execute(select(model.id).where(model.id == entity_id).with_for_update())
    if result.scalar_one_or_none() is None:
        raise NotFoundError(f"{kind.value.capitalize()} not found", kind.value, [entity_id])

    if kind == EntityKind.COURSE:
        enrollments = await db.execute(delete(Enrollment).where(Enrollment.course_id == entity_id))
        schedules = await db.execute(delete(ScheduleEntry).where(ScheduleEntry.course_id == entity_id))
        logger.info(
            "Deleting course %s with %d enrollments and %d schedule entries",
            entity_id,
            enrollments.rowcount,
            schedules.rowcount,
        )
    else:
        enrollments = await db.execute(delete(Enrollment).where(Enrollment.student_id == entity_id))
        logger.info("Deleting student %s with %d enrollments", entity_id, enrollments.rowcount)

    await db.execute(delete(model).where(model.id == entity_id))
    await db.flush()
