import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from roster.auth.schemas import Principal
from roster.core import reconciler
from roster.core.enums import EntityKind, ReconcileMode
from roster.core.exceptions import NotFoundError
from roster.core.models import Course, Enrollment, Student


async def _course(db: AsyncSession, owner: Principal, code: str) -> Course:
    course = Course(tenant_id=owner.tenant_id, owner_id=owner.id, name=code, code=code)
    db.add(course)
    await db.commit()
    return course


async def _student(db: AsyncSession, owner: Principal, number: str) -> Student:
    student = Student(
        tenant_id=owner.tenant_id, owner_id=owner.id, name="S", surname=number, student_number=number
    )
    db.add(student)
    await db.commit()
    return student


async def _enrollments(db: AsyncSession, course_id: uuid.UUID):
    result = await db.execute(select(Enrollment).where(Enrollment.course_id == course_id))
    return {e.student_id: e for e in result.scalars().all()}


@pytest.mark.asyncio
async def test_link_twice_keeps_one_row_and_first_timestamp(
    db_session: AsyncSession, instructor_x: Principal
) -> None:
    course = await _course(db_session, instructor_x, "BIO1")
    student = await _student(db_session, instructor_x, "1")

    first = await reconciler.link(db_session, EntityKind.COURSE, course.id, [student.id])
    await db_session.commit()
    first_created = (await _enrollments(db_session, course.id))[student.id].created_at

    second = await reconciler.link(db_session, EntityKind.COURSE, course.id, [student.id, student.id])
    await db_session.commit()

    assert first.added == {student.id}
    assert second.added == set()
    assert second.linked == {student.id}
    count = await db_session.scalar(
        select(func.count()).select_from(Enrollment).where(Enrollment.course_id == course.id)
    )
    assert count == 1
    assert (await _enrollments(db_session, course.id))[student.id].created_at == first_created


@pytest.mark.asyncio
async def test_replace_is_a_true_diff(db_session: AsyncSession, instructor_x: Principal) -> None:
    course = await _course(db_session, instructor_x, "BIO1")
    a = await _student(db_session, instructor_x, "A")
    b = await _student(db_session, instructor_x, "B")
    c = await _student(db_session, instructor_x, "C")
    await reconciler.link(db_session, EntityKind.COURSE, course.id, [a.id, b.id])
    await db_session.commit()

    old = datetime(2020, 1, 1, tzinfo=timezone.utc)
    await db_session.execute(
        update(Enrollment)
        .where(Enrollment.course_id == course.id, Enrollment.student_id == b.id)
        .values(created_at=old)
    )
    await db_session.commit()

    result = await reconciler.replace(db_session, EntityKind.COURSE, course.id, [b.id, c.id])
    await db_session.commit()

    assert result.linked == {b.id, c.id}
    assert result.added == {c.id}
    assert result.removed == {a.id}
    rows = await _enrollments(db_session, course.id)
    assert set(rows) == {b.id, c.id}
    assert rows[b.id].created_at.replace(tzinfo=None) == old.replace(tzinfo=None)
    assert rows[c.id].created_at.replace(tzinfo=None) > old.replace(tzinfo=None)


@pytest.mark.asyncio
async def test_replace_with_empty_set_clears_links(db_session: AsyncSession, instructor_x: Principal) -> None:
    course = await _course(db_session, instructor_x, "BIO1")
    a = await _student(db_session, instructor_x, "A")
    await reconciler.link(db_session, EntityKind.COURSE, course.id, [a.id])
    await db_session.commit()

    result = await reconciler.reconcile_links(db_session, ReconcileMode.REPLACE, EntityKind.COURSE, course.id, [])
    await db_session.commit()

    assert result.linked == set()
    assert await _enrollments(db_session, course.id) == {}


@pytest.mark.asyncio
async def test_missing_ids_abort_without_mutation(db_session: AsyncSession, instructor_x: Principal) -> None:
    course = await _course(db_session, instructor_x, "BIO1")
    linked = await _student(db_session, instructor_x, "A")
    valid = await _student(db_session, instructor_x, "B")
    await reconciler.link(db_session, EntityKind.COURSE, course.id, [linked.id])
    await db_session.commit()

    ghost_one, ghost_two = uuid.uuid4(), uuid.uuid4()
    with pytest.raises(NotFoundError) as exc_info:
        await reconciler.reconcile_links(
            db_session, ReconcileMode.REPLACE, EntityKind.COURSE, course.id, [valid.id, ghost_one, ghost_two]
        )
    await db_session.rollback()

    assert exc_info.value.missing_ids == [ghost_one, ghost_two]
    assert exc_info.value.entity == "student"
    assert set(await _enrollments(db_session, course.id)) == {linked.id}


@pytest.mark.asyncio
async def test_missing_anchor_is_not_found(db_session: AsyncSession) -> None:
    with pytest.raises(NotFoundError) as exc_info:
        await reconciler.link(db_session, EntityKind.COURSE, uuid.uuid4(), [])
    assert exc_info.value.entity == "course"


@pytest.mark.asyncio
async def test_unlink_ignores_pairs_that_are_not_linked(
    db_session: AsyncSession, instructor_x: Principal
) -> None:
    course = await _course(db_session, instructor_x, "BIO1")
    a = await _student(db_session, instructor_x, "A")
    b = await _student(db_session, instructor_x, "B")
    await reconciler.link(db_session, EntityKind.COURSE, course.id, [a.id])
    await db_session.commit()

    result = await reconciler.unlink(db_session, EntityKind.COURSE, course.id, [a.id, b.id])
    await db_session.commit()

    assert result.removed == {a.id}
    assert result.linked == set()
    assert await _enrollments(db_session, course.id) == {}


@pytest.mark.asyncio
async def test_student_side_has_the_same_semantics(db_session: AsyncSession, instructor_x: Principal) -> None:
    student = await _student(db_session, instructor_x, "A")
    c1 = await _course(db_session, instructor_x, "C1")
    c2 = await _course(db_session, instructor_x, "C2")
    c3 = await _course(db_session, instructor_x, "C3")

    await reconciler.link(db_session, EntityKind.STUDENT, student.id, [c1.id, c2.id])
    await db_session.commit()
    result = await reconciler.replace(db_session, EntityKind.STUDENT, student.id, [c2.id, c3.id])
    await db_session.commit()

    assert result.linked == {c2.id, c3.id}
    assert await reconciler.current_links(db_session, EntityKind.COURSE, c1.id) == set()
    assert await reconciler.current_links(db_session, EntityKind.COURSE, c3.id) == {student.id}

    with pytest.raises(NotFoundError) as exc_info:
        await reconciler.link(db_session, EntityKind.STUDENT, student.id, [uuid.uuid4()])
    assert exc_info.value.entity == "course"
