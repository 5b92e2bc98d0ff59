import uuid

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from roster.api.v1.courses import service as course_service
from roster.api.v1.courses.schemas import CourseCreate, CourseUpdate
from roster.api.v1.students import service as student_service
from roster.api.v1.students.schemas import StudentCreate
from roster.auth.schemas import Principal
from roster.core import uniqueness
from roster.core.enums import EntityKind
from roster.core.exceptions import ConflictError, ValidationFailure


@pytest.mark.asyncio
async def test_same_code_in_different_tenants(
    db_session: AsyncSession, instructor_x: Principal, instructor_south: Principal
) -> None:
    a = await course_service.create_course(db_session, instructor_x, CourseCreate(name="Algebra", code="MATH101"))
    b = await course_service.create_course(db_session, instructor_south, CourseCreate(name="Algebra", code="MATH101"))
    assert a.tenant_id != b.tenant_id
    assert a.code == b.code == "MATH101"


@pytest.mark.asyncio
async def test_second_code_in_same_tenant_conflicts(
    db_session: AsyncSession, instructor_x: Principal, instructor_y: Principal
) -> None:
    await course_service.create_course(db_session, instructor_x, CourseCreate(name="Algebra", code="MATH101"))
    with pytest.raises(ConflictError) as exc_info:
        # Different owner, same tenant: still taken
        await course_service.create_course(db_session, instructor_y, CourseCreate(name="Other", code=" MATH101 "))
    assert exc_info.value.field == "code"
    assert exc_info.value.value == "MATH101"
    assert exc_info.value.detected_by == "guard"


@pytest.mark.asyncio
async def test_student_number_scenario(
    db_session: AsyncSession, instructor_x: Principal, instructor_south: Principal
) -> None:
    """Tenant 1 and tenant 2 may both have student 1001; tenant 1 cannot have two."""
    await student_service.create_student(
        db_session, instructor_x, StudentCreate(name="Ada", surname="Lovelace", student_number="1001")
    )
    await student_service.create_student(
        db_session, instructor_south, StudentCreate(name="Alan", surname="Turing", student_number="1001")
    )
    with pytest.raises(ConflictError):
        await student_service.create_student(
            db_session, instructor_x, StudentCreate(name="Grace", surname="Hopper", student_number="1001")
        )
    both = await student_service.list_students(db_session, instructor_x)
    assert [s.student_number for s in both] == ["1001"]


@pytest.mark.asyncio
async def test_update_without_key_change_does_not_conflict_with_itself(
    db_session: AsyncSession, instructor_x: Principal
) -> None:
    course = await course_service.create_course(db_session, instructor_x, CourseCreate(name="Algebra", code="MATH101"))
    updated = await course_service.update_course(
        db_session, instructor_x, course.id, CourseUpdate(name="Linear Algebra", code="MATH101")
    )
    assert updated.name == "Linear Algebra"

    check = await uniqueness.check_key_unique(
        db_session, EntityKind.COURSE, "MATH101", instructor_x.tenant_id, exclude_id=course.id
    )
    assert check.unique


@pytest.mark.asyncio
async def test_guard_reports_conflicting_record(db_session: AsyncSession, instructor_x: Principal) -> None:
    course = await course_service.create_course(db_session, instructor_x, CourseCreate(name="Algebra", code="MATH101"))
    check = await uniqueness.check_key_unique(db_session, EntityKind.COURSE, " MATH101", instructor_x.tenant_id)
    assert not check.unique
    assert check.conflicting_id == course.id


@pytest.mark.asyncio
async def test_untenanted_scope_falls_back_to_global_check(
    db_session: AsyncSession, instructor_x: Principal, instructor_untenanted: Principal
) -> None:
    await course_service.create_course(db_session, instructor_x, CourseCreate(name="Algebra", code="MATH101"))
    with pytest.raises(ConflictError):
        await course_service.create_course(
            db_session, instructor_untenanted, CourseCreate(name="Algebra", code="MATH101")
        )


@pytest.mark.asyncio
async def test_untenanted_records_cannot_share_a_key(
    db_session: AsyncSession, instructor_untenanted: Principal
) -> None:
    await student_service.create_student(
        db_session, instructor_untenanted, StudentCreate(name="A", surname="B", student_number="7")
    )
    with pytest.raises(ConflictError):
        await student_service.create_student(
            db_session, instructor_untenanted, StudentCreate(name="C", surname="D", student_number="7")
        )


@pytest.mark.asyncio
async def test_malformed_scope_is_rejected(db_session: AsyncSession) -> None:
    with pytest.raises(ValidationFailure):
        await uniqueness.check_key_unique(db_session, EntityKind.COURSE, "   ", None)
    with pytest.raises(ValidationFailure):
        await uniqueness.check_key_unique(db_session, EntityKind.COURSE, "MATH101", "tenant-1")
    with pytest.raises(ValidationFailure):
        await uniqueness.check_key_unique(db_session, EntityKind.STUDENT, "x" * 51, uuid.uuid4())


def test_normalize_key() -> None:
    assert uniqueness.normalize_key(EntityKind.COURSE, " cs 101 ") == "cs 101"
    assert uniqueness.normalize_key(EntityKind.STUDENT, " s-001 ") == "s-001"
    with pytest.raises(ValidationFailure):
        uniqueness.normalize_key(EntityKind.STUDENT, None)


@pytest.mark.asyncio
async def test_codes_differing_only_in_case_are_distinct(
    db_session: AsyncSession, instructor_x: Principal
) -> None:
    upper = await course_service.create_course(db_session, instructor_x, CourseCreate(name="Algebra", code="MATH101"))
    lower = await course_service.create_course(db_session, instructor_x, CourseCreate(name="Algebra", code="math101"))
    assert upper.code == "MATH101"
    assert lower.code == "math101"
