import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import case, delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from roster.auth.schemas import Principal
from roster.core import cascade, ownership, reconciler, tenant_service, uniqueness
from roster.core.enums import DayOfWeek, EntityKind, ReconcileMode
from roster.core.exceptions import NotFoundError, ServiceError, ValidationFailure
from roster.core.models import Course, Enrollment, ScheduleEntry, Student

from .schemas import (
    CourseCreate,
    CourseEnrollmentResponse,
    CourseResponse,
    CourseSummary,
    CourseUpdate,
    EnrolledStudent,
    ScheduleEntryIn,
    ScheduleEntryResponse,
)

logger = logging.getLogger(__name__)

DAY_ORDER = {day.value: index for index, day in enumerate(DayOfWeek)}


async def _get_course_or_404(db: AsyncSession, course_id: UUID) -> Course:
    course = await db.get(Course, course_id)
    if course is None:
        raise NotFoundError("Course not found", "course", [course_id])
    return course


def _validate_schedule(entries: Iterable[ScheduleEntryIn]) -> None:
    for entry in entries:
        try:
            DayOfWeek(entry.day)
        except ValueError:
            raise ValidationFailure(f"Invalid day: {entry.day}")
        if entry.end_time <= entry.start_time:
            raise ValidationFailure("end_time must be after start_time")


async def _insert_schedule(db: AsyncSession, course_id: UUID, entries: Iterable[ScheduleEntryIn]) -> None:
    db.add_all(
        [
            ScheduleEntry(
                course_id=course_id,
                day=DayOfWeek(entry.day).value,
                start_time=entry.start_time,
                end_time=entry.end_time,
            )
            for entry in entries
        ]
    )
    await db.flush()


async def _schedules_by_course(
    db: AsyncSession, course_ids: List[UUID]
) -> Dict[UUID, List[ScheduleEntryResponse]]:
    if not course_ids:
        return {}
    day_rank = case(DAY_ORDER, value=ScheduleEntry.day, else_=len(DAY_ORDER))
    result = await db.execute(
        select(ScheduleEntry)
        .where(ScheduleEntry.course_id.in_(course_ids))
        .order_by(ScheduleEntry.course_id, day_rank, ScheduleEntry.start_time)
    )
    grouped: Dict[UUID, List[ScheduleEntryResponse]] = defaultdict(list)
    for entry in result.scalars().all():
        grouped[entry.course_id].append(ScheduleEntryResponse.model_validate(entry))
    return grouped


async def _enrolled_students(db: AsyncSession, course_id: UUID) -> List[EnrolledStudent]:
    result = await db.execute(
        select(Student, Enrollment.created_at)
        .join(Enrollment, Enrollment.student_id == Student.id)
        .where(Enrollment.course_id == course_id)
        .order_by(Student.name, Student.surname)
    )
    return [
        EnrolledStudent(
            student_id=s.id,
            name=s.name,
            surname=s.surname,
            student_number=s.student_number,
            department=s.department,
            enrolled_at=enrolled_at,
        )
        for s, enrolled_at in result.all()
    ]


async def _to_response(db: AsyncSession, c: Course) -> CourseResponse:
    schedules = await _schedules_by_course(db, [c.id])
    return CourseResponse(
        id=c.id,
        tenant_id=c.tenant_id,
        owner_id=c.owner_id,
        name=c.name,
        code=c.code,
        description=c.description,
        weekly_hours=c.weekly_hours,
        academic_year=c.academic_year,
        category=c.category,
        room_number=c.room_number,
        semester=c.semester,
        created_at=c.created_at,
        schedule=schedules.get(c.id, []),
        enrolled_students=await _enrolled_students(db, c.id),
    )


async def _rollback_integrity_error(
    db: AsyncSession, e: IntegrityError, code: str, tenant_id: Optional[UUID]
) -> None:
    await db.rollback()
    if uniqueness.is_unique_violation(e):
        raise uniqueness.storage_conflict(EntityKind.COURSE, code, tenant_id) from e
    raise e


async def create_course(
    db: AsyncSession,
    principal: Principal,
    payload: CourseCreate,
) -> CourseResponse:
    """Create a course owned by the caller, with its schedule and initial enrollments, atomically."""
    code = uniqueness.normalize_key(EntityKind.COURSE, payload.code)
    tenant_id = await tenant_service.resolve_principal_tenant(db, principal.id)
    await uniqueness.ensure_key_unique(db, EntityKind.COURSE, code, tenant_id)
    _validate_schedule(payload.schedule)
    try:
        obj = Course(
            tenant_id=tenant_id,
            owner_id=principal.id,
            name=payload.name.strip(),
            code=code,
            description=payload.description,
            weekly_hours=payload.weekly_hours,
            academic_year=payload.academic_year,
            category=payload.category,
            room_number=payload.room_number,
            semester=payload.semester,
        )
        db.add(obj)
        await db.flush()
        await _insert_schedule(db, obj.id, payload.schedule)
        if payload.student_ids:
            await reconciler.link(db, EntityKind.COURSE, obj.id, payload.student_ids)
        await db.commit()
    except ServiceError:
        await db.rollback()
        raise
    except IntegrityError as e:
        await _rollback_integrity_error(db, e, code, tenant_id)
    await db.refresh(obj)
    logger.info("Course %s (%s) created by %s", obj.id, obj.code, principal.id)
    return await _to_response(db, obj)


async def get_course(
    db: AsyncSession,
    principal: Principal,
    course_id: UUID,
) -> CourseResponse:
    obj = await _get_course_or_404(db, course_id)
    ownership.authorize_access(principal, obj.owner_id).enforce(
        "You do not have permission to access this course"
    )
    return await _to_response(db, obj)


async def list_courses(
    db: AsyncSession,
    principal: Principal,
    owner_id: Optional[UUID] = None,
    academic_year: Optional[str] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
) -> List[CourseSummary]:
    """Courses visible to the caller: their own, or any owner's for an admin."""
    stmt = select(Course)
    if owner_id is not None:
        ownership.authorize_owner_listing(principal, owner_id).enforce(
            "You do not have permission to view courses for this instructor"
        )
        await tenant_service.get_principal_or_404(db, owner_id)
        stmt = stmt.where(Course.owner_id == owner_id)
    elif not principal.is_admin:
        stmt = stmt.where(Course.owner_id == principal.id)
    if academic_year and academic_year.strip():
        stmt = stmt.where(Course.academic_year == academic_year.strip())
    if category and category.strip():
        stmt = stmt.where(Course.category == category.strip())
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(Course.name.ilike(pattern), Course.code.ilike(pattern), Course.description.ilike(pattern))
        )
    stmt = stmt.order_by(Course.name)
    result = await db.execute(stmt)
    courses = list(result.scalars().all())
    course_ids = [c.id for c in courses]

    counts: Dict[UUID, int] = {}
    if course_ids:
        count_result = await db.execute(
            select(Enrollment.course_id, func.count())
            .where(Enrollment.course_id.in_(course_ids))
            .group_by(Enrollment.course_id)
        )
        counts = {course_id: n for course_id, n in count_result.all()}
    schedules = await _schedules_by_course(db, course_ids)

    return [
        CourseSummary(
            id=c.id,
            tenant_id=c.tenant_id,
            owner_id=c.owner_id,
            name=c.name,
            code=c.code,
            academic_year=c.academic_year,
            category=c.category,
            semester=c.semester,
            schedule=schedules.get(c.id, []),
            enrolled_students_count=counts.get(c.id, 0),
        )
        for c in courses
    ]


async def update_course(
    db: AsyncSession,
    principal: Principal,
    course_id: UUID,
    payload: CourseUpdate,
) -> CourseResponse:
    obj = await _get_course_or_404(db, course_id)
    ownership.authorize_access(principal, obj.owner_id).enforce(
        "You do not have permission to update this course"
    )
    ownership.authorize_ownership_change(principal, obj.owner_id, payload.owner_id).enforce(
        "You cannot change the course owner"
    )

    # Reassigning the owner moves the course into the new owner's tenant
    target_owner_id = obj.owner_id
    target_tenant_id = obj.tenant_id
    if payload.owner_id is not None and payload.owner_id != obj.owner_id:
        new_owner = await tenant_service.get_principal_or_404(db, payload.owner_id)
        target_owner_id = new_owner.id
        target_tenant_id = new_owner.tenant_id

    new_code = obj.code
    if payload.code is not None:
        new_code = uniqueness.normalize_key(EntityKind.COURSE, payload.code)
    if new_code != obj.code or target_tenant_id != obj.tenant_id:
        await uniqueness.ensure_key_unique(
            db, EntityKind.COURSE, new_code, target_tenant_id, exclude_id=obj.id
        )
    if payload.schedule is not None:
        _validate_schedule(payload.schedule)

    try:
        if payload.name is not None:
            obj.name = payload.name.strip()
        if payload.description is not None:
            obj.description = payload.description
        if payload.weekly_hours is not None:
            obj.weekly_hours = payload.weekly_hours
        if payload.academic_year is not None:
            obj.academic_year = payload.academic_year
        if payload.category is not None:
            obj.category = payload.category
        if payload.room_number is not None:
            obj.room_number = payload.room_number
        if payload.semester is not None:
            obj.semester = payload.semester
        obj.code = new_code
        obj.owner_id = target_owner_id
        obj.tenant_id = target_tenant_id
        if payload.schedule is not None:
            await db.execute(delete(ScheduleEntry).where(ScheduleEntry.course_id == obj.id))
            await _insert_schedule(db, obj.id, payload.schedule)
        await db.flush()
        await db.commit()
    except ServiceError:
        await db.rollback()
        raise
    except IntegrityError as e:
        await _rollback_integrity_error(db, e, new_code, target_tenant_id)
    await db.refresh(obj)
    return await _to_response(db, obj)


async def delete_course(
    db: AsyncSession,
    principal: Principal,
    course_id: UUID,
) -> None:
    obj = await _get_course_or_404(db, course_id)
    ownership.authorize_access(principal, obj.owner_id).enforce(
        "You do not have permission to delete this course"
    )
    try:
        await cascade.cascade_delete(db, EntityKind.COURSE, course_id)
        await db.commit()
    except Exception:
        await db.rollback()
        raise


async def list_enrolled_students(
    db: AsyncSession,
    principal: Principal,
    course_id: UUID,
) -> List[EnrolledStudent]:
    obj = await _get_course_or_404(db, course_id)
    ownership.authorize_access(principal, obj.owner_id).enforce(
        "You do not have permission to view students in this course"
    )
    return await _enrolled_students(db, course_id)


async def reconcile_course_students(
    db: AsyncSession,
    principal: Principal,
    course_id: UUID,
    mode: ReconcileMode,
    student_ids: List[UUID],
) -> CourseEnrollmentResponse:
    """Enroll, remove or replace the students of a course."""
    obj = await _get_course_or_404(db, course_id)
    ownership.authorize_access(principal, obj.owner_id).enforce(
        "You do not have permission to change enrollments in this course"
    )
    for attempt in range(2):
        try:
            result = await reconciler.reconcile_links(db, mode, EntityKind.COURSE, course_id, student_ids)
            await db.commit()
            break
        except ServiceError:
            await db.rollback()
            raise
        except IntegrityError as e:
            await db.rollback()
            if attempt:
                raise reconciler.concurrent_change(EntityKind.COURSE, course_id) from e
            logger.info("Enrollment write for course %s raced another request; retrying", course_id)
    return CourseEnrollmentResponse(
        course_id=course_id,
        student_ids=sorted(result.linked, key=str),
        added=sorted(result.added, key=str),
        removed=sorted(result.removed, key=str),
        enrolled_students=await _enrolled_students(db, course_id),
    )
