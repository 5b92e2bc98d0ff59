import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from roster.auth.schemas import Principal
from roster.core import cascade, ownership, reconciler, tenant_service, uniqueness
from roster.core.enums import EntityKind, FaceScanStatus, ReconcileMode
from roster.core.exceptions import NotFoundError, ServiceError
from roster.core.models import Course, Enrollment, Student

from .schemas import (
    StudentCourse,
    StudentCoursesResponse,
    StudentCreate,
    StudentResponse,
    StudentUpdate,
)

logger = logging.getLogger(__name__)


async def _get_student_or_404(db: AsyncSession, student_id: UUID) -> Student:
    student = await db.get(Student, student_id)
    if student is None:
        raise NotFoundError("Student not found", "student", [student_id])
    return student


async def _student_courses(db: AsyncSession, student_id: UUID) -> List[StudentCourse]:
    result = await db.execute(
        select(Course.id, Course.name, Course.code, Enrollment.created_at)
        .join(Enrollment, Enrollment.course_id == Course.id)
        .where(Enrollment.student_id == student_id)
        .order_by(Course.name)
    )
    return [
        StudentCourse(course_id=course_id, name=name, code=code, enrolled_at=enrolled_at)
        for course_id, name, code, enrolled_at in result.all()
    ]


def face_scan_status(face_embedding: Optional[str]) -> FaceScanStatus:
    if face_embedding:
        return FaceScanStatus.VERIFIED
    return FaceScanStatus.NOT_VERIFIED


async def _to_response(db: AsyncSession, s: Student) -> StudentResponse:
    return StudentResponse(
        id=s.id,
        tenant_id=s.tenant_id,
        owner_id=s.owner_id,
        name=s.name,
        surname=s.surname,
        student_number=s.student_number,
        department=s.department,
        face_embedding=s.face_embedding,
        face_scan_status=face_scan_status(s.face_embedding),
        photo_path=s.photo_path,
        created_at=s.created_at,
        courses=await _student_courses(db, s.id),
    )


async def _rollback_integrity_error(
    db: AsyncSession, e: IntegrityError, student_number: str, tenant_id: Optional[UUID]
) -> None:
    await db.rollback()
    if uniqueness.is_unique_violation(e):
        raise uniqueness.storage_conflict(EntityKind.STUDENT, student_number, tenant_id) from e
    raise e


async def create_student(
    db: AsyncSession,
    principal: Principal,
    payload: StudentCreate,
) -> StudentResponse:
    number = uniqueness.normalize_key(EntityKind.STUDENT, payload.student_number)
    tenant_id = await tenant_service.resolve_principal_tenant(db, principal.id)
    await uniqueness.ensure_key_unique(db, EntityKind.STUDENT, number, tenant_id)
    try:
        obj = Student(
            tenant_id=tenant_id,
            owner_id=principal.id,
            name=payload.name.strip(),
            surname=payload.surname.strip(),
            student_number=number,
            department=payload.department,
            face_embedding=payload.face_embedding or None,
            photo_path=payload.photo_path,
        )
        db.add(obj)
        await db.flush()
        if payload.course_ids:
            await reconciler.link(db, EntityKind.STUDENT, obj.id, payload.course_ids)
        await db.commit()
    except ServiceError:
        await db.rollback()
        raise
    except IntegrityError as e:
        await _rollback_integrity_error(db, e, number, tenant_id)
    await db.refresh(obj)
    logger.info("Student %s (%s) created by %s", obj.id, obj.student_number, principal.id)
    return await _to_response(db, obj)


async def get_student(
    db: AsyncSession,
    principal: Principal,
    student_id: UUID,
) -> StudentResponse:
    obj = await _get_student_or_404(db, student_id)
    ownership.authorize_access(principal, obj.owner_id).enforce(
        "You do not have permission to access this student"
    )
    return await _to_response(db, obj)


async def list_students(
    db: AsyncSession,
    principal: Principal,
    owner_id: Optional[UUID] = None,
    search: Optional[str] = None,
) -> List[StudentResponse]:
    stmt = select(Student)
    if owner_id is not None:
        ownership.authorize_owner_listing(principal, owner_id).enforce()
        await tenant_service.get_principal_or_404(db, owner_id)
        stmt = stmt.where(Student.owner_id == owner_id)
    elif not principal.is_admin:
        stmt = stmt.where(Student.owner_id == principal.id)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(
                Student.name.ilike(pattern),
                Student.surname.ilike(pattern),
                Student.student_number.ilike(pattern),
                Student.department.ilike(pattern),
            )
        )
    stmt = stmt.order_by(Student.created_at.desc())
    result = await db.execute(stmt)
    return [await _to_response(db, s) for s in result.scalars().all()]


async def update_student(
    db: AsyncSession,
    principal: Principal,
    student_id: UUID,
    payload: StudentUpdate,
) -> StudentResponse:
    obj = await _get_student_or_404(db, student_id)
    ownership.authorize(principal, obj.owner_id, payload.owner_id).enforce()

    target_owner_id = obj.owner_id
    target_tenant_id = obj.tenant_id
    if payload.owner_id is not None and payload.owner_id != obj.owner_id:
        new_owner = await tenant_service.get_principal_or_404(db, payload.owner_id)
        target_owner_id = new_owner.id
        target_tenant_id = new_owner.tenant_id

    new_number = obj.student_number
    if payload.student_number is not None:
        new_number = uniqueness.normalize_key(EntityKind.STUDENT, payload.student_number)
    if new_number != obj.student_number or target_tenant_id != obj.tenant_id:
        await uniqueness.ensure_key_unique(
            db, EntityKind.STUDENT, new_number, target_tenant_id, exclude_id=obj.id
        )

    try:
        # Validates every course id before touching the student row
        if payload.course_ids is not None:
            await reconciler.replace(db, EntityKind.STUDENT, obj.id, payload.course_ids)
        if payload.name is not None:
            obj.name = payload.name.strip()
        if payload.surname is not None:
            obj.surname = payload.surname.strip()
        if payload.department is not None:
            obj.department = payload.department
        if "face_embedding" in payload.model_fields_set:
            obj.face_embedding = payload.face_embedding or None
        if payload.photo_path is not None:
            obj.photo_path = payload.photo_path
        obj.student_number = new_number
        obj.owner_id = target_owner_id
        obj.tenant_id = target_tenant_id
        await db.flush()
        await db.commit()
    except ServiceError:
        await db.rollback()
        raise
    except IntegrityError as e:
        await _rollback_integrity_error(db, e, new_number, target_tenant_id)
    await db.refresh(obj)
    return await _to_response(db, obj)


async def delete_student(
    db: AsyncSession,
    principal: Principal,
    student_id: UUID,
) -> None:
    obj = await _get_student_or_404(db, student_id)
    ownership.authorize_access(principal, obj.owner_id).enforce(
        "You do not have permission to delete this student"
    )
    try:
        await cascade.cascade_delete(db, EntityKind.STUDENT, student_id)
        await db.commit()
    except Exception:
        await db.rollback()
        raise


async def reconcile_student_courses(
    db: AsyncSession,
    principal: Principal,
    student_id: UUID,
    mode: ReconcileMode,
    course_ids: List[UUID],
) -> StudentCoursesResponse:
    obj = await _get_student_or_404(db, student_id)
    ownership.authorize_access(principal, obj.owner_id).enforce(
        "You do not have permission to change this student's courses"
    )
    for attempt in range(2):
        try:
            result = await reconciler.reconcile_links(db, mode, EntityKind.STUDENT, student_id, course_ids)
            await db.commit()
            break
        except ServiceError:
            await db.rollback()
            raise
        except IntegrityError as e:
            await db.rollback()
            if attempt:
                raise reconciler.concurrent_change(EntityKind.STUDENT, student_id) from e
            logger.info("Course link write for student %s raced another request; retrying", student_id)
    return StudentCoursesResponse(
        student_id=student_id,
        course_ids=sorted(result.linked, key=str),
        added=sorted(result.added, key=str),
        removed=sorted(result.removed, key=str),
        courses=await _student_courses(db, student_id),
    )
