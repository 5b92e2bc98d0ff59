from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from roster.auth.dependencies import get_current_user
from roster.auth.schemas import Principal
from roster.core.enums import ReconcileMode
from roster.core.exceptions import ServiceError
from roster.db.session import get_db

from .schemas import (
    CourseCreate,
    CourseEnrollmentResponse,
    CourseResponse,
    CourseSummary,
    CourseUpdate,
    EnrolledStudent,
    EnrollmentRequest,
)
from . import service

router = APIRouter(prefix="/api/v1/courses", tags=["courses"])


@router.post(
    "",
    response_model=CourseResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_course(
    payload: CourseCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    """Create a course owned by the caller, optionally with a schedule and enrolled students."""
    try:
        return await service.create_course(db, current_user, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get("", response_model=List[CourseSummary])
async def list_courses(
    academic_year: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return await service.list_courses(
        db, current_user, academic_year=academic_year, category=category, search=search
    )


@router.get("/instructor/{instructor_id}", response_model=List[CourseSummary])
async def list_courses_by_instructor(
    instructor_id: UUID,
    academic_year: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    """Courses owned by one instructor. Non-admins may only ask for themselves."""
    try:
        return await service.list_courses(
            db,
            current_user,
            owner_id=instructor_id,
            academic_year=academic_year,
            category=category,
            search=search,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get("/{course_id}", response_model=CourseResponse)
async def get_course(
    course_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    try:
        return await service.get_course(db, current_user, course_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.put("/{course_id}", response_model=CourseResponse)
async def update_course(
    course_id: UUID,
    payload: CourseUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    try:
        return await service.update_course(db, current_user, course_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.delete("/{course_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_course(
    course_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    try:
        await service.delete_course(db, current_user, course_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{course_id}/students", response_model=List[EnrolledStudent])
async def list_enrolled_students(
    course_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    try:
        return await service.list_enrolled_students(db, current_user, course_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


async def _reconcile(
    db: AsyncSession,
    current_user: Principal,
    course_id: UUID,
    mode: ReconcileMode,
    payload: EnrollmentRequest,
) -> CourseEnrollmentResponse:
    try:
        return await service.reconcile_course_students(db, current_user, course_id, mode, payload.student_ids)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.post("/{course_id}/students", response_model=CourseEnrollmentResponse)
async def enroll_students(
    course_id: UUID,
    payload: EnrollmentRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    """Enroll students; already-enrolled students are left as they are."""
    return await _reconcile(db, current_user, course_id, ReconcileMode.ADD, payload)


@router.put("/{course_id}/students", response_model=CourseEnrollmentResponse)
async def replace_students(
    course_id: UUID,
    payload: EnrollmentRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    """Make the enrolled set exactly `student_ids`; an empty list unenrolls everyone."""
    return await _reconcile(db, current_user, course_id, ReconcileMode.REPLACE, payload)


@router.delete("/{course_id}/students", response_model=CourseEnrollmentResponse)
async def remove_students(
    course_id: UUID,
    payload: EnrollmentRequest = Body(...),
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return await _reconcile(db, current_user, course_id, ReconcileMode.REMOVE, payload)
