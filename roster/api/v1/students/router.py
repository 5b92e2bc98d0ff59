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
    CourseLinkRequest,
    StudentCoursesResponse,
    StudentCreate,
    StudentResponse,
    StudentUpdate,
)
from . import service

router = APIRouter(prefix="/api/v1/students", tags=["students"])


@router.post(
    "",
    response_model=StudentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_student(
    payload: StudentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    try:
        return await service.create_student(db, current_user, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get("", response_model=List[StudentResponse])
async def list_students(
    owner_id: Optional[UUID] = Query(None),
    search: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    try:
        return await service.list_students(db, current_user, owner_id=owner_id, search=search)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get("/{student_id}", response_model=StudentResponse)
async def get_student(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    try:
        return await service.get_student(db, current_user, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.put("/{student_id}", response_model=StudentResponse)
async def update_student(
    student_id: UUID,
    payload: StudentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    try:
        return await service.update_student(db, current_user, student_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.delete("/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_student(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    try:
        await service.delete_student(db, current_user, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


async def _reconcile(
    db: AsyncSession,
    current_user: Principal,
    student_id: UUID,
    mode: ReconcileMode,
    payload: CourseLinkRequest,
) -> StudentCoursesResponse:
    try:
        return await service.reconcile_student_courses(db, current_user, student_id, mode, payload.course_ids)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.post("/{student_id}/courses", response_model=StudentCoursesResponse)
async def add_courses(
    student_id: UUID,
    payload: CourseLinkRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return await _reconcile(db, current_user, student_id, ReconcileMode.ADD, payload)


@router.put("/{student_id}/courses", response_model=StudentCoursesResponse)
async def replace_courses(
    student_id: UUID,
    payload: CourseLinkRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return await _reconcile(db, current_user, student_id, ReconcileMode.REPLACE, payload)


@router.delete("/{student_id}/courses", response_model=StudentCoursesResponse)
async def remove_courses(
    student_id: UUID,
    payload: CourseLinkRequest = Body(...),
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return await _reconcile(db, current_user, student_id, ReconcileMode.REMOVE, payload)
