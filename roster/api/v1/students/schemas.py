from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from roster.core.enums import FaceScanStatus


class StudentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    surname: str = Field(..., min_length=1, max_length=255)
    student_number: str = Field(..., min_length=1, max_length=50)
    department: Optional[str] = Field(None, max_length=255)
    face_embedding: Optional[str] = Field(None, description="Serialized face embedding from the enrollment scanner")
    photo_path: Optional[str] = Field(None, max_length=512)
    course_ids: List[UUID] = Field(default_factory=list, description="Courses to enroll the student in")


class StudentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    surname: Optional[str] = Field(None, min_length=1, max_length=255)
    student_number: Optional[str] = Field(None, min_length=1, max_length=50)
    department: Optional[str] = Field(None, max_length=255)
    face_embedding: Optional[str] = Field(None, description="Send null to clear a previous scan")
    photo_path: Optional[str] = Field(None, max_length=512)
    owner_id: Optional[UUID] = Field(None, description="New owner; admin only")
    course_ids: Optional[List[UUID]] = Field(
        None, description="Replaces the student's courses when given; an empty list unenrolls from all"
    )


class StudentCourse(BaseModel):
    course_id: UUID
    name: str
    code: str
    enrolled_at: datetime


class StudentResponse(BaseModel):
    id: UUID
    tenant_id: Optional[UUID] = None
    owner_id: UUID
    name: str
    surname: str
    student_number: str
    department: Optional[str] = None
    face_embedding: Optional[str] = None
    photo_path: Optional[str] = None
    face_scan_status: FaceScanStatus = FaceScanStatus.NOT_VERIFIED
    created_at: datetime
    courses: List[StudentCourse] = Field(default_factory=list)


class CourseLinkRequest(BaseModel):
    course_ids: List[UUID] = Field(default_factory=list)


class StudentCoursesResponse(BaseModel):
    student_id: UUID
    course_ids: List[UUID]
    added: List[UUID] = Field(default_factory=list)
    removed: List[UUID] = Field(default_factory=list)
    courses: List[StudentCourse] = Field(default_factory=list)
