from datetime import datetime, time
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from roster.core.enums import DayOfWeek


class ScheduleEntryIn(BaseModel):
    day: DayOfWeek
    start_time: time
    end_time: time

    @model_validator(mode="after")
    def validate_time_order(self) -> "ScheduleEntryIn":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class ScheduleEntryResponse(BaseModel):
    id: UUID
    day: DayOfWeek
    start_time: time
    end_time: time

    class Config:
        from_attributes = True


class CourseCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    code: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = None
    weekly_hours: Optional[int] = Field(None, ge=0, le=168)
    academic_year: Optional[str] = Field(None, max_length=20)
    category: Optional[str] = Field(None, max_length=100)
    room_number: Optional[str] = Field(None, max_length=50)
    semester: Optional[str] = Field(None, max_length=50)
    schedule: List[ScheduleEntryIn] = Field(default_factory=list)
    student_ids: List[UUID] = Field(default_factory=list, description="Students to enroll on creation")


class CourseUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = None
    weekly_hours: Optional[int] = Field(None, ge=0, le=168)
    academic_year: Optional[str] = Field(None, max_length=20)
    category: Optional[str] = Field(None, max_length=100)
    room_number: Optional[str] = Field(None, max_length=50)
    semester: Optional[str] = Field(None, max_length=50)
    owner_id: Optional[UUID] = Field(None, description="New owner; admin only")
    schedule: Optional[List[ScheduleEntryIn]] = Field(
        None, description="Replaces the whole schedule when given; an empty list clears it"
    )


class EnrolledStudent(BaseModel):
    student_id: UUID
    name: str
    surname: str
    student_number: str
    department: Optional[str] = None
    enrolled_at: datetime


class CourseResponse(BaseModel):
    id: UUID
    tenant_id: Optional[UUID] = None
    owner_id: UUID
    name: str
    code: str
    description: Optional[str] = None
    weekly_hours: Optional[int] = None
    academic_year: Optional[str] = None
    category: Optional[str] = None
    room_number: Optional[str] = None
    semester: Optional[str] = None
    created_at: datetime
    schedule: List[ScheduleEntryResponse] = Field(default_factory=list)
    enrolled_students: List[EnrolledStudent] = Field(default_factory=list)


class CourseSummary(BaseModel):
    id: UUID
    tenant_id: Optional[UUID] = None
    owner_id: UUID
    name: str
    code: str
    academic_year: Optional[str] = None
    category: Optional[str] = None
    semester: Optional[str] = None
    schedule: List[ScheduleEntryResponse] = Field(default_factory=list)
    enrolled_students_count: int = 0


class EnrollmentRequest(BaseModel):
    student_ids: List[UUID] = Field(default_factory=list)


class CourseEnrollmentResponse(BaseModel):
    course_id: UUID
    student_ids: List[UUID]
    added: List[UUID] = Field(default_factory=list)
    removed: List[UUID] = Field(default_factory=list)
    enrolled_students: List[EnrolledStudent] = Field(default_factory=list)
