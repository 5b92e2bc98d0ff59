from roster.core.models.course import Course
from roster.core.models.enrollment import Enrollment
from roster.core.models.schedule_entry import ScheduleEntry
from roster.core.models.student import Student
from roster.core.models.tenant import Tenant

__all__ = [
    "Course",
    "Enrollment",
    "ScheduleEntry",
    "Student",
    "Tenant",
]
