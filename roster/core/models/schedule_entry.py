"""Weekly schedule slot of a course. Replaced wholesale when the course schedule is edited."""

import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, String, Time, Uuid

from roster.db.session import Base, utcnow


class ScheduleEntry(Base):
    __tablename__ = "course_schedules"
    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_course_schedule_time_order"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    course_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    day = Column(String(20), nullable=False)  # DayOfWeek value, Monday..Sunday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
