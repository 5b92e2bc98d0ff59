"""Student–course link table. Identity is the (student_id, course_id) pair."""

from sqlalchemy import Column, DateTime, ForeignKey, Uuid

from roster.db.session import Base, utcnow


class Enrollment(Base):
    __tablename__ = "enrollments"

    student_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("students.id", ondelete="CASCADE"),
        primary_key=True,
    )
    course_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("courses.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
