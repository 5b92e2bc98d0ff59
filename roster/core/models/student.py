import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text, UniqueConstraint, Uuid, text

from roster.db.session import Base, utcnow


class Student(Base):
    """Student record owned by the principal that registered it. Student number is unique per tenant."""

    __tablename__ = "students"
    __table_args__ = (
        UniqueConstraint("tenant_id", "student_number", name="uq_student_tenant_number"),
        Index(
            "uq_student_untenanted_number",
            "student_number",
            unique=True,
            postgresql_where=text("tenant_id IS NULL"),
            sqlite_where=text("tenant_id IS NULL"),
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id", ondelete="RESTRICT"), nullable=True, index=True)
    owner_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    surname = Column(String(255), nullable=False)
    student_number = Column(String(50), nullable=False)
    department = Column(String(255), nullable=True)
    face_embedding = Column(Text, nullable=True)
    photo_path = Column(String(512), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
