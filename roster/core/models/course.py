import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, Uuid, text

from roster.db.session import Base, utcnow


class Course(Base):
    """Course owned by the principal that created it. Code is unique per tenant."""

    __tablename__ = "courses"
    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_course_tenant_code"),
        # NULLs are distinct in the composite constraint; untenanted codes need their own index
        Index(
            "uq_course_untenanted_code",
            "code",
            unique=True,
            postgresql_where=text("tenant_id IS NULL"),
            sqlite_where=text("tenant_id IS NULL"),
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Copied from the owner's tenant at creation; null for legacy/untenanted owners
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id", ondelete="RESTRICT"), nullable=True, index=True)
    owner_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    code = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)
    weekly_hours = Column(Integer, nullable=True)
    academic_year = Column(String(20), nullable=True)
    category = Column(String(100), nullable=True)
    room_number = Column(String(50), nullable=True)
    semester = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
