import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Uuid

from roster.db.session import Base, utcnow


class User(Base):
    """Principal: an authenticated admin or instructor, optionally affiliated with a tenant."""

    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Reassignable through profile updates; null for legacy accounts without an institution
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id"), nullable=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    # Role value: admin | instructor
    role = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
