import uuid

from sqlalchemy import Column, DateTime, String, Uuid

from roster.db.session import Base, utcnow


class Tenant(Base):
    """
    Tenant (institution) that partitions course codes and student numbers.

    Referenced by principals and owned resources; never created or deleted by the engine.
    """

    __tablename__ = "tenants"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
