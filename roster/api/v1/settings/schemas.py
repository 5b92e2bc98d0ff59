from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    tenant_id: Optional[UUID] = Field(None, description="Move the caller to another institution")


class ProfileResponse(BaseModel):
    id: UUID
    full_name: str
    email: str
    role: str
    tenant_id: Optional[UUID] = None
    tenant_name: Optional[str] = None
    created_at: datetime
