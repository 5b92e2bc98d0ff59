from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from roster.core.enums import Role


class Principal(BaseModel):
    """Authenticated actor resolved for the current request."""

    id: UUID
    role: Role
    tenant_id: Optional[UUID] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN
