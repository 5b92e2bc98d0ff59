from typing import Any, Iterable, List, Optional
from uuid import UUID

from fastapi import status

from roster.core.enums import DenyReason


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def detail(self) -> Any:
        return self.message


class ForbiddenError(ServiceError):
    """Ownership policy denial. `reason` tells "not the owner" apart from "ownership transfer"."""

    def __init__(self, message: str, reason: DenyReason) -> None:
        super().__init__(message, status.HTTP_403_FORBIDDEN)
        self.reason = reason

    @property
    def detail(self) -> Any:
        return {"message": self.message, "reason": self.reason.value}


class ConflictError(ServiceError):
    """Scoped key already taken, caught by the pre-check ("guard") or by the unique constraint ("storage")."""

    def __init__(
        self,
        message: str,
        field: str,
        value: str,
        conflicting_id: Optional[UUID] = None,
        detected_by: str = "guard",
    ) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)
        self.field = field
        self.value = value
        self.conflicting_id = conflicting_id
        self.detected_by = detected_by

    @property
    def detail(self) -> Any:
        return {"message": self.message, "field": self.field, "value": self.value}


class NotFoundError(ServiceError):
    """Referenced entity does not exist. Relationship operations list every missing id."""

    def __init__(self, message: str, entity: str, missing_ids: Optional[Iterable[Any]] = None) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)
        self.entity = entity
        self.missing_ids: List[Any] = list(missing_ids or [])

    @property
    def detail(self) -> Any:
        if not self.missing_ids:
            return self.message
        return {
            "message": self.message,
            "entity": self.entity,
            "missing_ids": [str(i) for i in self.missing_ids],
        }


class ValidationFailure(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)
