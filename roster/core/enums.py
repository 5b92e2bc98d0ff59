from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    INSTRUCTOR = "instructor"


class DayOfWeek(str, Enum):
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"


class EntityKind(str, Enum):
    """Owned resources that carry a tenant-scoped key and take part in enrollments."""

    COURSE = "course"
    STUDENT = "student"


class ReconcileMode(str, Enum):
    ADD = "add"
    REMOVE = "remove"
    REPLACE = "replace"


class DenyReason(str, Enum):
    NOT_OWNER = "not_owner"
    OWNERSHIP_IMMUTABLE = "ownership_immutable"
    LISTING_NOT_PERMITTED = "listing_not_permitted"


class FaceScanStatus(str, Enum):
    VERIFIED = "Verified"
    NOT_VERIFIED = "Not Verified"
