"""Unit tests for the ownership policy (pure decisions, no database)."""

import uuid

import pytest

from roster.auth.schemas import Principal
from roster.core.enums import DenyReason, Role
from roster.core.exceptions import ForbiddenError
from roster.core.ownership import (
    authorize,
    authorize_access,
    authorize_owner_listing,
    authorize_ownership_change,
)


def _principal(role: Role) -> Principal:
    return Principal(id=uuid.uuid4(), role=role, tenant_id=uuid.uuid4())


def test_owner_may_access_own_resource() -> None:
    instructor = _principal(Role.INSTRUCTOR)
    assert authorize_access(instructor, instructor.id).allowed


def test_non_owner_is_denied_as_not_owner() -> None:
    instructor = _principal(Role.INSTRUCTOR)
    decision = authorize_access(instructor, uuid.uuid4())
    assert not decision.allowed
    assert decision.reason == DenyReason.NOT_OWNER


def test_admin_may_access_any_resource() -> None:
    assert authorize_access(_principal(Role.ADMIN), uuid.uuid4()).allowed


def test_owner_cannot_transfer_ownership() -> None:
    """An owner editing their own resource still may not hand it to someone else."""
    instructor = _principal(Role.INSTRUCTOR)
    decision = authorize(instructor, instructor.id, proposed_owner=uuid.uuid4())
    assert not decision.allowed
    assert decision.reason == DenyReason.OWNERSHIP_IMMUTABLE


def test_unchanged_or_absent_owner_is_not_a_transfer() -> None:
    instructor = _principal(Role.INSTRUCTOR)
    assert authorize_ownership_change(instructor, instructor.id, None).allowed
    assert authorize_ownership_change(instructor, instructor.id, instructor.id).allowed


def test_admin_may_transfer_ownership() -> None:
    admin = _principal(Role.ADMIN)
    assert authorize(admin, uuid.uuid4(), proposed_owner=uuid.uuid4()).allowed


def test_non_owner_transfer_reports_not_owner_first() -> None:
    decision = authorize(_principal(Role.INSTRUCTOR), uuid.uuid4(), proposed_owner=uuid.uuid4())
    assert decision.reason == DenyReason.NOT_OWNER


def test_listing_by_owner() -> None:
    instructor = _principal(Role.INSTRUCTOR)
    assert authorize_owner_listing(instructor, instructor.id).allowed
    assert authorize_owner_listing(_principal(Role.ADMIN), instructor.id).allowed
    decision = authorize_owner_listing(instructor, uuid.uuid4())
    assert decision.reason == DenyReason.LISTING_NOT_PERMITTED


def test_enforce_raises_forbidden_with_reason() -> None:
    instructor = _principal(Role.INSTRUCTOR)
    with pytest.raises(ForbiddenError) as exc_info:
        authorize(instructor, instructor.id, proposed_owner=uuid.uuid4()).enforce()
    assert exc_info.value.status_code == 403
    assert exc_info.value.reason == DenyReason.OWNERSHIP_IMMUTABLE
    assert exc_info.value.detail["reason"] == "ownership_immutable"
