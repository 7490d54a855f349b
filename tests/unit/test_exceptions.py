"""Tests for the exception hierarchy and HTTP mapping."""

import pytest

from neo_permissions.core.exceptions import (
    AuthorizationError,
    CacheSerializationError,
    CacheUnavailableError,
    EntityBoundaryViolationError,
    EntityNotFoundError,
    InvariantViolationError,
    PermissionResolutionError,
    ResolutionTimeoutError,
    StoreUnavailableError,
    TenantContextMissingError,
    create_error_response,
    get_http_status_code,
)


@pytest.mark.parametrize("exc,status", [
    (TenantContextMissingError("x"), 400),
    (InvariantViolationError("x"), 400),
    (AuthorizationError("x"), 403),
    (EntityBoundaryViolationError("x"), 403),
    (EntityNotFoundError("x"), 404),
    (StoreUnavailableError("x"), 503),
    (CacheUnavailableError("x"), 503),
    (ResolutionTimeoutError("x"), 504),
    (PermissionResolutionError("x"), 500),
    (CacheSerializationError("x"), 500),
    (RuntimeError("x"), 500),
])
def test_status_codes(exc, status):
    assert get_http_status_code(exc) == status


def test_resolution_errors_share_a_base():
    for exc_type in (TenantContextMissingError, StoreUnavailableError, ResolutionTimeoutError):
        assert issubclass(exc_type, PermissionResolutionError)


def test_default_and_explicit_codes():
    assert TenantContextMissingError("x").error_code == "TENANT_CONTEXT_MISSING"
    assert CacheSerializationError("x").error_code == "CacheSerializationError"
    assert StoreUnavailableError("x", error_code="DB_DOWN").error_code == "DB_DOWN"


def test_error_response_shape():
    exc = EntityBoundaryViolationError("Role does not belong to tenant T1", details={"tenant_id": "T1"})

    assert create_error_response(exc) == {
        "error": {
            "code": "BOUNDARY_VIOLATION",
            "message": "Role does not belong to tenant T1",
            "details": {"tenant_id": "T1"},
            "type": "EntityBoundaryViolationError",
        }
    }


def test_details_are_copied():
    details = {"tenant_id": "T1"}
    exc = EntityNotFoundError("Role role-x not found", details=details)
    details["tenant_id"] = "T2"

    assert exc.details == {"tenant_id": "T1"}
    assert exc.to_response()["error"]["details"] == {"tenant_id": "T1"}
    assert str(exc) == "Role role-x not found"
