"""Tests for RoleManagementService mutations and provisioning."""

from datetime import timedelta

import pytest

from neo_permissions.core.exceptions import (
    AuthorizationError,
    EntityBoundaryViolationError,
    EntityNotFoundError,
    InvariantViolationError,
)
from neo_permissions.features.permissions import (
    DecisionReason,
    DirectGrantChanged,
    RoleAssignmentChanged,
    RoleManagementService,
)

from conftest import NOW


@pytest.fixture
def recorded(event_bus):
    """Events published on the bus, in order."""
    events = []

    async def record(event):
        events.append(event)

    for event_type in (RoleAssignmentChanged, DirectGrantChanged):
        event_bus.subscribe(event_type, record)
    return events


class TestAssignRole:

    @pytest.mark.asyncio
    async def test_assignment_is_visible_on_return(self, role_service, resolver):
        assert await resolver.check_permission("P2", "T1", "documents", "write") is False

        await role_service.assign_role("P2", "role-editor", "T1")

        assert await resolver.check_permission("P2", "T1", "documents", "write") is True

    @pytest.mark.asyncio
    async def test_publishes_after_write(self, role_service, store, recorded):
        await role_service.assign_role("P2", "role-editor", "T1")

        assert recorded == [RoleAssignmentChanged("P2", "T1", occurred_at=recorded[0].occurred_at)]

    @pytest.mark.asyncio
    async def test_role_from_other_tenant_rejected(self, role_service, recorded):
        with pytest.raises(EntityBoundaryViolationError) as exc_info:
            await role_service.assign_role("P1", "role-editor-t2", "T1")

        assert exc_info.value.details["entity_tenant_id"] == "T2"
        assert recorded == []

    @pytest.mark.asyncio
    async def test_system_role_with_tenant_rejected(self, role_service):
        with pytest.raises(InvariantViolationError):
            await role_service.assign_role("P1", "role-superadmin", "T1")

    @pytest.mark.asyncio
    async def test_tenant_role_without_tenant_rejected(self, role_service):
        with pytest.raises(InvariantViolationError):
            await role_service.assign_role("P1", "role-editor", None)

    @pytest.mark.asyncio
    async def test_non_member_rejected(self, role_service):
        with pytest.raises(EntityBoundaryViolationError):
            await role_service.assign_role("P3", "role-editor", "T1")

    @pytest.mark.asyncio
    async def test_unknown_role(self, role_service):
        with pytest.raises(EntityNotFoundError):
            await role_service.assign_role("P1", "role-missing", "T1")

    @pytest.mark.asyncio
    async def test_system_role_assignment(self, role_service, resolver):
        await role_service.assign_role("P3", "role-superadmin", None)

        decision = await resolver.evaluate("P3", "T1", "documents", "delete")

        assert decision.reason == DecisionReason.SUPERADMIN

    @pytest.mark.asyncio
    async def test_expiring_assignment(self, role_service, resolver, clock):
        await role_service.assign_role("P2", "role-editor", "T1", expires_at=NOW + timedelta(minutes=5))

        assert await resolver.check_permission("P2", "T1", "documents", "write") is True

        clock.advance(301)
        assert await resolver.check_permission("P2", "T1", "documents", "write") is False


class TestGrantedBy:

    @pytest.mark.asyncio
    async def test_member_without_management_permission_denied(self, role_service, store):
        with pytest.raises(AuthorizationError):
            await role_service.assign_role("P2", "role-editor", "T1", granted_by="P2")

        assert await store.find_role_grant("P2", "T1", "documents", "write", NOW) is None

    @pytest.mark.asyncio
    async def test_tenant_admin_allowed(self, role_service):
        assignment = await role_service.assign_role("P2", "role-editor", "T1", granted_by="ADMIN")

        assert assignment.role_id == "role-editor"

    @pytest.mark.asyncio
    async def test_superadmin_allowed_anywhere(self, role_service):
        await role_service.assign_role("P3", "role-editor-t2", "T2", granted_by="root")

    @pytest.mark.asyncio
    async def test_tenant_admin_cannot_manage_system_roles(self, role_service):
        with pytest.raises(AuthorizationError):
            await role_service.assign_role("P2", "role-superadmin", None, granted_by="ADMIN")

    @pytest.mark.asyncio
    async def test_tenant_admin_cannot_grant_in_other_tenant(self, role_service):
        with pytest.raises(AuthorizationError):
            await role_service.grant_permission("P3", "perm-t2-doc-write", "T2", granted_by="ADMIN")


class TestRevokeRole:

    @pytest.mark.asyncio
    async def test_revoke_takes_effect(self, role_service, resolver):
        assert await resolver.check_permission("P1", "T1", "documents", "write") is True

        assert await role_service.revoke_role("P1", "role-editor", "T1") is True

        assert await resolver.check_permission("P1", "T1", "documents", "write") is False

    @pytest.mark.asyncio
    async def test_revoking_absent_assignment_publishes_nothing(self, role_service, recorded):
        assert await role_service.revoke_role("P2", "role-editor", "T1") is False
        assert recorded == []


class TestDirectGrants:

    @pytest.mark.asyncio
    async def test_instance_grant(self, role_service, resolver):
        await role_service.grant_permission("P2", "perm-doc-delete", "T1", resource_instance_id="doc-X")

        assert await resolver.check_permission("P2", "T1", "documents", "delete", "doc-X") is True
        assert await resolver.check_permission("P2", "T1", "documents", "delete", "doc-Y") is False

    @pytest.mark.asyncio
    async def test_permission_from_other_tenant_rejected(self, role_service):
        with pytest.raises(EntityBoundaryViolationError):
            await role_service.grant_permission("P1", "perm-t2-doc-write", "T1")

    @pytest.mark.asyncio
    async def test_unknown_permission(self, role_service):
        with pytest.raises(EntityNotFoundError):
            await role_service.grant_permission("P1", "perm-missing", "T1")

    @pytest.mark.asyncio
    async def test_revoke(self, role_service, resolver):
        await role_service.grant_permission("P2", "perm-doc-delete", "T1")
        assert await resolver.check_permission("P2", "T1", "documents", "delete") is True

        assert await role_service.revoke_permission("P2", "perm-doc-delete", "T1") is True

        assert await resolver.check_permission("P2", "T1", "documents", "delete") is False


class TestRolePermissions:

    @pytest.mark.asyncio
    async def test_add_reaches_holders(self, role_service, resolver):
        assert await resolver.check_permission("P1", "T1", "documents", "delete") is False

        await role_service.add_role_permission("role-editor", "perm-doc-delete")

        assert await resolver.check_permission("P1", "T1", "documents", "delete") is True

    @pytest.mark.asyncio
    async def test_remove_reaches_holders(self, role_service, resolver):
        assert await resolver.check_permission("P1", "T1", "documents", "write") is True

        assert await role_service.remove_role_permission("role-editor", "perm-doc-write") is True

        assert await resolver.check_permission("P1", "T1", "documents", "write") is False

    @pytest.mark.asyncio
    async def test_cross_tenant_role_permission_rejected(self, role_service):
        with pytest.raises(EntityBoundaryViolationError):
            await role_service.add_role_permission("role-editor", "perm-t2-doc-write")


class TestMemberships:

    @pytest.mark.asyncio
    async def test_remove_membership(self, role_service, resolver):
        assert await resolver.check_permission("P1", "T1", "documents", "write") is True

        assert await role_service.remove_membership("P1", "T1") is True

        decision = await resolver.evaluate("P1", "T1", "documents", "write")
        assert decision.reason == DecisionReason.NOT_A_MEMBER

    @pytest.mark.asyncio
    async def test_add_membership_unknown_tenant(self, role_service):
        with pytest.raises(EntityNotFoundError):
            await role_service.add_membership("P1", "T-missing")


class TestProvisioning:

    @pytest.mark.asyncio
    async def test_assigns_default_role(self, role_service, resolver):
        assert (await resolver.evaluate("P5", "T1", "documents", "read")).reason == DecisionReason.NOT_A_MEMBER

        await role_service.provision_principal("P5", "T1")

        assert await resolver.check_permission("P5", "T1", "documents", "read") is True
        assert await resolver.check_permission("P5", "T1", "documents", "write") is False

    @pytest.mark.asyncio
    async def test_tenant_without_default_role(self, role_service, resolver, store):
        await role_service.provision_principal("P5", "T2")

        assert await store.has_membership("P5", "T2") is True
        assert await resolver.get_effective_permissions("P5", "T2") == frozenset()

    @pytest.mark.asyncio
    async def test_unknown_tenant_raises(self, role_service):
        with pytest.raises(EntityNotFoundError):
            await role_service.provision_principal("P5", "T-missing")

    @pytest.mark.asyncio
    async def test_default_role_disabled(self, store, validator, event_bus, coordinator, resolver):
        service = RoleManagementService(store, validator, event_bus, default_role_name=None)
        service.register()

        await service.provision_principal("P5", "T1")

        assert await resolver.get_effective_permissions("P5", "T1") == frozenset()
