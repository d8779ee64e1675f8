"""Tests for capability checks (fx_services/authority.py)."""

import pytest

from fx_config import DEFAULT_CONFIG_PATH, load_config
from fx_kernel.exceptions import ForbiddenError
from fx_services.authority import (
    AuthorizationPort,
    Capability,
    RolePermissionAuthority,
    StaticCapabilities,
    check_permission,
    is_granted,
    require_capability,
)

ROLE_PERMISSIONS = {
    "manager": {"cancelOrder", "deleteOrder"},
    "operator": set(),
}


class TestStaticCapabilities:

    def test_defaults_deny_everything(self):
        caps = StaticCapabilities()
        assert not caps.can_cancel_order()
        assert not caps.can_delete_order()
        assert not caps.can_delete_many_orders()

    def test_allow_all(self):
        caps = StaticCapabilities.allow_all()
        assert all(is_granted(caps, c) for c in Capability)

    def test_satisfies_port(self):
        assert isinstance(StaticCapabilities(), AuthorizationPort)


class TestRolePermissionAuthority:

    def test_manager_can_cancel_but_not_bulk_delete(self):
        authority = RolePermissionAuthority(ROLE_PERMISSIONS, ("manager",))
        assert authority.can_cancel_order()
        assert authority.can_delete_order()
        assert not authority.can_delete_many_orders()

    def test_unknown_role_grants_nothing(self):
        authority = RolePermissionAuthority(ROLE_PERMISSIONS, ("auditor",))
        assert not authority.can_cancel_order()

    def test_admin_role_grants_everything(self):
        authority = RolePermissionAuthority(ROLE_PERMISSIONS, ("admin",))
        assert authority.can_delete_many_orders()

    def test_admin_role_can_be_disabled(self):
        authority = RolePermissionAuthority(ROLE_PERMISSIONS, ("admin",), admin_role=None)
        assert not authority.can_delete_many_orders()

    def test_permissions_union_across_roles(self):
        allowed, reason = check_permission(
            {"a": frozenset({"cancelOrder"}), "b": frozenset({"deleteOrder"})},
            ("a", "b"),
            "deleteOrder",
        )
        assert allowed
        assert reason == ""

    def test_no_roles_reason(self):
        allowed, reason = check_permission({}, (), "cancelOrder")
        assert not allowed
        assert reason == "no roles assigned"


class TestRequireCapability:

    def test_raises_forbidden_and_logs(self, captured_logs):
        with pytest.raises(ForbiddenError) as exc_info:
            require_capability(StaticCapabilities(), Capability.CANCEL_ORDER, "cancel")
        assert exc_info.value.capability == "cancelOrder"
        assert exc_info.value.code == "FORBIDDEN"
        assert any(r["message"] == "capability_denied" for r in captured_logs())

    def test_passes_when_granted(self):
        require_capability(StaticCapabilities(cancel_order=True), Capability.CANCEL_ORDER, "cancel")


class TestFromSettings:

    def test_packaged_defaults(self):
        settings = load_config(DEFAULT_CONFIG_PATH).authority
        manager = RolePermissionAuthority.from_settings(settings, ["manager"])
        assert manager.can_cancel_order()
        admin = RolePermissionAuthority.from_settings(settings, [settings.admin_role])
        assert admin.can_delete_many_orders()
