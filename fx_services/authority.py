"""
fx_services.authority -- Capability checks at the workflow boundary.

Responsibility:
    Answer the three boolean questions the order workflow needs before a
    destructive action: may this caller cancel an order, delete an order,
    delete many orders at once.  ``require_capability`` turns a negative
    answer into ``ForbiddenError`` before any store call is made.

Architecture position:
    Services layer.  ``AuthorizationPort`` is the seam; the workflow engine
    calls it synchronously and never looks at roles itself.  Two adapters
    ship here: ``StaticCapabilities`` (flags handed over by the session) and
    ``RolePermissionAuthority`` (role -> action-permission map).

Invariants:
    - The kernel stays actor-agnostic; callers resolve the actor's roles.
    - A role not present in the permission map grants nothing.
    - The ``admin`` role, when ``admin_role`` is set, grants every action.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

from fx_config.schema import AuthoritySettings
from fx_kernel.exceptions import ForbiddenError
from fx_kernel.logging_config import get_logger

logger = get_logger("services.authority")


class Capability(str, Enum):
    """Action permissions consumed by the order workflow."""
    CANCEL_ORDER = "cancelOrder"
    DELETE_ORDER = "deleteOrder"
    DELETE_MANY_ORDERS = "deleteManyOrders"


@runtime_checkable
class AuthorizationPort(Protocol):
    """Synchronous capability predicates for the current actor."""

    def can_cancel_order(self) -> bool:
        ...

    def can_delete_order(self) -> bool:
        ...

    def can_delete_many_orders(self) -> bool:
        ...


@dataclass(frozen=True)
class StaticCapabilities:
    """Capability flags supplied directly by session context."""
    cancel_order: bool = False
    delete_order: bool = False
    delete_many_orders: bool = False

    @classmethod
    def allow_all(cls) -> StaticCapabilities:
        return cls(True, True, True)

    def can_cancel_order(self) -> bool:
        return self.cancel_order

    def can_delete_order(self) -> bool:
        return self.delete_order

    def can_delete_many_orders(self) -> bool:
        return self.delete_many_orders


def check_permission(
    role_permissions: Mapping[str, frozenset[str]],
    assigned_roles: tuple[str, ...],
    required_permission: str,
    admin_role: str | None = None,
) -> tuple[bool, str]:
    """Check whether any assigned role grants ``required_permission``.

    Returns:
        (allowed, reason).  ``reason`` is empty when allowed.
    """
    if not assigned_roles:
        return (False, "no roles assigned")
    if admin_role is not None and admin_role in assigned_roles:
        return (True, "")

    permissions: set[str] = set()
    for role in assigned_roles:
        permissions |= role_permissions.get(role, frozenset())

    if required_permission not in permissions:
        return (False, f"permission '{required_permission}' not granted to actor")
    return (True, "")


class RolePermissionAuthority:
    """AuthorizationPort backed by a role -> permitted-actions map.

    Example:
        authority = RolePermissionAuthority(
            {"manager": {"cancelOrder"}, "viewer": set()},
            assigned_roles=("manager",),
        )
        authority.can_cancel_order()   # True
        authority.can_delete_order()   # False
    """

    def __init__(
        self,
        role_permissions: Mapping[str, Iterable[str]],
        assigned_roles: Iterable[str],
        admin_role: str | None = "admin",
    ) -> None:
        self._role_permissions: dict[str, frozenset[str]] = {
            role: frozenset(perms) for role, perms in role_permissions.items()
        }
        self._assigned_roles = tuple(assigned_roles)
        self._admin_role = admin_role

    @classmethod
    def from_settings(
        cls, settings: AuthoritySettings, assigned_roles: Iterable[str],
    ) -> RolePermissionAuthority:
        """Build from the ``authority`` section of the back-office config."""
        return cls(settings.as_mapping(), assigned_roles, settings.admin_role)

    def has_permission(self, permission: str) -> bool:
        allowed, reason = check_permission(
            self._role_permissions,
            self._assigned_roles,
            permission,
            self._admin_role,
        )
        if not allowed:
            logger.debug(
                "permission_denied",
                extra={
                    "permission": permission,
                    "roles": list(self._assigned_roles),
                    "reason": reason,
                },
            )
        return allowed

    def can_cancel_order(self) -> bool:
        return self.has_permission(Capability.CANCEL_ORDER.value)

    def can_delete_order(self) -> bool:
        return self.has_permission(Capability.DELETE_ORDER.value)

    def can_delete_many_orders(self) -> bool:
        return self.has_permission(Capability.DELETE_MANY_ORDERS.value)


_PREDICATES = {
    Capability.CANCEL_ORDER: "can_cancel_order",
    Capability.DELETE_ORDER: "can_delete_order",
    Capability.DELETE_MANY_ORDERS: "can_delete_many_orders",
}


def is_granted(authority: AuthorizationPort, capability: Capability) -> bool:
    """Evaluate the port predicate matching ``capability``."""
    return bool(getattr(authority, _PREDICATES[capability])())


def require_capability(
    authority: AuthorizationPort,
    capability: Capability,
    action: str,
) -> None:
    """Raise ForbiddenError unless ``authority`` grants ``capability``."""
    if not is_granted(authority, capability):
        logger.warning(
            "capability_denied",
            extra={"action": action, "capability": capability.value},
        )
        raise ForbiddenError(action, capability.value)
