"""Cross-module services: authorization port and workflow transition executor."""

from fx_services.authority import (
    AuthorizationPort,
    Capability,
    RolePermissionAuthority,
    StaticCapabilities,
    require_capability,
)
from fx_services.workflow_executor import WorkflowExecutor

__all__ = [
    "AuthorizationPort",
    "Capability",
    "RolePermissionAuthority",
    "StaticCapabilities",
    "require_capability",
    "WorkflowExecutor",
]
