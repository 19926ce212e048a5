"""
SENTINEL AUTH - Access & Authority Module

Permissions, roles, RBAC evaluation and audit logging.

Components:
- permissions.py: Permission vocabulary, validation, implication
- roles.py: Role presets, normalization, merging
- rbac.py: Effective permissions and permission assertions
- audit.py: Audit facts, sinks and redaction

Usage:
    from sentinel_auth.access import (
        Permission,
        build_role,
        effective_permissions,
        assert_all,
    )
"""

from sentinel_auth.access.permissions import (
    Action,
    Permission,
    PERMISSION_CATALOG,
    Resource,
    covers_all,
    covers_any,
    has_permission,
    implies,
    is_valid_permission,
)

from sentinel_auth.access.roles import (
    ROLE_PRESETS,
    Role,
    RoleName,
    build_role,
    is_preset_role,
    merge_roles,
    normalize_permissions,
    preset_permissions,
)

from sentinel_auth.access.rbac import (
    assert_all,
    assert_any,
    effective_permissions,
    user_can,
    user_has_all,
    user_has_any,
)

from sentinel_auth.access.audit import (
    AuditActor,
    AuditFact,
    AuditRecord,
    AuditSink,
    AuditStatus,
    AuditVerbosity,
    JsonlAuditSink,
    LoggingAuditSink,
    MemoryAuditSink,
)

__all__ = [
    # Permissions
    "Action",
    "Permission",
    "PERMISSION_CATALOG",
    "Resource",
    "covers_all",
    "covers_any",
    "has_permission",
    "implies",
    "is_valid_permission",

    # Roles
    "ROLE_PRESETS",
    "Role",
    "RoleName",
    "build_role",
    "is_preset_role",
    "merge_roles",
    "normalize_permissions",
    "preset_permissions",

    # RBAC
    "assert_all",
    "assert_any",
    "effective_permissions",
    "user_can",
    "user_has_all",
    "user_has_any",

    # Audit
    "AuditActor",
    "AuditFact",
    "AuditRecord",
    "AuditSink",
    "AuditStatus",
    "AuditVerbosity",
    "JsonlAuditSink",
    "LoggingAuditSink",
    "MemoryAuditSink",
]
