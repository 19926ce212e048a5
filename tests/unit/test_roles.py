"""
Tests for the Role Model
========================

Tests presets, normalization, role building and merging.
"""

import random

import pytest

from sentinel_auth.access.permissions import Permission
from sentinel_auth.access.roles import (
    ROLE_PRESETS,
    Role,
    build_role,
    is_preset_role,
    is_valid_role,
    merge_roles,
    normalize_permissions,
    preset_permissions,
    preset_roles,
)


class TestPresets:
    """Tests for built-in role presets."""

    def test_known_presets(self):
        assert set(ROLE_PRESETS) == {"admin", "security-analyst", "support", "user"}
        assert is_preset_role("security-analyst")
        assert not is_preset_role("auditor")

    def test_unknown_preset_is_empty(self):
        """Unknown names are custom roles, not errors."""
        assert preset_permissions("auditor") == ()

    def test_user_preset(self):
        assert set(preset_permissions("user")) == {
            Permission.AUTH_LOGIN,
            Permission.AUTH_LOGOUT,
            Permission.MFA_SETUP,
            Permission.MFA_VERIFY,
            Permission.USER_READ,
            Permission.USER_UPDATE,
        }


class TestNormalize:
    """Tests for permission normalization."""

    def test_filters_invalid(self):
        assert normalize_permissions(["user:read", "bogus", "audit:delete"]) == (Permission.USER_READ,)

    def test_deduplicates(self):
        assert normalize_permissions(["user:read", "user:read", Permission.USER_READ]) == (
            Permission.USER_READ,
        )

    def test_catalog_order_wildcards_last(self):
        result = normalize_permissions(["oauth:*", "auth:login", "user:*", "user:create"])
        assert result == (
            Permission.USER_CREATE,
            Permission.AUTH_LOGIN,
            Permission.USER_ALL,
            Permission.OAUTH_ALL,
        )

    def test_idempotent(self):
        values = ["mfa:*", "role:assign", "user:list", "nope", "user:create"]
        once = normalize_permissions(values)
        assert normalize_permissions(once) == once

    def test_order_independent(self):
        values = [p.value for p in Permission] + ["bad:perm"]
        expected = normalize_permissions(values)
        rng = random.Random(7)
        for _ in range(5):
            shuffled = values[:]
            rng.shuffle(shuffled)
            assert normalize_permissions(shuffled) == expected

    def test_empty(self):
        assert normalize_permissions([]) == ()


class TestBuildRole:
    """Tests for role construction."""

    def test_admin_preset(self):
        """Building a preset yields exactly its normalized permissions."""
        role = build_role("admin")
        assert role.name == "admin"
        assert role.permissions == normalize_permissions(ROLE_PRESETS["admin"])
        assert role.permissions[-1] is Permission.USER_ALL

    def test_preset_with_extras(self):
        role = build_role("support", extra_permissions=["user:update", "user:read"])
        assert Permission.USER_UPDATE in role.permissions
        assert role.permissions.count(Permission.USER_READ) == 1

    def test_custom_role(self):
        role = build_role("auditor", description="Read audit", extra_permissions=["audit:read", "x:y"])
        assert role.permissions == (Permission.AUDIT_READ,)
        assert role.description == "Read audit"

    def test_equal_roles_compare_equal(self):
        a = build_role("custom", extra_permissions=["user:read", "user:list"])
        b = build_role("custom", extra_permissions=["user:list", "user:read"])
        assert a == b

    def test_role_has_permission(self):
        assert build_role("admin").has_permission("user:delete")


class TestMergeRoles:
    """Tests for merging roles and loose permissions."""

    def test_admin_and_support_union(self):
        admin = build_role("admin")
        support = build_role("support")
        merged = merge_roles([admin, support])
        assert set(merged) == set(admin.permissions) | set(support.permissions)
        assert len(merged) == len(set(merged))

    def test_mixed_inputs(self):
        merged = merge_roles([build_role("user"), ["audit:read", "invalid"]])
        assert Permission.AUDIT_READ in merged
        assert Permission.AUTH_LOGIN in merged

    def test_empty(self):
        assert merge_roles([]) == ()


class TestRoleRecords:
    """Tests for role serialization."""

    def test_round_trip(self):
        role = build_role("auditor", description="Audit", extra_permissions=["audit:read"])
        assert Role.from_dict(role.to_dict()) == role

    def test_from_dict_drops_unknown_permissions(self):
        role = Role.from_dict({"name": " ops ", "permissions": ["session:list", "ops:run"]})
        assert role.name == "ops"
        assert role.permissions == (Permission.SESSION_LIST,)

    def test_from_dict_requires_name(self):
        with pytest.raises(ValueError):
            Role.from_dict({"name": "  ", "permissions": []})

    def test_is_valid_role(self):
        assert is_valid_role({"name": "a", "permissions": ["user:read"]})
        assert not is_valid_role({"name": "a", "permissions": ["user:fly"]})
        assert not is_valid_role({"permissions": []})
        assert not is_valid_role("admin")

    def test_preset_roles(self):
        names = [r.name for r in preset_roles()]
        assert names == list(ROLE_PRESETS)
