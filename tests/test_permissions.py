"""Tests for subscription tiers and the permission service."""

from __future__ import annotations

import pytest

from copilot_gateway.tools.permissions import (
    TIER_ORDER,
    TIER_PERMISSIONS,
    InMemorySubscriptionStore,
    Permission,
    PermissionService,
    SubscriptionTier,
    tier_grants,
)


class TestTierTable:
    def test_each_tier_is_superset_of_previous(self):
        for lower, higher in zip(TIER_ORDER, TIER_ORDER[1:]):
            assert TIER_PERMISSIONS[lower] <= TIER_PERMISSIONS[higher]

    def test_enterprise_has_everything(self):
        assert TIER_PERMISSIONS[SubscriptionTier.ENTERPRISE] == frozenset(Permission)

    def test_free_is_read_only(self):
        assert all(p.value.endswith(":read") for p in TIER_PERMISSIONS[SubscriptionTier.FREE])

    @pytest.mark.parametrize("tier, required, expected", [
        (SubscriptionTier.FREE, ["customers:read"], True),
        (SubscriptionTier.FREE, ["customers:write"], False),
        (SubscriptionTier.STARTER, ["customers:write", "quotes:write"], True),
        (SubscriptionTier.STARTER, ["billing:write"], False),
        (SubscriptionTier.PROFESSIONAL, [Permission.BILLING_WRITE], True),
        (SubscriptionTier.PROFESSIONAL, ["reports:read"], False),
        (SubscriptionTier.ENTERPRISE, ["reports:read"], True),
        (SubscriptionTier.FREE, [], True),
    ])
    def test_tier_grants(self, tier, required, expected):
        assert tier_grants(tier, required) is expected

    def test_unknown_permission_is_never_granted(self):
        assert not tier_grants(SubscriptionTier.ENTERPRISE, ["rockets:launch"])


class TestPermissionService:
    async def test_unknown_user_is_free(self):
        service = PermissionService(InMemorySubscriptionStore())
        assert await service.tier_for("ghost") == SubscriptionTier.FREE
        assert not await service.has_permissions("ghost", ["customers:write"])

    async def test_tier_change_takes_effect(self):
        store = InMemorySubscriptionStore()
        service = PermissionService(store)
        store.set_tier("u1", SubscriptionTier.PROFESSIONAL)
        assert await service.has_permissions("u1", ["billing:write"])

    async def test_all_required_must_be_held(self, permissions):
        assert not await permissions.has_permissions("user-starter", ["customers:write", "billing:read"])
