"""Subscription tiers and the permissions each one grants.

The tier table is explicit: each tier's set is built from the one below it,
and ENTERPRISE is every defined permission.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from enum import Enum

logger = logging.getLogger(__name__)


class Permission(str, Enum):
    CUSTOMERS_READ = "customers:read"
    CUSTOMERS_WRITE = "customers:write"
    QUOTES_READ = "quotes:read"
    QUOTES_WRITE = "quotes:write"
    WORK_ORDERS_READ = "work_orders:read"
    WORK_ORDERS_WRITE = "work_orders:write"
    BILLING_READ = "billing:read"
    BILLING_WRITE = "billing:write"
    KB_READ = "kb:read"
    REPORTS_READ = "reports:read"


class SubscriptionTier(str, Enum):
    FREE = "FREE"
    STARTER = "STARTER"
    PROFESSIONAL = "PROFESSIONAL"
    ENTERPRISE = "ENTERPRISE"


TIER_ORDER: tuple[SubscriptionTier, ...] = (
    SubscriptionTier.FREE,
    SubscriptionTier.STARTER,
    SubscriptionTier.PROFESSIONAL,
    SubscriptionTier.ENTERPRISE,
)

_FREE = frozenset({
    Permission.CUSTOMERS_READ,
    Permission.QUOTES_READ,
    Permission.WORK_ORDERS_READ,
    Permission.KB_READ,
})
_STARTER = _FREE | {
    Permission.CUSTOMERS_WRITE,
    Permission.QUOTES_WRITE,
    Permission.WORK_ORDERS_WRITE,
}
_PROFESSIONAL = _STARTER | {
    Permission.BILLING_READ,
    Permission.BILLING_WRITE,
}

TIER_PERMISSIONS: dict[SubscriptionTier, frozenset[Permission]] = {
    SubscriptionTier.FREE: _FREE,
    SubscriptionTier.STARTER: _STARTER,
    SubscriptionTier.PROFESSIONAL: _PROFESSIONAL,
    SubscriptionTier.ENTERPRISE: frozenset(Permission),
}


def tier_grants(tier: SubscriptionTier, required: Iterable[str]) -> bool:
    """True when *tier*'s permission set is a superset of *required*."""
    granted = {p.value for p in TIER_PERMISSIONS[tier]}
    return {_permission_value(r) for r in required} <= granted


def _permission_value(permission: str) -> str:
    return permission.value if isinstance(permission, Permission) else str(permission)


# ---------------------------------------------------------------------------
# Subscription lookup
# ---------------------------------------------------------------------------

class SubscriptionStore(ABC):
    """Resolves a user's tier. Swap for the billing database in production."""

    @abstractmethod
    async def get_tier(self, user_id: str) -> SubscriptionTier | None: ...


class InMemorySubscriptionStore(SubscriptionStore):
    def __init__(self, tiers: dict[str, SubscriptionTier] | None = None) -> None:
        self._tiers: dict[str, SubscriptionTier] = dict(tiers or {})

    async def get_tier(self, user_id: str) -> SubscriptionTier | None:
        return self._tiers.get(user_id)

    def set_tier(self, user_id: str, tier: SubscriptionTier) -> None:
        self._tiers[user_id] = tier


class PermissionService:
    """Checks a caller's tier against a tool's declared permissions."""

    def __init__(self, subscriptions: SubscriptionStore) -> None:
        self._subscriptions = subscriptions

    async def tier_for(self, user_id: str) -> SubscriptionTier:
        tier = await self._subscriptions.get_tier(user_id)
        return tier or SubscriptionTier.FREE

    async def has_permissions(self, user_id: str, required: Iterable[str]) -> bool:
        required = tuple(required)
        tier = await self.tier_for(user_id)
        allowed = tier_grants(tier, required)
        if not allowed:
            logger.info(
                "user=%s tier=%s lacks one of %s",
                user_id, tier.value, [_permission_value(r) for r in required],
            )
        return allowed
