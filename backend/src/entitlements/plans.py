"""
Subscription plan definitions.

Limits and feature flags are a pure function of the plan tier; nothing here
touches the database.
"""

import enum
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional


class PlanTier(str, enum.Enum):
    STARTER = "STARTER"
    PRO = "PRO"
    AGENCY = "AGENCY"
    ENTERPRISE = "ENTERPRISE"


class FeatureKey(str, enum.Enum):
    PORTAL = "portal"
    SHOPIFY = "shopify"
    NOTIFICATIONS = "notifications"
    CSV_IMPORT = "csv_import"
    DEMO_MODE = "demo_mode"


class LimitKey(str, enum.Enum):
    SEATS = "seats"
    SKUS = "skus"
    COMPETITORS = "competitors"
    SNAPSHOT_ROWS = "snapshot_rows"


@dataclass(frozen=True)
class PlanDefinition:
    """Limits and feature flags for one tier."""

    tier: PlanTier
    seat_limit: int
    sku_limit: int
    competitor_limit: int
    monthly_snapshot_import_limit: int
    features: Mapping[FeatureKey, bool]

    def __post_init__(self) -> None:
        object.__setattr__(self, "features", MappingProxyType(dict(self.features)))

    def has_feature(self, feature: FeatureKey) -> bool:
        return bool(self.features.get(feature, False))

    def limit_for(self, key: LimitKey) -> int:
        if key == LimitKey.SEATS:
            return self.seat_limit
        if key == LimitKey.SKUS:
            return self.sku_limit
        if key == LimitKey.COMPETITORS:
            return self.competitor_limit
        return self.monthly_snapshot_import_limit

    def to_dict(self) -> dict:
        return {
            "seat_limit": self.seat_limit,
            "sku_limit": self.sku_limit,
            "competitor_limit": self.competitor_limit,
            "monthly_snapshot_import_limit": self.monthly_snapshot_import_limit,
            "features": {key.value: enabled for key, enabled in self.features.items()},
        }


def _features(**enabled: bool) -> dict:
    return {FeatureKey(name): value for name, value in enabled.items()}


_ALL_FEATURES = _features(portal=True, shopify=True, notifications=True, csv_import=True, demo_mode=True)

PLAN_DEFS: Mapping[PlanTier, PlanDefinition] = MappingProxyType({
    PlanTier.STARTER: PlanDefinition(
        tier=PlanTier.STARTER,
        seat_limit=2,
        sku_limit=200,
        competitor_limit=5,
        monthly_snapshot_import_limit=5_000,
        features=_features(portal=False, shopify=False, notifications=False, csv_import=True, demo_mode=True),
    ),
    PlanTier.PRO: PlanDefinition(
        tier=PlanTier.PRO,
        seat_limit=5,
        sku_limit=1_000,
        competitor_limit=15,
        monthly_snapshot_import_limit=50_000,
        features=_ALL_FEATURES,
    ),
    PlanTier.AGENCY: PlanDefinition(
        tier=PlanTier.AGENCY,
        seat_limit=20,
        sku_limit=5_000,
        competitor_limit=50,
        monthly_snapshot_import_limit=250_000,
        features=_ALL_FEATURES,
    ),
    PlanTier.ENTERPRISE: PlanDefinition(
        tier=PlanTier.ENTERPRISE,
        seat_limit=999,
        sku_limit=999_999,
        competitor_limit=999,
        monthly_snapshot_import_limit=9_999_999,
        features=_ALL_FEATURES,
    ),
})


def parse_plan_tier(value: Optional[str]) -> Optional[PlanTier]:
    """Map a stored string to a tier; unknown or empty values give None."""
    if not value:
        return None
    try:
        return PlanTier(value.upper())
    except ValueError:
        return None


def get_plan_definition(tier: PlanTier) -> PlanDefinition:
    return PLAN_DEFS[tier]
