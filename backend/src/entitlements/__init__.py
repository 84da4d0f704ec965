"""
Plan-based entitlements for workspaces.

This module provides:
- plans: tier definitions (limits and feature flags)
- usage: live usage counting and the monthly import counter
- service: get_workspace_plan, the pure plan + usage resolver
- policy: caller-side checks that raise EntitlementError

Only the dependency-free pieces are re-exported here; import service and
policy from their modules.
"""

from src.entitlements.plans import (
    PLAN_DEFS,
    FeatureKey,
    LimitKey,
    PlanDefinition,
    PlanTier,
    get_plan_definition,
    parse_plan_tier,
)
from src.entitlements.errors import EntitlementError, EntitlementReason

__all__ = [
    "PLAN_DEFS",
    "FeatureKey",
    "LimitKey",
    "PlanDefinition",
    "PlanTier",
    "get_plan_definition",
    "parse_plan_tier",
    "EntitlementError",
    "EntitlementReason",
]
