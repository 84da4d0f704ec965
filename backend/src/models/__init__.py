"""
Database models for workspaces, identity, billing and pricing data.

All tenant data follows strict workspace isolation.
Workspace-scoped models inherit from WorkspaceScopedMixin.
"""

from src.models.base import TimestampMixin, WorkspaceScopedMixin
from src.models.user import User
from src.models.workspace import Workspace
from src.models.auth_session import AuthSession
from src.models.membership import Membership, MembershipRole
from src.models.subscription import (
    WorkspaceSubscription,
    SubscriptionStatus,
    BLOCKING_STATUSES,
)
from src.models.usage import WorkspaceUsageMonth
from src.models.sku import SKU, SkuStatus
from src.models.competitor import Competitor

__all__ = [
    "TimestampMixin",
    "WorkspaceScopedMixin",
    "User",
    "Workspace",
    "AuthSession",
    "Membership",
    "MembershipRole",
    "WorkspaceSubscription",
    "SubscriptionStatus",
    "BLOCKING_STATUSES",
    "WorkspaceUsageMonth",
    "SKU",
    "SkuStatus",
    "Competitor",
]
