"""
Entitlement error hierarchy.

EntitlementError is raised by the caller-side policy helpers, never by the
plan resolver. It renders as 403 FORBIDDEN; the machine-readable reason
(FEATURE_LOCKED or LIMIT_EXCEEDED) travels in ``details``.
"""

import enum
from typing import Any, Optional

from fastapi import status

from src.platform.errors import AppError, ErrorCode


class EntitlementReason(str, enum.Enum):
    FEATURE_LOCKED = "FEATURE_LOCKED"
    LIMIT_EXCEEDED = "LIMIT_EXCEEDED"


class EntitlementError(AppError):
    """The workspace plan does not allow the requested operation."""

    def __init__(
        self,
        reason: EntitlementReason,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ):
        self.reason = reason
        super().__init__(
            code=ErrorCode.FORBIDDEN,
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            details={"reason": reason.value, **(details or {})},
        )
