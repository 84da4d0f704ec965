"""
Security audit events for PharOS.

Guard decisions (CSRF rejections, rate-limit triggers, login outcomes,
plan-limit blocks) are emitted as structured log events. Emission is
best-effort: a failure here must never block or fail the primary response,
so every public function swallows its own errors and reports them on the
fallback logger.

Sensitive values are redacted before they reach any handler.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, FrozenSet, Optional

from fastapi import Request

logger = logging.getLogger("pharos.audit")
fallback_logger = logging.getLogger("pharos.audit.fallback")


class SecurityAction(str, Enum):
    """Enumeration of audited security events."""
    AUTH_LOGIN = "auth.login"
    AUTH_LOGIN_FAILED = "auth.login_failed"
    AUTH_LOGOUT = "auth.logout"
    CSRF_REJECTED = "csrf.rejected"
    RATE_LIMIT_TRIGGERED = "rate_limit.triggered"
    ACCESS_DENIED = "access.denied"
    LIMIT_BLOCKED = "limit.blocked"
    MEMBERSHIP_ADDED = "team.member_added"


class AuditOutcome(str, Enum):
    """Outcome of the audited action."""
    SUCCESS = "success"
    FAILURE = "failure"
    DENIED = "denied"


class PIIRedactor:
    """
    Redacts secrets and PII from event metadata.

    Any key whose lower-cased name contains one of SECRET_KEY_PARTS is
    replaced wholesale; e-mail addresses keep their domain.
    """

    SECRET_KEY_PARTS: FrozenSet[str] = frozenset({
        "password",
        "secret",
        "token",
        "authorization",
        "cookie",
        "csrf",
    })

    REDACTION_MARKER = "[REDACTED]"

    @classmethod
    def is_secret_key(cls, key: str) -> bool:
        lower_key = key.lower()
        return any(part in lower_key for part in cls.SECRET_KEY_PARTS)

    @classmethod
    def redact(cls, data: Any) -> Any:
        if isinstance(data, dict):
            result = {}
            for key, value in data.items():
                if cls.is_secret_key(str(key)):
                    result[key] = cls.REDACTION_MARKER
                elif str(key).lower() == "email" and isinstance(value, str) and "@" in value:
                    result[key] = f"***@{value.split('@', 1)[1]}"
                else:
                    result[key] = cls.redact(value)
            return result
        if isinstance(data, list):
            return [cls.redact(item) for item in data]
        return data


def log_security_event(
    action: SecurityAction,
    *,
    outcome: AuditOutcome = AuditOutcome.SUCCESS,
    workspace_id: Optional[str] = None,
    user_id: Optional[str] = None,
    request: Optional[Request] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> None:
    """
    Emit one structured security event. Never raises.

    Args:
        action: What happened.
        outcome: success / failure / denied.
        workspace_id: Tenant the event belongs to, when known.
        user_id: Acting user, when known.
        request: Source request; contributes path, method and correlation id.
        metadata: Extra fields; redacted before logging.
    """
    try:
        event = {
            "action": action.value,
            "outcome": outcome.value,
            "workspace_id": workspace_id,
            "user_id": user_id,
            "occurred_at": datetime.now(timezone.utc).isoformat(),
            "metadata": PIIRedactor.redact(metadata or {}),
        }
        if request is not None:
            event["path"] = request.url.path
            event["method"] = request.method
            event["correlation_id"] = getattr(request.state, "correlation_id", None)

        level = logging.INFO if outcome == AuditOutcome.SUCCESS else logging.WARNING
        logger.log(level, "Security event: %s", action.value, extra={"audit": event})
    except Exception:
        fallback_logger.error(
            "Failed to emit security event",
            extra={"action": getattr(action, "value", str(action))},
            exc_info=True,
        )
