"""Security log events.

Events mirror the rows of the ``security_logs`` table: who did what, from
where, and whether it worked.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

MAX_ACTION_LENGTH = 100
MAX_PAGE_PATH_LENGTH = 500
MAX_DETAILS_LENGTH = 10_000


class SecurityAction(str, Enum):
    """Actions written to the security log."""

    # Admin area. Reserved for the admin back office, which records them
    # through SecurityLogger; nothing in this package emits them.
    ADMIN_ACCESS_ATTEMPT = "admin_access_attempt"
    ADMIN_ACCESS_GRANTED = "admin_access_granted"
    ADMIN_ACCESS_DENIED = "admin_access_denied"

    # Session
    SIGN_IN = "sign_in"
    SIGN_OUT = "sign_out"

    # Two-factor
    MFA_ENROLLMENT_STARTED = "mfa_enrollment_started"
    MFA_ENROLLMENT_CANCELLED = "mfa_enrollment_cancelled"
    MFA_ENABLED = "mfa_enabled"
    MFA_DISABLED = "mfa_disabled"
    MFA_CHALLENGE_VERIFIED = "mfa_challenge_verified"
    MFA_CHALLENGE_FAILED = "mfa_challenge_failed"


def _sanitize_details(details: Any) -> dict[str, Any] | None:
    """Keep ``details`` only if it is a mapping of bounded JSON size."""
    if not isinstance(details, dict):
        return None
    try:
        encoded = json.dumps(details)
    except (TypeError, ValueError):
        return None
    if len(encoded) > MAX_DETAILS_LENGTH:
        return None
    return details


@dataclass(frozen=True)
class SecurityEvent:
    """One security log entry.

    Attributes:
        action: What happened.
        success: Whether the operation succeeded.
        user_id: Account involved, if known.
        user_email: Email of that account, if known.
        details: Small JSON-serialisable mapping with extra context.
        page_path: Client page the action originated from.
        user_agent: Client user agent string.
        ip_address: Client IP address.
        timestamp: When the event occurred (UTC).
        error_code: Failure kind when ``success`` is False.
    """

    action: SecurityAction
    success: bool = True
    user_id: str | None = None
    user_email: str | None = None
    details: dict[str, Any] | None = None
    page_path: str | None = None
    user_agent: str | None = None
    ip_address: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    error_code: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "details", _sanitize_details(self.details))
        if self.page_path is not None:
            object.__setattr__(
                self, "page_path", str(self.page_path)[:MAX_PAGE_PATH_LENGTH]
            )
        if not self.success and not self.error_code:
            object.__setattr__(self, "error_code", "UNKNOWN_ERROR")

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a row-shaped dictionary."""
        return {
            "action": self.action.value[:MAX_ACTION_LENGTH],
            "success": self.success,
            "user_id": self.user_id,
            "user_email": self.user_email,
            "details": self.details,
            "page_path": self.page_path,
            "user_agent": self.user_agent,
            "ip_address": self.ip_address,
            "timestamp": self.timestamp.isoformat(),
            "error_code": self.error_code,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SecurityEvent:
        """Create an event from a row-shaped dictionary.

        Raises:
            ValueError: If ``action`` is missing or unknown.
        """
        action = data.get("action")
        if not action or not isinstance(action, str):
            raise ValueError("action is required")
        try:
            parsed_action = SecurityAction(action)
        except ValueError as e:
            raise ValueError(f"Invalid action: {action}") from e

        timestamp = data.get("timestamp")
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
            if timestamp.tzinfo is None:
                timestamp = timestamp.replace(tzinfo=timezone.utc)
        elif timestamp is None:
            timestamp = datetime.now(timezone.utc)

        return cls(
            action=parsed_action,
            success=bool(data.get("success", True)),
            user_id=data.get("user_id"),
            user_email=data.get("user_email"),
            details=data.get("details"),
            page_path=data.get("page_path"),
            user_agent=data.get("user_agent"),
            ip_address=data.get("ip_address"),
            timestamp=timestamp,
            error_code=data.get("error_code"),
        )


__all__: list[str] = [
    "SecurityAction",
    "SecurityEvent",
    "MAX_ACTION_LENGTH",
    "MAX_PAGE_PATH_LENGTH",
    "MAX_DETAILS_LENGTH",
]
