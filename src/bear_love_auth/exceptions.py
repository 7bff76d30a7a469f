"""Two-factor authentication errors.

Every error carries a ``kind`` from the closed :class:`MfaErrorKind`
enumeration. Provider adapters translate vendor error shapes into these
classes, so coordinators never inspect provider messages.
"""

from __future__ import annotations

from enum import Enum
from typing import ClassVar


class MfaErrorKind(str, Enum):
    """Closed set of failure kinds surfaced to callers."""

    VALIDATION = "validation"
    UNAUTHENTICATED = "unauthenticated"
    NOT_FOUND = "not_found"
    INVALID_CODE = "invalid_code"
    CHALLENGE_EXPIRED = "challenge_expired"
    SERVICE_UNAVAILABLE = "service_unavailable"
    STATE_CONFLICT = "state_conflict"


# ═══════════════════════════════════════════════════════════════
# BASE ERROR
# ═══════════════════════════════════════════════════════════════


class AuthError(Exception):
    """Base class for all authentication errors.

    Attributes:
        kind: Failure kind used by callers to pick user-facing messaging.
        retryable: Whether the same call may succeed if simply repeated.
    """

    kind: ClassVar[MfaErrorKind] = MfaErrorKind.SERVICE_UNAVAILABLE
    retryable: ClassVar[bool] = False
    default_message: ClassVar[str] = "Authentication error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


# ═══════════════════════════════════════════════════════════════
# LOCAL VALIDATION
# ═══════════════════════════════════════════════════════════════


class ValidationError(AuthError):
    """Raised when input is malformed. Never involves a network call."""

    kind = MfaErrorKind.VALIDATION
    default_message = "Invalid input"


# ═══════════════════════════════════════════════════════════════
# SESSION
# ═══════════════════════════════════════════════════════════════


class UnauthenticatedError(AuthError):
    """Raised when there is no session or the session is invalid.

    This is the only fatal kind: the whole flow must be restarted after
    re-authentication.
    """

    kind = MfaErrorKind.UNAUTHENTICATED
    default_message = "Not authenticated"


# ═══════════════════════════════════════════════════════════════
# LOOKUP
# ═══════════════════════════════════════════════════════════════


class NotFoundError(AuthError):
    """Raised when a referenced factor or challenge is unknown."""

    kind = MfaErrorKind.NOT_FOUND
    default_message = "Not found"


class FactorNotFoundError(NotFoundError):
    """Raised when a factor does not exist for the current account.

    Factors owned by another account are reported the same way.
    """

    default_message = "Factor not found"


class ChallengeNotFoundError(NotFoundError):
    """Raised when a challenge id is unknown to the provider."""

    default_message = "Challenge not found"


# ═══════════════════════════════════════════════════════════════
# PROOF
# ═══════════════════════════════════════════════════════════════


class InvalidCodeError(AuthError):
    """Raised when the provider rejects a one-time code."""

    kind = MfaErrorKind.INVALID_CODE
    default_message = "Invalid verification code"


class ChallengeExpiredError(AuthError):
    """Raised when a challenge has expired or was already consumed."""

    kind = MfaErrorKind.CHALLENGE_EXPIRED
    default_message = "Challenge has expired"


# ═══════════════════════════════════════════════════════════════
# AVAILABILITY
# ═══════════════════════════════════════════════════════════════


class ServiceUnavailableError(AuthError):
    """Raised on transient provider or network failures."""

    kind = MfaErrorKind.SERVICE_UNAVAILABLE
    retryable = True
    default_message = "Authentication service unavailable"


class EnrollmentUnavailableError(ServiceUnavailableError):
    """Raised when the provider cannot start a new enrollment."""

    default_message = "Failed to start enrollment"


# ═══════════════════════════════════════════════════════════════
# STATE
# ═══════════════════════════════════════════════════════════════


class StateConflictError(AuthError):
    """Raised when an operation is not valid in the current state."""

    kind = MfaErrorKind.STATE_CONFLICT
    default_message = "Operation not allowed in the current state"


class NoEnrollmentInProgressError(StateConflictError):
    """Raised when verifying with no enrollment started."""

    default_message = "No enrollment in progress"


class NoVerifiedFactorError(StateConflictError):
    """Raised when a verified factor is required but none exists.

    During sign-in this means the provider demands AAL2 for an account
    with no usable factor, which is a policy/state desync.
    """

    default_message = "No verified factor found"


class InsufficientAssuranceError(StateConflictError):
    """Raised when an operation needs an AAL2 session."""

    default_message = "AAL2 session required"


class StepUpRequiredError(StateConflictError):
    """Raised when a session still owes a second-factor challenge."""

    default_message = "Two-factor verification required"


__all__: list[str] = [
    "MfaErrorKind",
    "AuthError",
    "ValidationError",
    "UnauthenticatedError",
    "NotFoundError",
    "FactorNotFoundError",
    "ChallengeNotFoundError",
    "InvalidCodeError",
    "ChallengeExpiredError",
    "ServiceUnavailableError",
    "EnrollmentUnavailableError",
    "StateConflictError",
    "NoEnrollmentInProgressError",
    "NoVerifiedFactorError",
    "InsufficientAssuranceError",
    "StepUpRequiredError",
]
