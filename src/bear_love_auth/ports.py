"""Collaborator ports (protocols).

The identity provider is passed explicitly to every coordinator, so tests
can substitute a fake. All ports use @runtime_checkable for isinstance
checks.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .assurance import AssuranceLevels
    from .audit.events import SecurityAction, SecurityEvent
    from .factors import Factor, FactorKind


# ═══════════════════════════════════════════════════════════════
# VALUE TYPES
# ═══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Session:
    """Primary-authentication session held by the provider client.

    Attributes:
        access_token: Bearer token for provider calls.
        user_id: Account the session belongs to.
        email: Account email, if known.
        refresh_token: Token used to renew the session.
        expires_at: Access token expiry (timezone-aware UTC).
    """

    access_token: str
    user_id: str
    email: str | None = None
    refresh_token: str | None = None
    expires_at: datetime | None = None


@dataclass(frozen=True)
class EnrolledFactor:
    """Material returned by the provider when a factor is created.

    Attributes:
        id: New factor id (status ``pending``).
        secret: Base32 TOTP seed. Shown to the user once.
        qr_image: Scannable image of ``uri`` (data URI).
        uri: ``otpauth://`` provisioning URI.
    """

    id: str
    secret: str
    qr_image: str
    uri: str


@dataclass(frozen=True)
class ChallengeTicket:
    """Single-use challenge issued by the provider."""

    id: str
    factor_id: str
    expires_at: datetime | None = None


# ═══════════════════════════════════════════════════════════════
# IDENTITY PROVIDER PORT
# ═══════════════════════════════════════════════════════════════


@runtime_checkable
class IIdentityProvider(Protocol):
    """Session-bound client of the external identity provider.

    Factor and challenge operations act on the account of the current
    session. Implementations raise :class:`AuthError` subclasses only.

    Implementations:
        - InMemoryIdentityProvider
        - GoTrueIdentityProvider
    """

    async def sign_in(self, email: str, password: str) -> Session:
        """Password sign-in. Raises UnauthenticatedError on bad credentials."""
        ...

    async def sign_up(self, email: str, password: str) -> Session | None:
        """Create an account. Returns a session when sign-in is immediate."""
        ...

    async def sign_out(self) -> None:
        """Invalidate the current session."""
        ...

    async def reset_password_for_email(self, email: str) -> None:
        """Send a password-reset message to ``email``."""
        ...

    async def get_session(self) -> Session | None:
        """Return the current session, or None when signed out."""
        ...

    async def enroll_factor(self, kind: FactorKind, label: str) -> EnrolledFactor:
        """Create a new ``pending`` factor for the current account."""
        ...

    async def unenroll_factor(self, factor_id: str) -> None:
        """Delete a factor of the current account.

        Raises:
            FactorNotFoundError: Unknown id or owned by another account.
        """
        ...

    async def list_factors(self) -> list[Factor]:
        """Return every factor of the current account."""
        ...

    async def create_challenge(self, factor_id: str) -> ChallengeTicket:
        """Issue a single-use challenge for ``factor_id``."""
        ...

    async def verify_challenge(
        self, factor_id: str, challenge_id: str, code: str
    ) -> None:
        """Submit a code against a challenge.

        On success the factor becomes verified (if pending) and the
        session is upgraded to AAL2.

        Raises:
            InvalidCodeError: Code rejected.
            ChallengeExpiredError: Challenge expired or already used.
        """
        ...

    async def get_assurance_levels(self) -> AssuranceLevels:
        """Return the current and next assurance level of the session."""
        ...


# ═══════════════════════════════════════════════════════════════
# SECURITY LOG PORT
# ═══════════════════════════════════════════════════════════════


@runtime_checkable
class ISecurityLogStore(Protocol):
    """Protocol for security log storage.

    Stores persist authentication events for auditing and security
    monitoring (the ``security_logs`` table in production).
    """

    async def record(self, event: SecurityEvent) -> None:
        """Record a security event."""
        ...

    async def get_events(
        self,
        user_id: str,
        *,
        actions: list[SecurityAction] | None = None,
        limit: int = 100,
    ) -> list[SecurityEvent]:
        """Get events for a user, most recent first."""
        ...

    async def get_events_by_action(
        self,
        action: SecurityAction,
        *,
        limit: int = 100,
    ) -> list[SecurityEvent]:
        """Get events of one action across all users, most recent first."""
        ...


__all__: list[str] = [
    "Session",
    "EnrolledFactor",
    "ChallengeTicket",
    "IIdentityProvider",
    "ISecurityLogStore",
]
