"""In-memory identity provider for development and testing.

WARNING: Secrets and passwords are kept in plain text in process memory.
Do NOT use in production.

:class:`InMemoryIdentityBackend` plays the hosted provider (accounts,
sessions, factors, challenges). Each :class:`InMemoryIdentityProvider` is a
client bound to at most one session, like a browser tab.
"""

from __future__ import annotations

import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import pyotp

from ..assurance import AssuranceLevel, AssuranceLevels
from ..config import MfaConfig
from ..exceptions import (
    ChallengeExpiredError,
    ChallengeNotFoundError,
    FactorNotFoundError,
    InsufficientAssuranceError,
    InvalidCodeError,
    ServiceUnavailableError,
    StateConflictError,
    UnauthenticatedError,
    ValidationError,
)
from ..factors import Factor, FactorKind, FactorStatus
from ..ports import ChallengeTicket, EnrolledFactor, IIdentityProvider, Session
from ..qr import render_qr_data_uri


@dataclass
class _StoredFactor:
    id: str
    user_id: str
    label: str
    secret: str
    status: FactorStatus = FactorStatus.PENDING
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_factor(self) -> Factor:
        return Factor(
            id=self.id,
            kind=FactorKind.TOTP,
            label=self.label,
            status=self.status,
            created_at=self.created_at,
        )


@dataclass
class _StoredChallenge:
    id: str
    factor_id: str
    user_id: str
    expires_at: datetime
    consumed: bool = False


@dataclass
class _StoredSession:
    user_id: str
    level: AssuranceLevel = AssuranceLevel.AAL1


@dataclass
class _Account:
    id: str
    email: str
    password: str


class InMemoryIdentityBackend:
    """Shared state of the fake identity provider.

    Example:
        ```python
        backend = InMemoryIdentityBackend()
        backend.create_user("bear@example.com", "honey-pot-42")

        provider = backend.client()
        await provider.sign_in("bear@example.com", "honey-pot-42")
        ```
    """

    def __init__(self, config: MfaConfig | None = None) -> None:
        self.config = config or MfaConfig()
        self.unavailable = False
        self.password_resets: list[str] = []
        self._accounts: dict[str, _Account] = {}
        self._factors: dict[str, _StoredFactor] = {}
        self._challenges: dict[str, _StoredChallenge] = {}
        self._sessions: dict[str, _StoredSession] = {}

    # ── Accounts ─────────────────────────────────────────────────

    def create_user(self, email: str, password: str) -> str:
        if self.find_user(email) is not None:
            raise StateConflictError("User already registered")
        user_id = str(uuid.uuid4())
        self._accounts[user_id] = _Account(id=user_id, email=email, password=password)
        return user_id

    def find_user(self, email: str) -> _Account | None:
        for account in self._accounts.values():
            if account.email.lower() == email.lower():
                return account
        return None

    def add_verified_factor(
        self, user_id: str, *, label: str = "Authenticator App"
    ) -> tuple[str, str]:
        """Attach an already verified factor. Returns ``(factor_id, secret)``."""
        stored = self._new_factor(user_id, label)
        stored.status = FactorStatus.VERIFIED
        return stored.id, stored.secret

    def client(self) -> InMemoryIdentityProvider:
        return InMemoryIdentityProvider(self)

    def signed_in_client(self, user_id: str) -> InMemoryIdentityProvider:
        """Client holding a fresh AAL1 session for ``user_id``."""
        return InMemoryIdentityProvider(self, session=self._open_session(user_id))

    # ── Internals used by clients ────────────────────────────────

    def _check_available(self) -> None:
        if self.unavailable:
            raise ServiceUnavailableError()

    def _open_session(self, user_id: str) -> Session:
        token = secrets.token_urlsafe(32)
        self._sessions[token] = _StoredSession(user_id=user_id)
        account = self._accounts[user_id]
        return Session(
            access_token=token,
            user_id=user_id,
            email=account.email,
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        )

    def _session(self, token: str | None) -> _StoredSession:
        stored = self._sessions.get(token) if token else None
        if stored is None:
            raise UnauthenticatedError()
        return stored

    def _close_session(self, token: str) -> None:
        self._sessions.pop(token, None)

    def _new_factor(self, user_id: str, label: str) -> _StoredFactor:
        stored = _StoredFactor(
            id=str(uuid.uuid4()),
            user_id=user_id,
            label=label,
            secret=pyotp.random_base32(),
        )
        self._factors[stored.id] = stored
        return stored

    def _owned_factor(self, user_id: str, factor_id: str) -> _StoredFactor:
        stored = self._factors.get(factor_id)
        if stored is None or stored.user_id != user_id:
            raise FactorNotFoundError()
        return stored

    def _factors_of(self, user_id: str) -> list[_StoredFactor]:
        return [f for f in self._factors.values() if f.user_id == user_id]


class InMemoryIdentityProvider(IIdentityProvider):
    """Session-bound client of an :class:`InMemoryIdentityBackend`."""

    def __init__(
        self, backend: InMemoryIdentityBackend, *, session: Session | None = None
    ) -> None:
        self.backend = backend
        self._session = session

    # ── Primary authentication ───────────────────────────────────

    async def sign_in(self, email: str, password: str) -> Session:
        self.backend._check_available()
        account = self.backend.find_user(email)
        if account is None or not secrets.compare_digest(
            account.password.encode(), password.encode()
        ):
            raise UnauthenticatedError("Invalid login credentials")
        self._session = self.backend._open_session(account.id)
        return self._session

    async def sign_up(self, email: str, password: str) -> Session | None:
        self.backend._check_available()
        if len(password) < 6:
            raise ValidationError("Password should be at least 6 characters")
        user_id = self.backend.create_user(email, password)
        self._session = self.backend._open_session(user_id)
        return self._session

    async def sign_out(self) -> None:
        if self._session is not None:
            self.backend._close_session(self._session.access_token)
        self._session = None

    async def reset_password_for_email(self, email: str) -> None:
        self.backend._check_available()
        self.backend.password_resets.append(email)

    async def get_session(self) -> Session | None:
        if self._session is None:
            return None
        if self._session.access_token not in self.backend._sessions:
            self._session = None
        return self._session

    # ── Factors ──────────────────────────────────────────────────

    async def enroll_factor(self, kind: FactorKind, label: str) -> EnrolledFactor:
        stored_session = self._current()
        if kind is not FactorKind.TOTP:
            raise ValidationError(f"Unsupported factor kind {kind}")
        stored = self.backend._new_factor(stored_session.user_id, label)
        account_name = self._session.email if self._session else stored.user_id
        uri = pyotp.TOTP(stored.secret).provisioning_uri(
            name=account_name or stored.user_id,
            issuer_name=self.backend.config.issuer,
        )
        return EnrolledFactor(
            id=stored.id,
            secret=stored.secret,
            qr_image=render_qr_data_uri(uri),
            uri=uri,
        )

    async def unenroll_factor(self, factor_id: str) -> None:
        stored_session = self._current()
        stored = self.backend._owned_factor(stored_session.user_id, factor_id)
        if (
            stored.status is FactorStatus.VERIFIED
            and stored_session.level is not AssuranceLevel.AAL2
        ):
            raise InsufficientAssuranceError(
                "AAL2 required to unenroll a verified factor"
            )
        del self.backend._factors[factor_id]
        for challenge_id, challenge in list(self.backend._challenges.items()):
            if challenge.factor_id == factor_id:
                del self.backend._challenges[challenge_id]

    async def list_factors(self) -> list[Factor]:
        stored_session = self._current()
        return [
            f.to_factor() for f in self.backend._factors_of(stored_session.user_id)
        ]

    # ── Challenges ───────────────────────────────────────────────

    async def create_challenge(self, factor_id: str) -> ChallengeTicket:
        stored_session = self._current()
        self.backend._owned_factor(stored_session.user_id, factor_id)
        challenge = _StoredChallenge(
            id=str(uuid.uuid4()),
            factor_id=factor_id,
            user_id=stored_session.user_id,
            expires_at=datetime.now(timezone.utc)
            + timedelta(seconds=self.backend.config.challenge_ttl_seconds),
        )
        self.backend._challenges[challenge.id] = challenge
        return ChallengeTicket(
            id=challenge.id, factor_id=factor_id, expires_at=challenge.expires_at
        )

    async def verify_challenge(
        self, factor_id: str, challenge_id: str, code: str
    ) -> None:
        stored_session = self._current()
        stored = self.backend._owned_factor(stored_session.user_id, factor_id)
        challenge = self.backend._challenges.get(challenge_id)
        if (
            challenge is None
            or challenge.user_id != stored_session.user_id
            or challenge.factor_id != factor_id
        ):
            raise ChallengeNotFoundError()
        if challenge.consumed or datetime.now(timezone.utc) > challenge.expires_at:
            raise ChallengeExpiredError()

        challenge.consumed = True
        totp = pyotp.TOTP(stored.secret)
        if not totp.verify(code, valid_window=self.backend.config.valid_window):
            raise InvalidCodeError("Invalid TOTP code entered")

        stored.status = FactorStatus.VERIFIED
        stored_session.level = AssuranceLevel.AAL2

    async def get_assurance_levels(self) -> AssuranceLevels:
        stored_session = self._current()
        has_verified = any(
            f.status is FactorStatus.VERIFIED
            for f in self.backend._factors_of(stored_session.user_id)
        )
        return AssuranceLevels(
            current_level=stored_session.level,
            next_level=AssuranceLevel.AAL2 if has_verified else stored_session.level,
        )

    def _current(self) -> _StoredSession:
        self.backend._check_available()
        token = self._session.access_token if self._session else None
        return self.backend._session(token)


__all__: list[str] = ["InMemoryIdentityBackend", "InMemoryIdentityProvider"]
