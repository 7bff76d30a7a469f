"""Challenge Coordinator: one proof-of-possession round for a verified factor.

State machine::

    IDLE --challenge(factor)--> CHALLENGED --verify(...)--> IDLE

Every ``verify`` consumes the challenge whatever the outcome; a retry needs
a new ``challenge`` call. Used by both the sign-in step-up and the
disable-2FA confirmation.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from .assurance import AssuranceLevels
from .audit import SecurityAction, SecurityLogger
from .codes import normalize_code
from .exceptions import (
    AuthError,
    ChallengeExpiredError,
    FactorNotFoundError,
    UnauthenticatedError,
)
from .factors import FactorRegistry
from .result import MfaResult

if TYPE_CHECKING:
    from .ports import IIdentityProvider

logger = logging.getLogger(__name__)


class ChallengePhase(str, Enum):
    IDLE = "idle"
    CHALLENGED = "challenged"


@dataclass(frozen=True)
class Challenge:
    """An issued, not yet consumed challenge."""

    id: str
    factor_id: str
    expires_at: datetime | None = None


class ChallengeCoordinator:
    """Runs challenge → code → accept/reject for verified factors.

    The coordinator remembers only the challenge it issued last, so a
    stale or foreign challenge id is refused locally.
    """

    def __init__(
        self,
        provider: IIdentityProvider,
        registry: FactorRegistry | None = None,
        *,
        security_log: SecurityLogger | None = None,
    ) -> None:
        self._provider = provider
        self._registry = registry or FactorRegistry(provider)
        self._security_log = security_log or SecurityLogger()
        self._challenge: Challenge | None = None
        self._lock = asyncio.Lock()

    @property
    def phase(self) -> ChallengePhase:
        if self._challenge is None:
            return ChallengePhase.IDLE
        return ChallengePhase.CHALLENGED

    @property
    def current(self) -> Challenge | None:
        return self._challenge

    async def challenge(self, factor_id: str) -> MfaResult[Challenge]:
        """Request a fresh single-use challenge for a verified factor.

        Any earlier unconsumed challenge is dropped.

        Returns:
            Result with the challenge. Fails with ``FactorNotFoundError`` if
            the factor does not exist or is not verified.
        """
        async with self._lock:
            self._challenge = None
            try:
                factors = await self._registry.list_factors()
                if not any(f.id == factor_id for f in factors.verified):
                    raise FactorNotFoundError(f"No verified factor {factor_id}")
                ticket = await self._provider.create_challenge(factor_id)
            except AuthError as e:
                return self._failed(e)

            self._challenge = Challenge(
                id=ticket.id, factor_id=factor_id, expires_at=ticket.expires_at
            )
            logger.debug(f"Issued challenge {ticket.id} for factor {factor_id}")
            return MfaResult.ok(self._challenge)

    async def verify(
        self, factor_id: str, challenge_id: str, code: str
    ) -> MfaResult[AssuranceLevels]:
        """Submit a code against the challenge issued by :meth:`challenge`.

        Returns:
            Result with the session's upgraded assurance levels. Fails with
            ``ValidationError`` (no network call, challenge kept),
            ``ChallengeExpiredError`` (unknown, stale or consumed challenge)
            or ``InvalidCodeError``.
        """
        try:
            normalized = normalize_code(code)
        except AuthError as e:
            return MfaResult.fail(e)

        async with self._lock:
            issued = self._challenge
            if (
                issued is None
                or issued.id != challenge_id
                or issued.factor_id != factor_id
            ):
                return MfaResult.fail(
                    ChallengeExpiredError("Challenge is not active; request a new one")
                )

            self._challenge = None
            try:
                await self._provider.verify_challenge(
                    factor_id, challenge_id, normalized
                )
                levels = await self._provider.get_assurance_levels()
            except AuthError as e:
                await self._security_log.log(
                    SecurityAction.MFA_CHALLENGE_FAILED,
                    False,
                    error_code=e.kind.value,
                    details={"factor_id": factor_id},
                )
                return self._failed(e)

            logger.info(f"Challenge {challenge_id} accepted for factor {factor_id}")
            await self._security_log.log(
                SecurityAction.MFA_CHALLENGE_VERIFIED,
                True,
                details={"factor_id": factor_id},
            )
            return MfaResult.ok(levels)

    async def prove(self, factor_id: str, code: str) -> MfaResult[AssuranceLevels]:
        """Issue a challenge and verify ``code`` against it in one call."""
        try:
            normalize_code(code)
        except AuthError as e:
            return MfaResult.fail(e)

        issued = await self.challenge(factor_id)
        if not issued.success or issued.value is None:
            return MfaResult.fail(issued.error or ChallengeExpiredError())
        return await self.verify(factor_id, issued.value.id, code)

    def abandon(self) -> None:
        """Forget the in-flight challenge (user navigated away)."""
        if self._challenge is not None:
            logger.debug(f"Abandoned challenge {self._challenge.id}")
        self._challenge = None

    def _failed(self, error: AuthError) -> MfaResult:
        if isinstance(error, UnauthenticatedError):
            self._challenge = None
        logger.warning(f"Challenge operation failed: {error.kind.value}")
        return MfaResult.fail(error)


__all__: list[str] = [
    "ChallengePhase",
    "Challenge",
    "ChallengeCoordinator",
]
