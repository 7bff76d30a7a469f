"""Two-factor facade and the sign-in step-up flow.

:class:`TwoFactorService` wires the registry and the three coordinators
around one provider client. :class:`SignInFlow` is the login call site: it
runs the Assurance Evaluator right after primary sign-in and withholds
access until a required challenge succeeds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from .assurance import AssuranceEvaluator, AssuranceLevel
from .audit import SecurityAction, SecurityLogger
from .challenge import Challenge, ChallengeCoordinator
from .codes import normalize_code
from .config import MfaConfig
from .enrollment import EnrollmentCoordinator
from .exceptions import (
    AuthError,
    ChallengeExpiredError,
    FactorNotFoundError,
    NoVerifiedFactorError,
    StateConflictError,
    StepUpRequiredError,
    UnauthenticatedError,
)
from .factors import Factor, FactorRegistry
from .result import MfaResult

if TYPE_CHECKING:
    from .ports import IIdentityProvider, Session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TwoFactorStatus:
    """Snapshot shown on the account security page."""

    is_enabled: bool
    factors: tuple[Factor, ...] = ()
    current_level: AssuranceLevel | None = None


class TwoFactorService:
    """Two-factor operations for one session.

    Example:
        ```python
        service = TwoFactorService(provider, security_log=SecurityLogger(store))

        status = (await service.status()).unwrap()
        if not status.is_enabled:
            material = (await service.enrollment.start_enrollment()).unwrap()
        ```
    """

    def __init__(
        self,
        provider: IIdentityProvider,
        *,
        config: MfaConfig | None = None,
        security_log: SecurityLogger | None = None,
    ) -> None:
        self.provider = provider
        self.config = config or MfaConfig()
        self.security_log = security_log or SecurityLogger()
        self.registry = FactorRegistry(provider)
        self.enrollment = EnrollmentCoordinator(
            provider, self.registry, config=self.config, security_log=self.security_log
        )
        self.challenges = ChallengeCoordinator(
            provider, self.registry, security_log=self.security_log
        )
        self.assurance = AssuranceEvaluator(provider, self.registry)

    async def status(self) -> MfaResult[TwoFactorStatus]:
        """Return whether 2FA is on, the verified factors and the session AAL."""
        try:
            factors = await self.registry.list_factors()
            levels = await self.provider.get_assurance_levels()
        except AuthError as e:
            return MfaResult.fail(e)
        return MfaResult.ok(
            TwoFactorStatus(
                is_enabled=factors.is_enabled,
                factors=factors.verified,
                current_level=levels.current_level,
            )
        )

    async def disable(self, code: str, factor_id: str | None = None) -> MfaResult[None]:
        """Remove a verified factor after proving possession of it.

        Args:
            code: Current code from the authenticator app.
            factor_id: Factor to remove. Defaults to the first verified one.
        """
        try:
            normalize_code(code)
            verified = await self.registry.verified_factors()
            if not verified:
                raise NoVerifiedFactorError("Two-factor authentication is not enabled")
            factor = _pick(verified, factor_id)
        except AuthError as e:
            return MfaResult.fail(e)

        proved = await self.challenges.prove(factor.id, code)
        if not proved.success:
            return MfaResult.fail(proved.error or ChallengeExpiredError())

        try:
            await self.registry.remove_factor(factor.id)
        except AuthError as e:
            return MfaResult.fail(e)

        await self.security_log.log(
            SecurityAction.MFA_DISABLED, True, details={"factor_id": factor.id}
        )
        return MfaResult.ok()


def _pick(factors: list[Factor], factor_id: str | None) -> Factor:
    if factor_id is None:
        return factors[0]
    for factor in factors:
        if factor.id == factor_id:
            return factor
    raise FactorNotFoundError(f"No verified factor {factor_id}")


# ═══════════════════════════════════════════════════════════════
# SIGN-IN FLOW
# ═══════════════════════════════════════════════════════════════


class SignInPhase(str, Enum):
    SIGNED_OUT = "signed_out"
    STEP_UP_REQUIRED = "step_up_required"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class SignInOutcome:
    phase: SignInPhase
    session: Session | None = None
    factors: tuple[Factor, ...] = field(default_factory=tuple)


class SignInFlow:
    """Password sign-in followed by a mandatory step-up when required.

    A session whose evaluation demands AAL2 stays in ``STEP_UP_REQUIRED``
    and :meth:`require_authenticated` refuses it until
    :meth:`complete_step_up` succeeds.
    """

    def __init__(
        self,
        provider: IIdentityProvider,
        *,
        service: TwoFactorService | None = None,
        security_log: SecurityLogger | None = None,
    ) -> None:
        self._provider = provider
        self._security_log = security_log or (
            service.security_log if service is not None else SecurityLogger()
        )
        self._service = service or TwoFactorService(
            provider, security_log=self._security_log
        )
        self._phase = SignInPhase.SIGNED_OUT
        self._session: Session | None = None
        self._factors: tuple[Factor, ...] = ()

    @property
    def phase(self) -> SignInPhase:
        return self._phase

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def factors(self) -> tuple[Factor, ...]:
        """Verified factors usable for the pending step-up."""
        return self._factors

    async def sign_in(self, email: str, password: str) -> MfaResult[SignInOutcome]:
        self._reset()
        try:
            session = await self._provider.sign_in(email, password)
        except AuthError as e:
            await self._security_log.log(
                SecurityAction.SIGN_IN,
                False,
                user_email=email,
                error_code=e.kind.value,
            )
            return MfaResult.fail(e)

        decision = await self._service.assurance.evaluate(session)
        if not decision.success or decision.value is None:
            await self._security_log.log(
                SecurityAction.SIGN_IN,
                False,
                user_id=session.user_id,
                user_email=session.email,
                error_code=decision.kind.value if decision.kind else None,
            )
            return MfaResult.fail(decision.error or UnauthenticatedError())

        self._session = session
        if decision.value.step_up_required:
            self._phase = SignInPhase.STEP_UP_REQUIRED
            self._factors = decision.value.factors
            logger.info(f"User {session.user_id} signed in, step-up required")
        else:
            self._phase = SignInPhase.AUTHENTICATED
            await self._security_log.log(
                SecurityAction.SIGN_IN,
                True,
                user_id=session.user_id,
                user_email=session.email,
            )
        return MfaResult.ok(self._outcome())

    async def begin_step_up(self, factor_id: str | None = None) -> MfaResult[Challenge]:
        """Issue the challenge the user must answer to finish signing in."""
        if self._phase is not SignInPhase.STEP_UP_REQUIRED:
            return MfaResult.fail(StateConflictError("No step-up pending"))
        try:
            factor = _pick(list(self._factors), factor_id)
        except AuthError as e:
            return MfaResult.fail(e)
        return await self._service.challenges.challenge(factor.id)

    async def complete_step_up(self, code: str) -> MfaResult[SignInOutcome]:
        """Verify ``code`` against the challenge from :meth:`begin_step_up`."""
        if self._phase is not SignInPhase.STEP_UP_REQUIRED:
            return MfaResult.fail(StateConflictError("No step-up pending"))
        challenge = self._service.challenges.current
        if challenge is None:
            return MfaResult.fail(
                ChallengeExpiredError("No active challenge; request a new one")
            )

        verified = await self._service.challenges.verify(
            challenge.factor_id, challenge.id, code
        )
        if not verified.success or verified.value is None:
            if verified.is_fatal:
                self._reset()
            return MfaResult.fail(verified.error or ChallengeExpiredError())
        if verified.value.current_level is not AssuranceLevel.AAL2:
            return MfaResult.fail(StepUpRequiredError("Session was not upgraded"))

        self._phase = SignInPhase.AUTHENTICATED
        session = self._session
        await self._security_log.log(
            SecurityAction.SIGN_IN,
            True,
            user_id=session.user_id if session else None,
            user_email=session.email if session else None,
            details={"step_up": True},
        )
        return MfaResult.ok(self._outcome())

    def require_authenticated(self) -> Session:
        """Return the session if it may use protected functionality.

        Raises:
            UnauthenticatedError: Not signed in.
            StepUpRequiredError: Signed in, second factor still owed.
        """
        if self._phase is SignInPhase.STEP_UP_REQUIRED:
            raise StepUpRequiredError()
        if self._phase is not SignInPhase.AUTHENTICATED or self._session is None:
            raise UnauthenticatedError()
        return self._session

    async def sign_up(self, email: str, password: str) -> MfaResult[Session]:
        try:
            session = await self._provider.sign_up(email, password)
        except AuthError as e:
            return MfaResult.fail(e)
        return MfaResult.ok(session)

    async def reset_password(self, email: str) -> MfaResult[None]:
        try:
            await self._provider.reset_password_for_email(email)
        except AuthError as e:
            return MfaResult.fail(e)
        return MfaResult.ok()

    async def sign_out(self) -> MfaResult[None]:
        session = self._session
        # Pending factors can only be removed while the session is alive.
        cancelled = await self._service.enrollment.cancel_enrollment()
        if cancelled.kind is not None:
            logger.warning(
                f"Could not cancel enrollment on sign-out: {cancelled.kind.value}"
            )
        self._reset()
        try:
            await self._provider.sign_out()
        except AuthError as e:
            return MfaResult.fail(e)
        await self._security_log.log(
            SecurityAction.SIGN_OUT,
            True,
            user_id=session.user_id if session else None,
            user_email=session.email if session else None,
        )
        return MfaResult.ok()

    def _reset(self) -> None:
        self._service.enrollment.abandon()
        self._service.challenges.abandon()
        self._phase = SignInPhase.SIGNED_OUT
        self._session = None
        self._factors = ()

    def _outcome(self) -> SignInOutcome:
        return SignInOutcome(
            phase=self._phase, session=self._session, factors=self._factors
        )


__all__: list[str] = [
    "TwoFactorStatus",
    "TwoFactorService",
    "SignInPhase",
    "SignInOutcome",
    "SignInFlow",
]
