"""Assurance Evaluator: decides whether a session owes a step-up."""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from .exceptions import (
    AuthError,
    NoVerifiedFactorError,
    StateConflictError,
    UnauthenticatedError,
)
from .factors import Factor
from .result import MfaResult

if TYPE_CHECKING:
    from .factors import FactorRegistry
    from .ports import IIdentityProvider, Session

logger = logging.getLogger(__name__)


class AssuranceLevel(str, Enum):
    """Authenticator Assurance Level of a session."""

    AAL1 = "aal1"
    AAL2 = "aal2"


class AssuranceLevels(BaseModel):
    """Provider-computed levels: what the session has, and what it needs."""

    model_config = ConfigDict(frozen=True)

    current_level: AssuranceLevel
    next_level: AssuranceLevel

    @property
    def step_up_required(self) -> bool:
        return (
            self.next_level is AssuranceLevel.AAL2
            and self.current_level is AssuranceLevel.AAL1
        )


class StepUpDecision(BaseModel):
    """Outcome of evaluating a session after primary sign-in."""

    model_config = ConfigDict(frozen=True)

    step_up_required: bool
    levels: AssuranceLevels
    factors: tuple[Factor, ...] = ()


class AssuranceEvaluator:
    """Evaluates a session's assurance against the account's requirement.

    Must run as part of sign-in, before the caller is treated as fully
    authenticated.
    """

    def __init__(self, provider: IIdentityProvider, registry: FactorRegistry) -> None:
        self._provider = provider
        self._registry = registry

    async def evaluate(
        self, session: Session | None = None
    ) -> MfaResult[StepUpDecision]:
        """Decide whether the provider's current session must complete a challenge.

        Levels are always read for the session the provider holds. Passing
        ``session`` only asserts which session the caller expects.

        Args:
            session: Expected session, e.g. the one returned by ``sign_in``.
                Must be the provider's current session.

        Returns:
            Result with a :class:`StepUpDecision`. Fails with
            ``UnauthenticatedError`` when the provider holds no session,
            ``StateConflictError`` when ``session`` is not the current one,
            or ``NoVerifiedFactorError`` when AAL2 is demanded but the
            account has no verified factor.
        """
        try:
            return MfaResult.ok(await self._evaluate(session))
        except AuthError as e:
            logger.warning(f"Assurance evaluation failed: {e.kind.value}")
            return MfaResult.fail(e)

    async def _evaluate(self, session: Session | None) -> StepUpDecision:
        current = await self._provider.get_session()
        if current is None:
            raise UnauthenticatedError()
        if session is not None and session.access_token != current.access_token:
            raise StateConflictError("Session is not the provider's current session")
        session = current

        levels = await self._provider.get_assurance_levels()
        if not levels.step_up_required:
            return StepUpDecision(step_up_required=False, levels=levels)

        factors = await self._registry.verified_factors()
        if not factors:
            raise NoVerifiedFactorError(
                f"Account {session.user_id} requires AAL2 but has no verified factor"
            )
        return StepUpDecision(
            step_up_required=True, levels=levels, factors=tuple(factors)
        )


__all__: list[str] = [
    "AssuranceLevel",
    "AssuranceLevels",
    "StepUpDecision",
    "AssuranceEvaluator",
]
