"""Bear Love Auth

Step-up two-factor authentication for the Bear Love site.

Usage:
    ```python
    from bear_love_auth import SignInFlow, SignInPhase
    from bear_love_auth.adapters import GoTrueConfig, GoTrueIdentityProvider

    provider = GoTrueIdentityProvider(GoTrueConfig(url=AUTH_URL, api_key=ANON_KEY))
    flow = SignInFlow(provider)

    outcome = (await flow.sign_in(email, password)).unwrap()
    if outcome.phase is SignInPhase.STEP_UP_REQUIRED:
        await flow.begin_step_up()
        await flow.complete_step_up(code_from_user)

    session = flow.require_authenticated()
    ```

Submodules:
    - `factors`: factor model and the Factor Registry
    - `enrollment`: TOTP enrollment state machine
    - `challenge`: challenge/verify state machine
    - `assurance`: AAL evaluation after sign-in
    - `service`: two-factor facade and sign-in flow
    - `audit`: security log
    - `adapters`: in-memory and GoTrue identity providers
"""

from __future__ import annotations

from .assurance import (
    AssuranceEvaluator,
    AssuranceLevel,
    AssuranceLevels,
    StepUpDecision,
)
from .audit import (
    ClientContext,
    InMemorySecurityLogStore,
    SecurityAction,
    SecurityEvent,
    SecurityLogger,
)
from .challenge import Challenge, ChallengeCoordinator, ChallengePhase
from .codes import CODE_LENGTH, normalize_code
from .config import MfaConfig
from .enrollment import EnrollmentCoordinator, EnrollmentMaterial, EnrollmentPhase
from .exceptions import (
    AuthError,
    ChallengeExpiredError,
    ChallengeNotFoundError,
    EnrollmentUnavailableError,
    FactorNotFoundError,
    InsufficientAssuranceError,
    InvalidCodeError,
    MfaErrorKind,
    NoEnrollmentInProgressError,
    NotFoundError,
    NoVerifiedFactorError,
    ServiceUnavailableError,
    StateConflictError,
    StepUpRequiredError,
    UnauthenticatedError,
    ValidationError,
)
from .factors import Factor, FactorKind, FactorList, FactorRegistry, FactorStatus
from .ports import (
    ChallengeTicket,
    EnrolledFactor,
    IIdentityProvider,
    ISecurityLogStore,
    Session,
)
from .result import MfaResult
from .service import (
    SignInFlow,
    SignInOutcome,
    SignInPhase,
    TwoFactorService,
    TwoFactorStatus,
)

__version__ = "0.1.0"

__all__: list[str] = [
    # Factors
    "Factor",
    "FactorKind",
    "FactorList",
    "FactorRegistry",
    "FactorStatus",
    # Enrollment
    "EnrollmentCoordinator",
    "EnrollmentMaterial",
    "EnrollmentPhase",
    # Challenge
    "Challenge",
    "ChallengeCoordinator",
    "ChallengePhase",
    # Assurance
    "AssuranceEvaluator",
    "AssuranceLevel",
    "AssuranceLevels",
    "StepUpDecision",
    # Facade and flows
    "TwoFactorService",
    "TwoFactorStatus",
    "SignInFlow",
    "SignInOutcome",
    "SignInPhase",
    # Codes
    "CODE_LENGTH",
    "normalize_code",
    # Config
    "MfaConfig",
    # Results
    "MfaResult",
    # Ports
    "IIdentityProvider",
    "ISecurityLogStore",
    "Session",
    "EnrolledFactor",
    "ChallengeTicket",
    # Audit
    "SecurityAction",
    "SecurityEvent",
    "SecurityLogger",
    "ClientContext",
    "InMemorySecurityLogStore",
    # Exceptions
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
