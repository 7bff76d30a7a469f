"""Enrollment Coordinator: adds a new TOTP factor to the account.

State machine::

    IDLE --start_enrollment--> ENROLLING --verify_enrollment(ok)--> IDLE
                                   |  ^
                                   |  +-- verify_enrollment(wrong code)
                                   +--cancel_enrollment--> IDLE

The in-flight secret and QR image live only in the coordinator until the
factor is verified or cancelled.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from .audit import SecurityAction, SecurityLogger
from .codes import normalize_code
from .config import MfaConfig
from .exceptions import (
    AuthError,
    EnrollmentUnavailableError,
    FactorNotFoundError,
    NoEnrollmentInProgressError,
    UnauthenticatedError,
)
from .factors import Factor, FactorKind, FactorRegistry, FactorStatus
from .result import MfaResult

if TYPE_CHECKING:
    from .ports import IIdentityProvider

logger = logging.getLogger(__name__)


class EnrollmentPhase(str, Enum):
    IDLE = "idle"
    ENROLLING = "enrolling"


@dataclass(frozen=True)
class EnrollmentMaterial:
    """Enrollment data shown to the user exactly once.

    Attributes:
        factor_id: The pending factor being enrolled.
        secret: Base32 TOTP seed, for manual entry.
        qr_image: Scannable image (data URI) of the provisioning URI.
        uri: ``otpauth://`` provisioning URI.
    """

    factor_id: str
    secret: str
    qr_image: str
    uri: str

    @property
    def manual_key(self) -> str:
        """Secret in groups of four characters for manual entry."""
        secret = self.secret.rstrip("=")
        return " ".join(secret[i : i + 4] for i in range(0, len(secret), 4))


class EnrollmentCoordinator:
    """Drives a single TOTP enrollment for the current session.

    Only one enrollment is in flight at a time. Starting again cancels the
    previous pending factor first so none are orphaned.

    Example:
        ```python
        enrollment = EnrollmentCoordinator(provider)

        started = await enrollment.start_enrollment()
        render(started.value.qr_image, started.value.manual_key)

        result = await enrollment.verify_enrollment(code_from_user)
        if result.kind is MfaErrorKind.INVALID_CODE:
            ...  # same QR stays valid, ask again
        ```
    """

    def __init__(
        self,
        provider: IIdentityProvider,
        registry: FactorRegistry | None = None,
        *,
        config: MfaConfig | None = None,
        security_log: SecurityLogger | None = None,
    ) -> None:
        self._provider = provider
        self._registry = registry or FactorRegistry(provider)
        self._config = config or MfaConfig()
        self._security_log = security_log or SecurityLogger()
        self._material: EnrollmentMaterial | None = None
        self._lock = asyncio.Lock()

    @property
    def phase(self) -> EnrollmentPhase:
        if self._material is None:
            return EnrollmentPhase.IDLE
        return EnrollmentPhase.ENROLLING

    @property
    def material(self) -> EnrollmentMaterial | None:
        return self._material

    async def start_enrollment(self) -> MfaResult[EnrollmentMaterial]:
        """Request a new pending TOTP factor from the provider.

        Returns:
            Result with the enrollment material. Fails with
            ``EnrollmentUnavailableError`` if the provider call errors, or
            ``UnauthenticatedError`` if there is no valid session.
        """
        async with self._lock:
            try:
                if self._material is not None:
                    await self._discard_in_flight()

                try:
                    enrolled = await self._provider.enroll_factor(
                        FactorKind.TOTP, self._config.friendly_name
                    )
                except UnauthenticatedError:
                    raise
                except AuthError as e:
                    raise EnrollmentUnavailableError(str(e)) from e
            except AuthError as e:
                return self._failed(e)

            self._material = EnrollmentMaterial(
                factor_id=enrolled.id,
                secret=enrolled.secret,
                qr_image=enrolled.qr_image,
                uri=enrolled.uri,
            )
            logger.info(f"Started TOTP enrollment for factor {enrolled.id}")
            await self._security_log.log(
                SecurityAction.MFA_ENROLLMENT_STARTED,
                True,
                details={"factor_id": enrolled.id},
            )
            return MfaResult.ok(self._material)

    async def verify_enrollment(self, code: str) -> MfaResult[Factor]:
        """Confirm the in-flight factor with a code from the authenticator.

        A fresh challenge is issued for every attempt. A rejected code keeps
        the enrollment in flight so the user can retry without re-scanning.

        Returns:
            Result with the now verified factor. Fails with
            ``NoEnrollmentInProgressError`` (no network call),
            ``ValidationError`` (no network call), ``InvalidCodeError`` or
            ``ChallengeExpiredError``.
        """
        async with self._lock:
            material = self._material
            if material is None:
                return MfaResult.fail(NoEnrollmentInProgressError())

            try:
                normalized = normalize_code(code)
                challenge = await self._provider.create_challenge(material.factor_id)
                await self._provider.verify_challenge(
                    material.factor_id, challenge.id, normalized
                )
            except AuthError as e:
                await self._security_log.log(
                    SecurityAction.MFA_CHALLENGE_FAILED,
                    False,
                    error_code=e.kind.value,
                    details={"factor_id": material.factor_id, "purpose": "enroll"},
                )
                return self._failed(e)

            self._material = None
            logger.info(f"Verified TOTP factor {material.factor_id}")
            await self._security_log.log(
                SecurityAction.MFA_ENABLED,
                True,
                details={"factor_id": material.factor_id},
            )
            return MfaResult.ok(
                Factor(
                    id=material.factor_id,
                    kind=FactorKind.TOTP,
                    label=self._config.friendly_name,
                    status=FactorStatus.VERIFIED,
                )
            )

    async def cancel_enrollment(self) -> MfaResult[None]:
        """Unenroll the in-flight pending factor. No-op when idle."""
        async with self._lock:
            if self._material is None:
                return MfaResult.ok()
            try:
                await self._discard_in_flight()
            except AuthError as e:
                return self._failed(e)
            return MfaResult.ok()

    def abandon(self) -> None:
        """Forget the in-flight material without calling the provider.

        The pending factor stays on the account; use
        :meth:`cancel_enrollment` while the session is still valid.
        """
        if self._material is not None:
            logger.debug(f"Abandoned enrollment of factor {self._material.factor_id}")
        self._material = None

    async def _discard_in_flight(self) -> None:
        material = self._material
        if material is None:
            return
        try:
            await self._registry.remove_factor(material.factor_id)
        except FactorNotFoundError:
            logger.debug(f"Pending factor {material.factor_id} was already removed")
        self._material = None
        await self._security_log.log(
            SecurityAction.MFA_ENROLLMENT_CANCELLED,
            True,
            details={"factor_id": material.factor_id},
        )

    def _failed(self, error: AuthError) -> MfaResult:
        if isinstance(error, UnauthenticatedError):
            self._material = None
        logger.warning(f"Enrollment operation failed: {error.kind.value}")
        return MfaResult.fail(error)


__all__: list[str] = [
    "EnrollmentPhase",
    "EnrollmentMaterial",
    "EnrollmentCoordinator",
]
