"""Second-factor credentials and the Factor Registry.

A :class:`Factor` is bound to one account. It is created ``pending`` when
enrollment starts, becomes ``verified`` exactly once, and is removed by
unenrolling it. The registry never stores TOTP secrets.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from .ports import IIdentityProvider

logger = logging.getLogger(__name__)


class FactorKind(str, Enum):
    """Supported second-factor kinds."""

    TOTP = "totp"


class FactorStatus(str, Enum):
    """Verification state of a factor."""

    PENDING = "pending"
    VERIFIED = "verified"


class Factor(BaseModel):
    """Immutable view of a second-factor credential.

    Attributes:
        id: Opaque identifier assigned by the identity provider.
        kind: Factor kind (only TOTP).
        label: Cosmetic, non-unique display name.
        status: ``pending`` until the first successful verification.
        created_at: When the provider created the factor, if known.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    kind: FactorKind = FactorKind.TOTP
    label: str = ""
    status: FactorStatus = FactorStatus.PENDING
    created_at: datetime | None = None

    @property
    def is_verified(self) -> bool:
        return self.status is FactorStatus.VERIFIED


class FactorList(BaseModel):
    """All factors of an account, partitioned by status."""

    model_config = ConfigDict(frozen=True)

    pending: tuple[Factor, ...] = Field(default_factory=tuple)
    verified: tuple[Factor, ...] = Field(default_factory=tuple)

    @classmethod
    def partition(cls, factors: list[Factor]) -> FactorList:
        return cls(
            pending=tuple(f for f in factors if f.status is FactorStatus.PENDING),
            verified=tuple(f for f in factors if f.status is FactorStatus.VERIFIED),
        )

    @property
    def is_enabled(self) -> bool:
        """Two-factor authentication is on iff a verified factor exists."""
        return len(self.verified) > 0

    def find(self, factor_id: str) -> Factor | None:
        for factor in (*self.pending, *self.verified):
            if factor.id == factor_id:
                return factor
        return None


class FactorRegistry:
    """Queries and mutates the factors of the current account.

    The registry is a thin layer over the identity provider. Ownership of a
    factor is enforced by the provider, never by the caller's input.
    Errors propagate as :class:`~bear_love_auth.exceptions.AuthError`;
    coordinators turn them into results.

    Example:
        ```python
        registry = FactorRegistry(provider)
        factors = await registry.list_factors()
        if factors.is_enabled:
            print(f"2FA on with {len(factors.verified)} factor(s)")
        ```
    """

    def __init__(self, provider: IIdentityProvider) -> None:
        self._provider = provider

    async def list_factors(self) -> FactorList:
        """Return all factors of the current account. Side-effect free."""
        return FactorList.partition(await self._provider.list_factors())

    async def verified_factors(self) -> list[Factor]:
        return list((await self.list_factors()).verified)

    async def is_enabled(self) -> bool:
        return (await self.list_factors()).is_enabled

    async def remove_factor(self, factor_id: str) -> None:
        """Unenroll a factor regardless of its status.

        Raises:
            FactorNotFoundError: If the factor is not owned by the caller.
        """
        await self._provider.unenroll_factor(factor_id)
        logger.info(f"Unenrolled factor {factor_id}")


__all__: list[str] = [
    "FactorKind",
    "FactorStatus",
    "Factor",
    "FactorList",
    "FactorRegistry",
]
