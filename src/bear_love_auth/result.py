"""MfaResult: typed outcome returned by coordinator operations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from .exceptions import AuthError, MfaErrorKind

T = TypeVar("T")


@dataclass(frozen=True)
class MfaResult(Generic[T]):
    """Either a value or the :class:`AuthError` that prevented it.

    Usage::

        result = await enrollment.start_enrollment()
        if result.success:
            show_qr(result.value.qr_image)
        elif result.kind is MfaErrorKind.SERVICE_UNAVAILABLE:
            offer_retry()
    """

    value: T | None = None
    error: AuthError | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> MfaErrorKind | None:
        return self.error.kind if self.error is not None else None

    @property
    def is_fatal(self) -> bool:
        """True when the caller must re-authenticate before continuing."""
        return self.kind is MfaErrorKind.UNAUTHENTICATED

    @property
    def message(self) -> str | None:
        return self.error.message if self.error is not None else None

    # ── Factory methods ──────────────────────────────────────────

    @classmethod
    def ok(cls, value: T | None = None) -> MfaResult[T]:
        return cls(value=value)

    @classmethod
    def fail(cls, error: AuthError) -> MfaResult[T]:
        return cls(error=error)

    def unwrap(self) -> T | None:
        """Return the value, raising the carried error on failure."""
        if self.error is not None:
            raise self.error
        return self.value

    def __bool__(self) -> bool:
        return self.success
