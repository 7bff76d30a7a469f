"""Tests for the TOTP enrollment state machine."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from bear_love_auth import (
    EnrollmentCoordinator,
    EnrollmentPhase,
    FactorRegistry,
    FactorStatus,
    InMemorySecurityLogStore,
    MfaConfig,
    MfaErrorKind,
    SecurityAction,
    SecurityLogger,
)
from bear_love_auth.adapters import InMemoryIdentityBackend, InMemoryIdentityProvider
from bear_love_auth.exceptions import (
    EnrollmentUnavailableError,
    NoEnrollmentInProgressError,
)
from bear_love_auth.qr import SVG_DATA_URI_PREFIX


class TestStartEnrollment:
    """Test starting an enrollment."""

    @pytest.mark.asyncio
    async def test_start_returns_material(
        self, provider: InMemoryIdentityProvider
    ) -> None:
        """Test start yields secret, URI and QR image for a pending factor."""
        enrollment = EnrollmentCoordinator(provider)

        result = await enrollment.start_enrollment()

        material = result.unwrap()
        assert enrollment.phase is EnrollmentPhase.ENROLLING
        assert material.uri.startswith("otpauth://totp/")
        assert "issuer=Bear%20Love" in material.uri
        assert material.qr_image.startswith(SVG_DATA_URI_PREFIX)
        assert material.manual_key.replace(" ", "") == material.secret

        factors = await FactorRegistry(provider).list_factors()
        assert [f.id for f in factors.pending] == [material.factor_id]
        assert factors.verified == ()

    @pytest.mark.asyncio
    async def test_custom_friendly_name(
        self, provider: InMemoryIdentityProvider
    ) -> None:
        enrollment = EnrollmentCoordinator(
            provider, config=MfaConfig(friendly_name="Honey Phone")
        )

        await enrollment.start_enrollment()

        factors = await FactorRegistry(provider).list_factors()
        assert factors.pending[0].label == "Honey Phone"

    @pytest.mark.asyncio
    async def test_restart_cancels_previous_pending_factor(
        self,
        provider: InMemoryIdentityProvider,
        security_log: SecurityLogger,
        log_store: InMemorySecurityLogStore,
    ) -> None:
        """Test a second start leaves exactly one pending factor."""
        enrollment = EnrollmentCoordinator(provider, security_log=security_log)

        first = (await enrollment.start_enrollment()).unwrap()
        second = (await enrollment.start_enrollment()).unwrap()

        assert first.factor_id != second.factor_id
        assert enrollment.material == second
        factors = await FactorRegistry(provider).list_factors()
        assert [f.id for f in factors.pending] == [second.factor_id]

        cancelled = await log_store.get_events_by_action(
            SecurityAction.MFA_ENROLLMENT_CANCELLED
        )
        assert [e.details for e in cancelled] == [{"factor_id": first.factor_id}]

    @pytest.mark.asyncio
    async def test_outage_maps_to_enrollment_unavailable(
        self, backend: InMemoryIdentityBackend, provider: InMemoryIdentityProvider
    ) -> None:
        backend.unavailable = True
        enrollment = EnrollmentCoordinator(provider)

        result = await enrollment.start_enrollment()

        assert isinstance(result.error, EnrollmentUnavailableError)
        assert result.kind is MfaErrorKind.SERVICE_UNAVAILABLE
        assert result.error.retryable
        assert enrollment.phase is EnrollmentPhase.IDLE

    @pytest.mark.asyncio
    async def test_start_without_session_is_unauthenticated(
        self, backend: InMemoryIdentityBackend
    ) -> None:
        enrollment = EnrollmentCoordinator(backend.client())

        result = await enrollment.start_enrollment()

        assert result.kind is MfaErrorKind.UNAUTHENTICATED
        assert result.is_fatal


class TestVerifyEnrollment:
    """Test confirming an enrollment with a code."""

    @pytest.mark.asyncio
    async def test_correct_code_enables_two_factor(
        self,
        provider: InMemoryIdentityProvider,
        security_log: SecurityLogger,
        log_store: InMemorySecurityLogStore,
        current_code: Callable[[str], str],
    ) -> None:
        """Test the happy path: start, scan, enter code, factor verified."""
        enrollment = EnrollmentCoordinator(provider, security_log=security_log)
        registry = FactorRegistry(provider)
        material = (await enrollment.start_enrollment()).unwrap()

        result = await enrollment.verify_enrollment(current_code(material.secret))

        factor = result.unwrap()
        assert factor.id == material.factor_id
        assert factor.status is FactorStatus.VERIFIED
        assert enrollment.phase is EnrollmentPhase.IDLE
        assert enrollment.material is None
        assert await registry.is_enabled()
        assert (await registry.list_factors()).pending == ()

        enabled = await log_store.get_events_by_action(SecurityAction.MFA_ENABLED)
        assert len(enabled) == 1
        assert enabled[0].success

    @pytest.mark.asyncio
    async def test_code_with_spaces_is_accepted(
        self,
        provider: InMemoryIdentityProvider,
        current_code: Callable[[str], str],
    ) -> None:
        enrollment = EnrollmentCoordinator(provider)
        material = (await enrollment.start_enrollment()).unwrap()
        code = current_code(material.secret)

        result = await enrollment.verify_enrollment(f"{code[:3]} {code[3:]}")

        assert result.success

    @pytest.mark.asyncio
    async def test_wrong_code_keeps_enrollment_in_flight(
        self,
        provider: InMemoryIdentityProvider,
        security_log: SecurityLogger,
        log_store: InMemorySecurityLogStore,
        current_code: Callable[[str], str],
        wrong_code: Callable[[str], str],
    ) -> None:
        """Test a rejected code lets the user retry with the same QR."""
        enrollment = EnrollmentCoordinator(provider, security_log=security_log)
        material = (await enrollment.start_enrollment()).unwrap()

        rejected = await enrollment.verify_enrollment(wrong_code(material.secret))

        assert rejected.kind is MfaErrorKind.INVALID_CODE
        assert enrollment.phase is EnrollmentPhase.ENROLLING
        assert enrollment.material == material
        assert not await FactorRegistry(provider).is_enabled()

        failed = await log_store.get_events_by_action(
            SecurityAction.MFA_CHALLENGE_FAILED
        )
        assert failed[0].error_code == MfaErrorKind.INVALID_CODE.value

        accepted = await enrollment.verify_enrollment(current_code(material.secret))
        assert accepted.success
        assert await FactorRegistry(provider).is_enabled()

    @pytest.mark.asyncio
    async def test_malformed_code_makes_no_provider_call(self, spy) -> None:
        enrollment = EnrollmentCoordinator(spy)
        await enrollment.start_enrollment()
        spy.calls.clear()

        result = await enrollment.verify_enrollment("12ab56")

        assert result.kind is MfaErrorKind.VALIDATION
        assert spy.calls == []
        assert enrollment.phase is EnrollmentPhase.ENROLLING

    @pytest.mark.asyncio
    async def test_verify_without_start_makes_no_provider_call(self, spy) -> None:
        """Test verify while idle fails locally with a state conflict."""
        enrollment = EnrollmentCoordinator(spy)

        result = await enrollment.verify_enrollment("123456")

        assert isinstance(result.error, NoEnrollmentInProgressError)
        assert result.kind is MfaErrorKind.STATE_CONFLICT
        assert spy.calls == []

    @pytest.mark.asyncio
    async def test_lost_session_resets_enrollment(
        self,
        provider: InMemoryIdentityProvider,
        current_code: Callable[[str], str],
    ) -> None:
        enrollment = EnrollmentCoordinator(provider)
        material = (await enrollment.start_enrollment()).unwrap()
        await provider.sign_out()

        result = await enrollment.verify_enrollment(current_code(material.secret))

        assert result.kind is MfaErrorKind.UNAUTHENTICATED
        assert result.is_fatal
        assert enrollment.phase is EnrollmentPhase.IDLE


class TestCancelEnrollment:
    """Test abandoning an enrollment."""

    @pytest.mark.asyncio
    async def test_cancel_removes_pending_factor(
        self,
        backend: InMemoryIdentityBackend,
        user_id: str,
        provider: InMemoryIdentityProvider,
    ) -> None:
        """Test cancel leaves the verified factor set unchanged."""
        existing, _ = backend.add_verified_factor(user_id, label="Old Phone")
        enrollment = EnrollmentCoordinator(provider)
        registry = FactorRegistry(provider)
        await enrollment.start_enrollment()

        result = await enrollment.cancel_enrollment()

        assert result.success
        assert enrollment.phase is EnrollmentPhase.IDLE
        factors = await registry.list_factors()
        assert factors.pending == ()
        assert [f.id for f in factors.verified] == [existing]

    @pytest.mark.asyncio
    async def test_cancel_when_idle_is_noop(self, spy) -> None:
        enrollment = EnrollmentCoordinator(spy)

        first = await enrollment.cancel_enrollment()
        second = await enrollment.cancel_enrollment()

        assert first.success
        assert second.success
        assert spy.calls == []

    @pytest.mark.asyncio
    async def test_cancel_after_factor_vanished(
        self, backend: InMemoryIdentityBackend, provider: InMemoryIdentityProvider
    ) -> None:
        """Test cancel succeeds even if the pending factor is already gone."""
        enrollment = EnrollmentCoordinator(provider)
        material = (await enrollment.start_enrollment()).unwrap()
        await provider.unenroll_factor(material.factor_id)

        result = await enrollment.cancel_enrollment()

        assert result.success
        assert enrollment.phase is EnrollmentPhase.IDLE
