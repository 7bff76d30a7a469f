"""Tests for TwoFactorService and SignInFlow."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from bear_love_auth import (
    AssuranceLevel,
    EnrollmentPhase,
    InMemorySecurityLogStore,
    MfaErrorKind,
    SecurityAction,
    SecurityLogger,
    SignInFlow,
    SignInPhase,
    TwoFactorService,
)
from bear_love_auth.adapters import InMemoryIdentityBackend, InMemoryIdentityProvider
from bear_love_auth.exceptions import StepUpRequiredError, UnauthenticatedError


class TestTwoFactorStatus:
    @pytest.mark.asyncio
    async def test_status_when_disabled(
        self, provider: InMemoryIdentityProvider
    ) -> None:
        status = (await TwoFactorService(provider).status()).unwrap()

        assert not status.is_enabled
        assert status.factors == ()
        assert status.current_level is AssuranceLevel.AAL1

    @pytest.mark.asyncio
    async def test_status_after_enrollment(
        self,
        provider: InMemoryIdentityProvider,
        current_code: Callable[[str], str],
    ) -> None:
        service = TwoFactorService(provider)
        material = (await service.enrollment.start_enrollment()).unwrap()
        await service.enrollment.verify_enrollment(current_code(material.secret))

        status = (await service.status()).unwrap()

        assert status.is_enabled
        assert [f.id for f in status.factors] == [material.factor_id]
        assert status.current_level is AssuranceLevel.AAL2

    @pytest.mark.asyncio
    async def test_pending_factor_does_not_enable(
        self, provider: InMemoryIdentityProvider
    ) -> None:
        service = TwoFactorService(provider)
        await service.enrollment.start_enrollment()

        status = (await service.status()).unwrap()

        assert not status.is_enabled

    @pytest.mark.asyncio
    async def test_status_without_session(
        self, backend: InMemoryIdentityBackend
    ) -> None:
        result = await TwoFactorService(backend.client()).status()
        assert result.kind is MfaErrorKind.UNAUTHENTICATED


class TestDisableTwoFactor:
    @pytest.mark.asyncio
    async def test_disable_with_valid_code(
        self,
        backend: InMemoryIdentityBackend,
        user_id: str,
        provider: InMemoryIdentityProvider,
        security_log: SecurityLogger,
        log_store: InMemorySecurityLogStore,
        current_code: Callable[[str], str],
    ) -> None:
        """Test disabling proves possession then removes the factor."""
        factor_id, secret = backend.add_verified_factor(user_id)
        service = TwoFactorService(provider, security_log=security_log)

        result = await service.disable(current_code(secret))

        assert result.success
        assert not await service.registry.is_enabled()
        disabled = await log_store.get_events_by_action(SecurityAction.MFA_DISABLED)
        assert [e.details for e in disabled] == [{"factor_id": factor_id}]

    @pytest.mark.asyncio
    async def test_disable_with_wrong_code_keeps_factor(
        self,
        backend: InMemoryIdentityBackend,
        user_id: str,
        provider: InMemoryIdentityProvider,
        wrong_code: Callable[[str], str],
    ) -> None:
        _, secret = backend.add_verified_factor(user_id)
        service = TwoFactorService(provider)

        result = await service.disable(wrong_code(secret))

        assert result.kind is MfaErrorKind.INVALID_CODE
        assert await service.registry.is_enabled()

    @pytest.mark.asyncio
    async def test_disable_when_not_enabled(
        self, provider: InMemoryIdentityProvider
    ) -> None:
        result = await TwoFactorService(provider).disable("123456")
        assert result.kind is MfaErrorKind.STATE_CONFLICT

    @pytest.mark.asyncio
    async def test_disable_unknown_factor(
        self,
        backend: InMemoryIdentityBackend,
        user_id: str,
        provider: InMemoryIdentityProvider,
    ) -> None:
        backend.add_verified_factor(user_id)
        result = await TwoFactorService(provider).disable("123456", factor_id="nope")
        assert result.kind is MfaErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_disable_chosen_factor(
        self,
        backend: InMemoryIdentityBackend,
        user_id: str,
        provider: InMemoryIdentityProvider,
        current_code: Callable[[str], str],
    ) -> None:
        first, _ = backend.add_verified_factor(user_id, label="Phone")
        second, secret = backend.add_verified_factor(user_id, label="Tablet")
        service = TwoFactorService(provider)

        result = await service.disable(current_code(secret), factor_id=second)

        assert result.success
        assert [f.id for f in await service.registry.verified_factors()] == [first]


class TestSignInFlow:
    """Test the login call site and the step-up guard."""

    @pytest.mark.asyncio
    async def test_sign_in_without_two_factor(
        self,
        backend: InMemoryIdentityBackend,
        user_id: str,
        credentials: tuple[str, str],
        security_log: SecurityLogger,
        log_store: InMemorySecurityLogStore,
    ) -> None:
        flow = SignInFlow(backend.client(), security_log=security_log)

        outcome = (await flow.sign_in(*credentials)).unwrap()

        assert outcome.phase is SignInPhase.AUTHENTICATED
        assert flow.require_authenticated().user_id == user_id
        events = await log_store.get_events(user_id)
        assert [(e.action, e.success) for e in events] == [
            (SecurityAction.SIGN_IN, True)
        ]

    @pytest.mark.asyncio
    async def test_wrong_password(
        self,
        backend: InMemoryIdentityBackend,
        user_id: str,
        security_log: SecurityLogger,
        log_store: InMemorySecurityLogStore,
    ) -> None:
        flow = SignInFlow(backend.client(), security_log=security_log)

        result = await flow.sign_in("teddy@example.com", "wrong-password")

        assert result.kind is MfaErrorKind.UNAUTHENTICATED
        assert flow.phase is SignInPhase.SIGNED_OUT
        failed = await log_store.get_events_by_action(SecurityAction.SIGN_IN)
        assert not failed[0].success
        assert failed[0].error_code == "unauthenticated"

    @pytest.mark.asyncio
    async def test_step_up_blocks_access_until_verified(
        self,
        backend: InMemoryIdentityBackend,
        user_id: str,
        credentials: tuple[str, str],
        current_code: Callable[[str], str],
    ) -> None:
        """Test a 2FA account cannot reach protected areas on password alone."""
        factor_id, secret = backend.add_verified_factor(user_id)
        flow = SignInFlow(backend.client())

        outcome = (await flow.sign_in(*credentials)).unwrap()

        assert outcome.phase is SignInPhase.STEP_UP_REQUIRED
        assert [f.id for f in outcome.factors] == [factor_id]
        with pytest.raises(StepUpRequiredError):
            flow.require_authenticated()

        challenge = (await flow.begin_step_up()).unwrap()
        assert challenge.factor_id == factor_id

        completed = (await flow.complete_step_up(current_code(secret))).unwrap()

        assert completed.phase is SignInPhase.AUTHENTICATED
        assert flow.require_authenticated().user_id == user_id

    @pytest.mark.asyncio
    async def test_wrong_step_up_code_needs_new_challenge(
        self,
        backend: InMemoryIdentityBackend,
        user_id: str,
        credentials: tuple[str, str],
        current_code: Callable[[str], str],
        wrong_code: Callable[[str], str],
    ) -> None:
        _, secret = backend.add_verified_factor(user_id)
        flow = SignInFlow(backend.client())
        await flow.sign_in(*credentials)
        await flow.begin_step_up()

        rejected = await flow.complete_step_up(wrong_code(secret))
        assert rejected.kind is MfaErrorKind.INVALID_CODE
        assert flow.phase is SignInPhase.STEP_UP_REQUIRED

        stale = await flow.complete_step_up(current_code(secret))
        assert stale.kind is MfaErrorKind.CHALLENGE_EXPIRED

        await flow.begin_step_up()
        assert (await flow.complete_step_up(current_code(secret))).success

    @pytest.mark.asyncio
    async def test_step_up_without_pending_sign_in(
        self, backend: InMemoryIdentityBackend
    ) -> None:
        flow = SignInFlow(backend.client())

        begun = await flow.begin_step_up()
        completed = await flow.complete_step_up("123456")

        assert begun.kind is MfaErrorKind.STATE_CONFLICT
        assert completed.kind is MfaErrorKind.STATE_CONFLICT
        with pytest.raises(UnauthenticatedError):
            flow.require_authenticated()

    @pytest.mark.asyncio
    async def test_sign_out_resets_flow(
        self,
        backend: InMemoryIdentityBackend,
        user_id: str,
        credentials: tuple[str, str],
        security_log: SecurityLogger,
        log_store: InMemorySecurityLogStore,
    ) -> None:
        provider = backend.client()
        flow = SignInFlow(provider, security_log=security_log)
        await flow.sign_in(*credentials)

        result = await flow.sign_out()

        assert result.success
        assert flow.phase is SignInPhase.SIGNED_OUT
        assert await provider.get_session() is None
        signed_out = await log_store.get_events_by_action(SecurityAction.SIGN_OUT)
        assert signed_out[0].user_id == user_id

    @pytest.mark.asyncio
    async def test_sign_up_and_reset_password(
        self, backend: InMemoryIdentityBackend
    ) -> None:
        flow = SignInFlow(backend.client())

        created = await flow.sign_up("cub@example.com", "berries-and-honey")
        reset = await flow.reset_password("cub@example.com")

        assert created.unwrap().email == "cub@example.com"
        assert reset.success
        assert backend.password_resets == ["cub@example.com"]

    @pytest.mark.asyncio
    async def test_sign_up_short_password(
        self, backend: InMemoryIdentityBackend
    ) -> None:
        result = await SignInFlow(backend.client()).sign_up("cub@example.com", "123")
        assert result.kind is MfaErrorKind.VALIDATION


class TestSignInFlowEnrollmentCleanup:
    """Test enrollment state never outlives the session that started it."""

    @pytest.mark.asyncio
    async def test_sign_out_cancels_pending_enrollment(
        self,
        backend: InMemoryIdentityBackend,
        user_id: str,
        credentials: tuple[str, str],
    ) -> None:
        provider = backend.client()
        service = TwoFactorService(provider)
        flow = SignInFlow(provider, service=service)
        await flow.sign_in(*credentials)
        await service.enrollment.start_enrollment()

        result = await flow.sign_out()

        assert result.success
        assert service.enrollment.phase is EnrollmentPhase.IDLE
        assert service.enrollment.material is None
        remaining = await backend.signed_in_client(user_id).list_factors()
        assert remaining == []

    @pytest.mark.asyncio
    async def test_next_user_does_not_see_previous_enrollment(
        self,
        backend: InMemoryIdentityBackend,
        user_id: str,
        credentials: tuple[str, str],
    ) -> None:
        """Test a second account on the same client starts with no material."""
        backend.create_user("grizzly@example.com", "salmon-run-7")
        provider = backend.client()
        service = TwoFactorService(provider)
        flow = SignInFlow(provider, service=service)
        await flow.sign_in(*credentials)
        await service.enrollment.start_enrollment()
        await flow.sign_out()

        await flow.sign_in("grizzly@example.com", "salmon-run-7")

        assert service.enrollment.phase is EnrollmentPhase.IDLE
        assert service.enrollment.material is None

    @pytest.mark.asyncio
    async def test_sign_in_drops_enrollment_material(
        self,
        backend: InMemoryIdentityBackend,
        user_id: str,
        credentials: tuple[str, str],
    ) -> None:
        provider = backend.client()
        service = TwoFactorService(provider)
        flow = SignInFlow(provider, service=service)
        await flow.sign_in(*credentials)
        await service.enrollment.start_enrollment()

        await flow.sign_in(*credentials)

        assert service.enrollment.material is None
