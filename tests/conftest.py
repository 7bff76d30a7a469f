"""Test configuration and fixtures."""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

import pyotp
import pytest

from bear_love_auth.adapters import InMemoryIdentityBackend, InMemoryIdentityProvider
from bear_love_auth.audit import InMemorySecurityLogStore, SecurityLogger

EMAIL = "teddy@example.com"
PASSWORD = "honey-pot-42"


def _current_code(secret: str) -> str:
    """Code an authenticator app would show right now."""
    return pyotp.TOTP(secret).now()


def _wrong_code(secret: str) -> str:
    """A well-formed code that is not valid in any accepted window."""
    totp = pyotp.TOTP(secret)
    now = time.time()
    valid = {totp.at(now + offset) for offset in (-60, -30, 0, 30, 60)}
    for candidate in ("000000", "111111", "222222", "333333"):
        if candidate not in valid:
            return candidate
    raise AssertionError("unreachable")


@pytest.fixture
def backend() -> InMemoryIdentityBackend:
    return InMemoryIdentityBackend()


@pytest.fixture
def user_id(backend: InMemoryIdentityBackend) -> str:
    return backend.create_user(EMAIL, PASSWORD)


@pytest.fixture
def provider(
    backend: InMemoryIdentityBackend, user_id: str
) -> InMemoryIdentityProvider:
    """Client signed in as the test user at AAL1."""
    return backend.signed_in_client(user_id)


@pytest.fixture
def log_store() -> InMemorySecurityLogStore:
    return InMemorySecurityLogStore()


@pytest.fixture
def security_log(log_store: InMemorySecurityLogStore) -> SecurityLogger:
    return SecurityLogger(log_store)


@pytest.fixture
def current_code() -> Callable[[str], str]:
    return _current_code


@pytest.fixture
def wrong_code() -> Callable[[str], str]:
    return _wrong_code


@pytest.fixture
def credentials() -> tuple[str, str]:
    return EMAIL, PASSWORD


class SpyProvider:
    """Forwards to a real provider and records every call made."""

    def __init__(self, inner: InMemoryIdentityProvider) -> None:
        self.inner = inner
        self.calls: list[str] = []

    def __getattr__(self, name: str) -> Any:
        target = getattr(self.inner, name)
        if not callable(target):
            return target

        async def recorded(*args: Any, **kwargs: Any) -> Any:
            self.calls.append(name)
            return await target(*args, **kwargs)

        return recorded


@pytest.fixture
def spy(provider: InMemoryIdentityProvider) -> SpyProvider:
    return SpyProvider(provider)
