"""Identity provider adapters."""

from __future__ import annotations

from .errors import translate_provider_error
from .gotrue import GoTrueConfig, GoTrueIdentityProvider
from .memory import InMemoryIdentityBackend, InMemoryIdentityProvider

__all__: list[str] = [
    "translate_provider_error",
    "GoTrueConfig",
    "GoTrueIdentityProvider",
    "InMemoryIdentityBackend",
    "InMemoryIdentityProvider",
]
