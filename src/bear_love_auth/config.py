"""Two-factor configuration."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class MfaConfig:
    """Two-factor configuration.

    Attributes:
        issuer: Application name shown in authenticator apps.
        friendly_name: Label given to newly enrolled factors.
        valid_window: Accept codes within ±N TOTP intervals (clock drift).
        challenge_ttl_seconds: Lifetime of a challenge issued by the
            in-memory provider. Hosted providers decide this themselves.
    """

    issuer: str = "Bear Love"
    friendly_name: str = "Authenticator App"
    valid_window: int = 1
    challenge_ttl_seconds: int = 300


__all__: list[str] = ["MfaConfig"]
