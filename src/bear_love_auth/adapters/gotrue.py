"""GoTrue (hosted auth REST API) implementation of IIdentityProvider.

Uses httpx for HTTP and joserfc to read the ``aal`` claim of the access
token. Error responses go through :func:`translate_provider_error`.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
from joserfc.errors import JoseError
from joserfc.jws import extract_compact

from ..assurance import AssuranceLevel, AssuranceLevels
from ..exceptions import ServiceUnavailableError, UnauthenticatedError
from ..factors import Factor, FactorKind, FactorStatus
from ..ports import ChallengeTicket, EnrolledFactor, IIdentityProvider, Session
from .errors import translate_provider_error

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GoTrueConfig:
    """GoTrue connection settings.

    Attributes:
        url: Auth API base URL, e.g. ``https://<project>.supabase.co/auth/v1``.
        api_key: Public (anon) API key sent with every request.
        issuer: Issuer shown in authenticator apps for new factors.
        timeout: Request timeout in seconds.
        user_agent: User-Agent header value.
    """

    url: str
    api_key: str
    issuer: str = "Bear Love"
    timeout: float = 10.0
    user_agent: str = "bear-love-auth/0.1.0"


# Go marshals time.Time with 0-9 fractional digits; fromisoformat on 3.10
# accepts only 3 or 6.
_FRACTION = re.compile(r"\.(\d+)")


def _parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if not isinstance(value, str) or not value:
        return None

    normalized = _FRACTION.sub(
        lambda m: "." + m.group(1)[:6].ljust(6, "0"), value.replace("Z", "+00:00"), 1
    )
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError as e:
        raise ServiceUnavailableError("Malformed provider response") from e
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _factor_from(data: dict[str, Any]) -> Factor:
    if data.get("status") == "verified":
        status = FactorStatus.VERIFIED
    else:
        status = FactorStatus.PENDING
    return Factor(
        id=str(data["id"]),
        kind=FactorKind.TOTP,
        label=data.get("friendly_name") or "",
        status=status,
        created_at=_parse_timestamp(data.get("created_at")),
    )


class GoTrueIdentityProvider(IIdentityProvider):
    """Session-bound GoTrue client.

    Example:
        ```python
        config = GoTrueConfig(
            url="https://project.supabase.co/auth/v1",
            api_key="public-anon-key",
        )
        provider = GoTrueIdentityProvider(config)
        await provider.sign_in("bear@example.com", "honey-pot-42")

        service = TwoFactorService(provider)
        ```
    """

    def __init__(
        self,
        config: GoTrueConfig,
        *,
        client: httpx.AsyncClient | None = None,
        session: Session | None = None,
    ) -> None:
        self.config = config
        self._client = client or httpx.AsyncClient(timeout=config.timeout)
        self._session = session

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── Primary authentication ───────────────────────────────────

    async def sign_in(self, email: str, password: str) -> Session:
        data = await self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
            authenticated=False,
        )
        self._session = self._session_from(data)
        return self._session

    async def sign_up(self, email: str, password: str) -> Session | None:
        data = await self._request(
            "POST",
            "/signup",
            json={"email": email, "password": password},
            authenticated=False,
        )
        if isinstance(data, dict) and data.get("access_token"):
            self._session = self._session_from(data)
            return self._session
        # Email confirmation pending: account created without a session.
        return None

    async def sign_out(self) -> None:
        if self._session is None:
            return
        try:
            await self._request("POST", "/logout")
        finally:
            self._session = None

    async def reset_password_for_email(self, email: str) -> None:
        await self._request(
            "POST", "/recover", json={"email": email}, authenticated=False
        )

    async def get_session(self) -> Session | None:
        return self._session

    # ── Factors ──────────────────────────────────────────────────

    async def enroll_factor(self, kind: FactorKind, label: str) -> EnrolledFactor:
        data = await self._request(
            "POST",
            "/factors",
            json={
                "factor_type": kind.value,
                "friendly_name": label,
                "issuer": self.config.issuer,
            },
        )
        try:
            totp = data["totp"]
            return EnrolledFactor(
                id=str(data["id"]),
                secret=totp["secret"],
                qr_image=totp["qr_code"],
                uri=totp["uri"],
            )
        except (KeyError, TypeError) as e:
            raise ServiceUnavailableError("Malformed enrollment response") from e

    async def unenroll_factor(self, factor_id: str) -> None:
        await self._request("DELETE", f"/factors/{factor_id}")

    async def list_factors(self) -> list[Factor]:
        user = await self._request("GET", "/user")
        factors = user.get("factors") if isinstance(user, dict) else None
        return [
            _factor_from(f)
            for f in factors or []
            if f.get("factor_type", "totp") == FactorKind.TOTP.value
        ]

    # ── Challenges ───────────────────────────────────────────────

    async def create_challenge(self, factor_id: str) -> ChallengeTicket:
        data = await self._request("POST", f"/factors/{factor_id}/challenge")
        if not isinstance(data, dict) or "id" not in data:
            raise ServiceUnavailableError("Malformed challenge response")
        return ChallengeTicket(
            id=str(data["id"]),
            factor_id=factor_id,
            expires_at=_parse_timestamp(data.get("expires_at")),
        )

    async def verify_challenge(
        self, factor_id: str, challenge_id: str, code: str
    ) -> None:
        data = await self._request(
            "POST",
            f"/factors/{factor_id}/verify",
            json={"challenge_id": challenge_id, "code": code},
        )
        # Verification issues a new AAL2 token pair.
        self._session = self._session_from(data)

    async def get_assurance_levels(self) -> AssuranceLevels:
        session = self._require_session()
        current = self._token_level(session.access_token)
        factors = await self.list_factors()
        has_verified = any(f.is_verified for f in factors)
        return AssuranceLevels(
            current_level=current,
            next_level=AssuranceLevel.AAL2 if has_verified else current,
        )

    # ── Internals ────────────────────────────────────────────────

    def _require_session(self) -> Session:
        if self._session is None:
            raise UnauthenticatedError()
        return self._session

    def _token_level(self, token: str) -> AssuranceLevel:
        try:
            claims = json.loads(extract_compact(token.encode()).payload)
        except (JoseError, ValueError) as e:
            raise UnauthenticatedError("Malformed access token") from e
        if claims.get("aal") == AssuranceLevel.AAL2.value:
            return AssuranceLevel.AAL2
        return AssuranceLevel.AAL1

    def _session_from(self, data: Any) -> Session:
        if not isinstance(data, dict) or not data.get("access_token"):
            raise ServiceUnavailableError("Malformed token response")
        user = data.get("user") or {}
        previous = self._session

        expires_at = _parse_timestamp(data.get("expires_at"))
        if expires_at is None and isinstance(data.get("expires_in"), (int, float)):
            expires_at = datetime.now(timezone.utc) + timedelta(
                seconds=data["expires_in"]
            )

        return Session(
            access_token=data["access_token"],
            user_id=str(user.get("id") or (previous.user_id if previous else "")),
            email=user.get("email") or (previous.email if previous else None),
            refresh_token=data.get("refresh_token"),
            expires_at=expires_at,
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
        authenticated: bool = True,
    ) -> Any:
        if authenticated:
            bearer = self._require_session().access_token
        else:
            bearer = self.config.api_key

        headers = {
            "apikey": self.config.api_key,
            "Authorization": f"Bearer {bearer}",
            "User-Agent": self.config.user_agent,
        }
        url = f"{self.config.url.rstrip('/')}{path}"

        try:
            response = await self._client.request(
                method, url, json=json, params=params, headers=headers
            )
        except httpx.HTTPError as e:
            logger.error(f"GoTrue {method} {path} failed: {e}")
            raise ServiceUnavailableError(str(e) or None) from e

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = None
            error = translate_provider_error(response.status_code, body)
            logger.warning(
                f"GoTrue {method} {path} returned {response.status_code} "
                f"({error.kind.value})"
            )
            raise error

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ServiceUnavailableError("Malformed provider response") from e


__all__: list[str] = ["GoTrueConfig", "GoTrueIdentityProvider"]
