"""Translation of identity-provider error responses.

This is the only place that looks at provider error codes or messages.
Everything past this boundary sees :class:`AuthError` subclasses.
"""

from __future__ import annotations

from typing import Any

from ..exceptions import (
    AuthError,
    ChallengeExpiredError,
    ChallengeNotFoundError,
    FactorNotFoundError,
    InsufficientAssuranceError,
    InvalidCodeError,
    NotFoundError,
    ServiceUnavailableError,
    StateConflictError,
    UnauthenticatedError,
    ValidationError,
)

_ERROR_CODES: dict[str, type[AuthError]] = {
    # Proof
    "mfa_verification_failed": InvalidCodeError,
    "mfa_verification_rejected": InvalidCodeError,
    "mfa_challenge_expired": ChallengeExpiredError,
    # Lookup
    "mfa_factor_not_found": FactorNotFoundError,
    "mfa_challenge_not_found": ChallengeNotFoundError,
    "user_not_found": NotFoundError,
    # Session
    "invalid_credentials": UnauthenticatedError,
    "no_authorization": UnauthenticatedError,
    "bad_jwt": UnauthenticatedError,
    "session_not_found": UnauthenticatedError,
    "session_expired": UnauthenticatedError,
    "refresh_token_not_found": UnauthenticatedError,
    "email_not_confirmed": UnauthenticatedError,
    # State
    "insufficient_aal": InsufficientAssuranceError,
    "too_many_enrolled_mfa_factors": StateConflictError,
    "mfa_factor_name_conflict": StateConflictError,
    "user_already_exists": StateConflictError,
    "email_exists": StateConflictError,
    "mfa_ip_address_mismatch": StateConflictError,
    # Validation
    "validation_failed": ValidationError,
    "weak_password": ValidationError,
    "bad_json": ValidationError,
    # Availability
    "over_request_rate_limit": ServiceUnavailableError,
    "over_email_send_rate_limit": ServiceUnavailableError,
    "mfa_totp_enroll_not_enabled": ServiceUnavailableError,
    "mfa_totp_verify_not_enabled": ServiceUnavailableError,
}

# Older servers send no error_code; only the message identifies the case.
_MESSAGE_FRAGMENTS: list[tuple[str, type[AuthError]]] = [
    ("invalid totp code", InvalidCodeError),
    ("has expired", ChallengeExpiredError),
    ("already been verified", ChallengeExpiredError),
    ("invalid login credentials", UnauthenticatedError),
    ("already registered", StateConflictError),
    ("aal2 required", InsufficientAssuranceError),
]


def _message_of(body: Any) -> str:
    if not isinstance(body, dict):
        return ""
    for key in ("msg", "message", "error_description", "error"):
        value = body.get(key)
        if isinstance(value, str) and value:
            return value
    return ""


def translate_provider_error(status_code: int, body: Any) -> AuthError:
    """Map an error response to the matching :class:`AuthError`.

    Args:
        status_code: HTTP status of the response.
        body: Decoded JSON body, or None if it was not JSON.

    Returns:
        An exception instance ready to be raised.
    """
    message = _message_of(body)

    error_code = body.get("error_code") if isinstance(body, dict) else None
    if isinstance(error_code, str) and error_code in _ERROR_CODES:
        return _ERROR_CODES[error_code](message or None)

    lowered = message.lower()
    for fragment, error_type in _MESSAGE_FRAGMENTS:
        if fragment in lowered:
            return error_type(message)

    if status_code in (401, 403):
        return UnauthenticatedError(message or None)
    if status_code == 404:
        return NotFoundError(message or None)
    if status_code in (400, 422):
        return ValidationError(message or None)
    return ServiceUnavailableError(message or f"Provider returned HTTP {status_code}")


__all__: list[str] = ["translate_provider_error"]
