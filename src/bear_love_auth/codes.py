"""One-time code normalisation."""

from __future__ import annotations

import re

from .exceptions import ValidationError

CODE_LENGTH = 6

_SEPARATORS = re.compile(r"[\s\-]")
_CODE_PATTERN = re.compile(rf"[0-9]{{{CODE_LENGTH}}}")


def normalize_code(code: object) -> str:
    """Return ``code`` as exactly six ASCII digits.

    Whitespace and hyphens (``"123 456"``, ``"123-456"``) are stripped.
    Anything else that is not an ASCII digit is rejected. Leading zeros are
    kept, so the result is always a string.

    Raises:
        ValidationError: If the code is not a string of six digits.
    """
    if not isinstance(code, str):
        raise ValidationError("Verification code must be a string")

    cleaned = _SEPARATORS.sub("", code)
    if not _CODE_PATTERN.fullmatch(cleaned):
        raise ValidationError(f"Please enter a {CODE_LENGTH}-digit code")
    return cleaned


__all__: list[str] = ["CODE_LENGTH", "normalize_code"]
