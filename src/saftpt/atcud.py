"""ATCUD: unique document code (``CódigoValidação-Número``)."""

from __future__ import annotations

import re

from .errors import MissingValidationCode

SEPARATOR = "-"

_ATCUD_PATTERN = re.compile(r"^([^-\s]+)-(\d+)$")


def generate(validation_code: str | None, sequence_number: int, *, series_id: str | None = None) -> str:
    """Combine the series validation code with the document number.

    >>> generate("DEMO123", 7)
    'DEMO123-7'
    """

    code = (validation_code or "").strip()
    if not code:
        raise MissingValidationCode(series_id)
    return f"{code}{SEPARATOR}{int(sequence_number)}"


def parse(unique_code: str) -> tuple[str, int] | None:
    """Split an ATCUD into ``(validation_code, number)``; ``None`` if malformed."""

    match = _ATCUD_PATTERN.match((unique_code or "").strip())
    if match is None:
        return None
    return match.group(1), int(match.group(2))


__all__ = ["SEPARATOR", "generate", "parse"]
