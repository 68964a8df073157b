"""Utility helpers shared across SAF-T (PT) modules."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from lxml import etree

NS_DEFAULT = "urn:OECD:StandardAuditFile-Tax:PT_1.04_01"

_CENT = Decimal("0.01")


def detect_namespace(root: etree._Element) -> str:
    """Return the XML namespace of the document root (empty when unqualified)."""

    tag = getattr(root, "tag", "")
    if isinstance(tag, str) and tag.startswith("{") and "}" in tag:
        return tag.split("}", 1)[0][1:]
    return ""


def parse_decimal(value: str | Decimal | None, *, default: Decimal = Decimal("0")) -> Decimal:
    """Convert the provided value to :class:`~decimal.Decimal`.

    Valores vazios, inválidos ou não finitos devolvem o ``default`` fornecido.
    """

    if value is None:
        return default
    if isinstance(value, Decimal):
        return value if value.is_finite() else default

    text = str(value).strip()
    if not text:
        return default

    try:
        parsed = Decimal(text)
    except (InvalidOperation, ValueError):
        return default
    return parsed if parsed.is_finite() else default


def is_valid_tax_id(value: str) -> bool:
    """Check a Portuguese tax number (NIF): nine digits and a mod-11 check digit."""

    if len(value) != 9 or not value.isascii() or not value.isdigit():
        return False
    total = sum(int(digit) * weight for digit, weight in zip(value[:8], range(9, 1, -1)))
    remainder = total % 11
    check = 0 if remainder < 2 else 11 - remainder
    return int(value[8]) == check


def q2(value: Decimal) -> Decimal:
    """Quantize to cents, rounding half up."""

    return Decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def fmt2(value: Decimal) -> str:
    return f"{q2(value):.2f}"


__all__ = ["NS_DEFAULT", "detect_namespace", "fmt2", "is_valid_tax_id", "parse_decimal", "q2"]
