"""Tamper-evidence chain for issued documents.

Each issued document stores the SHA-256 digest of its own chain fields
together with the digest of the document emitted immediately before it in the
same series. Altering any issued document breaks every later link.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from .models import FiscalDocument

HASH_LENGTH = 64
_SEPARATOR = ";"
_CENT = Decimal("0.01")


def derive_code(
    predecessor: str | None,
    issued_at: datetime,
    created_at: datetime,
    label: str,
    gross_total: Decimal,
) -> str:
    """Return the 64-character hexadecimal chain code for a document.

    The digest covers, in order, the issue timestamp, the creation timestamp,
    the formatted label, the gross total with two decimals and the
    predecessor code (empty for the first document of a series).
    """

    gross = Decimal(gross_total).quantize(_CENT, rounding=ROUND_HALF_UP)
    message = _SEPARATOR.join(
        [
            issued_at.isoformat(),
            created_at.isoformat(),
            label,
            f"{gross:.2f}",
            predecessor or "",
        ]
    )
    return hashlib.sha256(message.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class ChainBreak:
    """A link of a series chain that does not verify."""

    document_id: str
    label: str
    reason: str


def verify_chain(documents: Iterable[FiscalDocument]) -> list[ChainBreak]:
    """Check the chain of one series given its documents in emission order."""

    breaks: list[ChainBreak] = []
    previous: str | None = None
    for document in documents:
        if not document.is_issued:
            continue
        if document.previous_hash != previous:
            expected = previous or "(nenhum)"
            breaks.append(
                ChainBreak(
                    document.document_id,
                    document.label,
                    f"Hash anterior não corresponde ao documento anterior ({expected})",
                )
            )
        if document.issued_at is None:
            breaks.append(
                ChainBreak(document.document_id, document.label, "Documento emitido sem data de emissão")
            )
            previous = document.hash
            continue
        recomputed = derive_code(
            document.previous_hash,
            document.issued_at,
            document.created_at,
            document.label,
            document.gross_total,
        )
        if recomputed != document.hash:
            breaks.append(
                ChainBreak(
                    document.document_id,
                    document.label,
                    "Hash gravado não corresponde aos dados do documento",
                )
            )
        previous = document.hash
    return breaks


__all__ = ["ChainBreak", "HASH_LENGTH", "derive_code", "verify_chain"]
