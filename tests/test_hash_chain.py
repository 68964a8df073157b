from __future__ import annotations

import re
from dataclasses import replace
from datetime import datetime
from decimal import Decimal

from saftpt.hashchain import HASH_LENGTH, derive_code, verify_chain
from saftpt.models import DocumentKind, DocumentStatus, FiscalDocument

ISSUED = datetime(2024, 3, 15, 10, 0, 0)
CREATED = datetime(2024, 3, 15, 9, 30, 0)


def _issued(number: int, previous: str | None, gross: str = "123.00") -> FiscalDocument:
    label = f"F 2024/{number:05d}"
    issued_at = ISSUED.replace(minute=number)
    code = derive_code(previous, issued_at, CREATED, label, Decimal(gross))
    return FiscalDocument(
        document_id=f"doc-{number}",
        series_id="FT-2024",
        number=number,
        label=label,
        kind=DocumentKind.INVOICE,
        customer_id="c-1",
        created_at=CREATED,
        net_total=Decimal("100.00"),
        tax_total=Decimal("23.00"),
        gross_total=Decimal(gross),
        status=DocumentStatus.ISSUED,
        issued_at=issued_at,
        previous_hash=previous,
        hash=code,
        unique_code=f"DEMO123-{number}",
    )


def _chain(size: int) -> list[FiscalDocument]:
    documents: list[FiscalDocument] = []
    previous = None
    for number in range(1, size + 1):
        document = _issued(number, previous)
        documents.append(document)
        previous = document.hash
    return documents


def test_derive_code_is_deterministic_hex() -> None:
    first = derive_code(None, ISSUED, CREATED, "F 2024/00001", Decimal("123.00"))
    second = derive_code(None, ISSUED, CREATED, "F 2024/00001", Decimal("123.00"))

    assert first == second
    assert len(first) == HASH_LENGTH == 64
    assert re.fullmatch(r"[0-9a-f]{64}", first)


def test_derive_code_depends_on_every_field() -> None:
    base = derive_code("abc", ISSUED, CREATED, "F 2024/00001", Decimal("123.00"))

    variants = {
        derive_code(None, ISSUED, CREATED, "F 2024/00001", Decimal("123.00")),
        derive_code("abd", ISSUED, CREATED, "F 2024/00001", Decimal("123.00")),
        derive_code("abc", ISSUED.replace(second=1), CREATED, "F 2024/00001", Decimal("123.00")),
        derive_code("abc", ISSUED, CREATED.replace(second=1), "F 2024/00001", Decimal("123.00")),
        derive_code("abc", ISSUED, CREATED, "F 2024/00002", Decimal("123.00")),
        derive_code("abc", ISSUED, CREATED, "F 2024/00001", Decimal("123.01")),
    }

    assert base not in variants
    assert len(variants) == 6


def test_derive_code_normalises_amount_to_cents() -> None:
    assert derive_code(None, ISSUED, CREATED, "F 2024/00001", Decimal("123")) == derive_code(
        None, ISSUED, CREATED, "F 2024/00001", Decimal("123.000")
    )


def test_verify_chain_accepts_intact_chain() -> None:
    assert verify_chain(_chain(4)) == []


def test_verify_chain_detects_tampered_amount() -> None:
    documents = _chain(3)
    documents[1] = replace(documents[1], gross_total=Decimal("999.00"))

    breaks = verify_chain(documents)

    assert [item.document_id for item in breaks] == ["doc-2"]
    assert "Hash gravado" in breaks[0].reason


def test_verify_chain_detects_rewritten_link() -> None:
    documents = _chain(3)
    forged = _issued(2, None)
    documents[1] = forged

    breaks = verify_chain(documents)

    broken_ids = [item.document_id for item in breaks]
    assert broken_ids[0] == "doc-2"
    assert "doc-3" in broken_ids


def test_verify_chain_skips_drafts() -> None:
    documents = _chain(2)
    draft = replace(
        documents[0],
        document_id="draft",
        status=DocumentStatus.DRAFT,
        issued_at=None,
        previous_hash=None,
        hash=None,
    )

    assert verify_chain([documents[0], draft, documents[1]]) == []
