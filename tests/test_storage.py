from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal

import pytest

from conftest import StepClock, make_series
from saftpt.emission import DocumentEmitter, create_draft
from saftpt.errors import ConcurrencyConflict, DocumentStateError, SeriesNotFound
from saftpt.models import DocumentKind, DocumentStatus
from saftpt.sequencing import DocumentSequencer
from saftpt.storage import SqliteDocumentStore


def _draft(store, series_id: str = "FT-2024"):
    return create_draft(
        store,
        DocumentSequencer(store),
        series_id,
        DocumentKind.INVOICE,
        "c-1",
        Decimal("10.00"),
        Decimal("2.30"),
        Decimal("12.30"),
        created_at=datetime(2024, 1, 31, 8, 0, 0),
    )


def test_get_series_unknown(store) -> None:
    with pytest.raises(SeriesNotFound):
        store.get_series("nao-existe")


def test_add_document_rejects_duplicate_id(store) -> None:
    store.add_series(make_series())
    draft = _draft(store)

    with pytest.raises(DocumentStateError):
        store.add_document(draft)


def test_failed_unit_of_work_discards_staged_write(store) -> None:
    store.add_series(make_series())
    draft = _draft(store)
    issued = replace(draft, status=DocumentStatus.ISSUED, issued_at=datetime(2024, 2, 1), hash="a" * 64)

    with pytest.raises(RuntimeError):
        with store.series_transaction("FT-2024") as unit:
            unit.save(issued)
            raise RuntimeError("falha simulada")

    assert store.get_document(draft.document_id) == draft
    assert store.series_documents("FT-2024") == []


def test_unit_of_work_refuses_documents_of_other_series(store) -> None:
    store.add_series(make_series("FT-2024"))
    store.add_series(make_series("NC-2024", prefix="NC"))
    draft = _draft(store, "NC-2024")

    with pytest.raises(DocumentStateError):
        with store.series_transaction("FT-2024") as unit:
            unit.get_document(draft.document_id)


def test_issued_documents_filters_by_issue_date(store) -> None:
    store.add_series(make_series())
    emitter = DocumentEmitter(store, clock=StepClock(datetime(2024, 1, 31, 23, 59, 59)))
    january = emitter.emit(_draft(store).document_id)
    february = emitter.emit(_draft(store).document_id)
    _draft(store)

    assert store.issued_documents() == [january, february]
    assert store.issued_documents(date(2024, 2, 1), date(2024, 2, 29)) == [february]
    assert store.issued_documents(end=date(2024, 1, 31)) == [january]


def test_issued_documents_orders_by_issue_time_across_series(store) -> None:
    store.add_series(make_series("FT-2024"))
    store.add_series(make_series("NC-2024", prefix="NC"))
    emitter = DocumentEmitter(store, clock=StepClock())
    first = emitter.emit(_draft(store, "NC-2024").document_id)
    second = emitter.emit(_draft(store, "FT-2024").document_id)
    third = emitter.emit(_draft(store, "NC-2024").document_id)

    assert store.issued_documents() == [first, second, third]


def test_sqlite_store_persists_between_instances(tmp_path) -> None:
    path = tmp_path / "dados" / "documentos.db"
    store = SqliteDocumentStore(path)
    store.add_series(make_series())
    issued = DocumentEmitter(store, clock=StepClock()).emit(_draft(store).document_id)

    reopened = SqliteDocumentStore(path)

    assert reopened.get_series("FT-2024").current_number == 1
    assert reopened.series_documents("FT-2024") == [issued]


def test_sqlite_rejects_second_chain_start(tmp_path) -> None:
    store = SqliteDocumentStore(tmp_path / "documentos.db")
    store.add_series(make_series())
    DocumentEmitter(store, clock=StepClock()).emit(_draft(store).document_id)
    second = _draft(store)
    forged = replace(
        second,
        status=DocumentStatus.ISSUED,
        issued_at=datetime(2024, 3, 16),
        previous_hash=None,
        hash="b" * 64,
        unique_code="DEMO123-2",
    )

    with pytest.raises(ConcurrencyConflict):
        with store.series_transaction("FT-2024") as unit:
            unit.save(forged)

    assert store.get_document(second.document_id) == second
