"""Draft creation and the serialized emission of fiscal documents."""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable

from . import atcud
from .errors import ConcurrencyConflict, DocumentStateError
from .hashchain import derive_code
from .models import DocumentKind, DocumentStatus, FiscalDocument
from .sequencing import DocumentSequencer
from .storage import DocumentStore

LOGGER = logging.getLogger("saftpt.emission")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_draft(
    store: DocumentStore,
    sequencer: DocumentSequencer,
    series_id: str,
    kind: DocumentKind,
    customer_id: str,
    net_total: Decimal,
    tax_total: Decimal,
    gross_total: Decimal,
    created_at: datetime | None = None,
    *,
    document_id: str | None = None,
) -> FiscalDocument:
    """Reserve the next number of ``series_id`` and store a draft document."""

    number, label = sequencer.allocate_next(series_id)
    document = FiscalDocument(
        document_id=document_id or uuid.uuid4().hex,
        series_id=series_id,
        number=number,
        label=label,
        kind=DocumentKind(kind),
        customer_id=customer_id,
        created_at=created_at or _utcnow(),
        net_total=Decimal(net_total),
        tax_total=Decimal(tax_total),
        gross_total=Decimal(gross_total),
    )
    store.add_document(document)
    LOGGER.debug("Rascunho %s criado (%s)", document.document_id, label)
    return document


class DocumentEmitter:
    """Issue draft documents, chaining each to the series' last emission.

    Predecessor lookup, hash and ATCUD derivation and the final write happen
    in one ``store.series_transaction``. Any exception inside it discards the
    staged write, so the stored draft is left exactly as it was.
    """

    def __init__(self, store: DocumentStore, clock: Callable[[], datetime] | None = None) -> None:
        self._store = store
        self._clock = clock or _utcnow

    def emit(self, document_id: str) -> FiscalDocument:
        series_id = self._store.get_document(document_id).series_id
        with self._store.series_transaction(series_id) as unit:
            document = unit.get_document(document_id)
            if document.status is not DocumentStatus.DRAFT:
                raise DocumentStateError(f"Documento já emitido: {document.label}")

            series = unit.get_series()
            predecessor = unit.last_emitted()
            previous_hash = predecessor.hash if predecessor is not None else None
            issued_at = self._clock()

            code = derive_code(
                previous_hash,
                issued_at,
                document.created_at,
                document.label,
                document.gross_total,
            )
            unique_code = atcud.generate(
                series.validation_code, document.number, series_id=series_id
            )
            issued = replace(
                document,
                status=DocumentStatus.ISSUED,
                issued_at=issued_at,
                previous_hash=previous_hash,
                hash=code,
                unique_code=unique_code,
            )
            unit.save(issued)

        LOGGER.info("Documento %s emitido (ATCUD %s)", issued.label, issued.unique_code)
        return issued


def emit_with_retry(emitter: DocumentEmitter, document_id: str, attempts: int = 3) -> FiscalDocument:
    """Run :meth:`DocumentEmitter.emit`, retrying on :class:`ConcurrencyConflict`."""

    if attempts < 1:
        raise ValueError("attempts must be at least 1")
    for attempt in range(1, attempts):
        try:
            return emitter.emit(document_id)
        except ConcurrencyConflict as exc:
            LOGGER.warning(
                "Conflito ao emitir %s (tentativa %d/%d): %s",
                document_id,
                attempt,
                attempts,
                exc,
            )
    return emitter.emit(document_id)


__all__ = ["DocumentEmitter", "create_draft", "emit_with_retry"]
