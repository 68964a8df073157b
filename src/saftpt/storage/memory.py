"""In-process document store with one writer per series."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import date
from typing import Iterator

from ..errors import ConcurrencyConflict, DocumentStateError, SeriesInactive, SeriesNotFound
from ..models import DocumentSeries, FiscalDocument
from .base import in_range


class _MemoryUnitOfWork:
    def __init__(self, store: "MemoryDocumentStore", series_id: str) -> None:
        self.series_id = series_id
        self._store = store
        self.staged: dict[str, FiscalDocument] = {}

    def get_series(self) -> DocumentSeries:
        return self._store.get_series(self.series_id)

    def get_document(self, document_id: str) -> FiscalDocument:
        document = self.staged.get(document_id) or self._store.get_document(document_id)
        if document.series_id != self.series_id:
            raise DocumentStateError(
                f"Documento {document_id} não pertence à série {self.series_id}"
            )
        return document

    def last_emitted(self) -> FiscalDocument | None:
        return self._store._last_emitted(self.series_id)

    def save(self, document: FiscalDocument) -> None:
        if document.series_id != self.series_id:
            raise DocumentStateError(
                f"Documento {document.document_id} não pertence à série {self.series_id}"
            )
        self.staged[document.document_id] = document


class MemoryDocumentStore:
    """Keep series and documents in memory.

    Each series has its own :class:`threading.Lock`; numbering and emission
    both run while holding it. A writer that cannot obtain the lock within
    ``lock_timeout`` seconds gets :class:`~saftpt.errors.ConcurrencyConflict`.
    ``lock_timeout=None`` waits indefinitely.
    """

    def __init__(self, *, lock_timeout: float | None = 5.0) -> None:
        self._lock_timeout = -1 if lock_timeout is None else lock_timeout
        self._state = threading.RLock()
        self._series_locks: dict[str, threading.Lock] = {}
        self._series: dict[str, DocumentSeries] = {}
        self._documents: dict[str, FiscalDocument] = {}
        self._emitted: list[str] = []

    def add_series(self, series: DocumentSeries) -> None:
        with self._state:
            self._series[series.series_id] = replace(series)

    def get_series(self, series_id: str) -> DocumentSeries:
        with self._state:
            series = self._series.get(series_id)
            if series is None:
                raise SeriesNotFound(series_id)
            return replace(series)

    def allocate_number(self, series_id: str) -> tuple[DocumentSeries, int]:
        with self._hold(series_id):
            with self._state:
                series = self._series.get(series_id)
                if series is None:
                    raise SeriesNotFound(series_id)
                if not series.active:
                    raise SeriesInactive(series_id)
                series.current_number += 1
                series.locked = True
                return replace(series), series.current_number

    def add_document(self, document: FiscalDocument) -> None:
        with self._state:
            if document.document_id in self._documents:
                raise DocumentStateError(f"Documento já existe: {document.document_id}")
            self._documents[document.document_id] = document

    def get_document(self, document_id: str) -> FiscalDocument:
        with self._state:
            document = self._documents.get(document_id)
        if document is None:
            raise DocumentStateError(f"Documento não encontrado: {document_id}")
        return document

    @contextmanager
    def series_transaction(self, series_id: str) -> Iterator[_MemoryUnitOfWork]:
        with self._hold(series_id):
            unit = _MemoryUnitOfWork(self, series_id)
            yield unit
            self._commit(unit)

    def series_documents(self, series_id: str) -> list[FiscalDocument]:
        with self._state:
            return [
                self._documents[doc_id]
                for doc_id in self._emitted
                if self._documents[doc_id].series_id == series_id
            ]

    def issued_documents(
        self, start: date | None = None, end: date | None = None
    ) -> list[FiscalDocument]:
        with self._state:
            snapshot = [self._documents[doc_id] for doc_id in self._emitted]
        selected = [document for document in snapshot if in_range(document, start, end)]
        # stable: same-instant documents keep emission order
        return sorted(selected, key=lambda document: document.issued_at)

    def _last_emitted(self, series_id: str) -> FiscalDocument | None:
        with self._state:
            for doc_id in reversed(self._emitted):
                document = self._documents[doc_id]
                if document.series_id == series_id:
                    return document
        return None

    def _commit(self, unit: _MemoryUnitOfWork) -> None:
        with self._state:
            for doc_id, document in unit.staged.items():
                current = self._documents.get(doc_id)
                if current is not None and current.is_issued:
                    raise DocumentStateError(f"Documento já emitido: {doc_id}")
            for doc_id, document in unit.staged.items():
                self._documents[doc_id] = document
                if document.is_issued:
                    self._emitted.append(doc_id)

    def _series_lock(self, series_id: str) -> threading.Lock:
        with self._state:
            return self._series_locks.setdefault(series_id, threading.Lock())

    @contextmanager
    def _hold(self, series_id: str) -> Iterator[None]:
        lock = self._series_lock(series_id)
        if not lock.acquire(timeout=self._lock_timeout):
            raise ConcurrencyConflict(f"Série {series_id} ocupada por outra emissão")
        try:
            yield
        finally:
            lock.release()


__all__ = ["MemoryDocumentStore"]
