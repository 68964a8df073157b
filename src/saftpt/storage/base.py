"""Access contracts the core needs from the persistence collaborator."""

from __future__ import annotations

from datetime import date
from typing import ContextManager, Protocol

from ..models import DocumentSeries, FiscalDocument


class SeriesUnitOfWork(Protocol):
    """Operations available while a series is held by one writer."""

    series_id: str

    def get_series(self) -> DocumentSeries:
        ...

    def get_document(self, document_id: str) -> FiscalDocument:
        ...

    def last_emitted(self) -> FiscalDocument | None:
        """Return the document of the series emitted most recently."""

    def save(self, document: FiscalDocument) -> None:
        """Stage ``document``; it is written only when the unit commits."""


class DocumentStore(Protocol):
    def add_series(self, series: DocumentSeries) -> None:
        ...

    def get_series(self, series_id: str) -> DocumentSeries:
        ...

    def allocate_number(self, series_id: str) -> tuple[DocumentSeries, int]:
        """Increment the series counter atomically and return the new number."""

    def add_document(self, document: FiscalDocument) -> None:
        ...

    def get_document(self, document_id: str) -> FiscalDocument:
        ...

    def series_transaction(self, series_id: str) -> ContextManager[SeriesUnitOfWork]:
        """Hold ``series_id`` exclusively; commit on clean exit, discard otherwise."""

    def series_documents(self, series_id: str) -> list[FiscalDocument]:
        """Issued documents of a series in emission order."""

    def issued_documents(
        self, start: date | None = None, end: date | None = None
    ) -> list[FiscalDocument]:
        """Issued documents ordered by issue time, read from one consistent snapshot."""


def in_range(document: FiscalDocument, start: date | None, end: date | None) -> bool:
    if document.issued_at is None:
        return False
    day = document.issued_at.date()
    if start is not None and day < start:
        return False
    if end is not None and day > end:
        return False
    return True


__all__ = ["DocumentStore", "SeriesUnitOfWork", "in_range"]
