"""SQLite-backed document store.

Every operation opens its own connection so the store can be shared between
threads. Writers take the database write lock up front with
``BEGIN IMMEDIATE``; a writer that cannot obtain it within ``timeout``
seconds gets :class:`~saftpt.errors.ConcurrencyConflict`.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Iterator

from ..errors import ConcurrencyConflict, DocumentStateError, SeriesInactive, SeriesNotFound
from ..models import DocumentKind, DocumentSeries, DocumentStatus, FiscalDocument
from .base import in_range

LOGGER = logging.getLogger("saftpt.storage.sqlite")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS series (
    series_id TEXT PRIMARY KEY,
    code TEXT NOT NULL,
    prefix TEXT NOT NULL,
    fiscal_year INTEGER NOT NULL,
    validation_code TEXT,
    current_number INTEGER NOT NULL DEFAULT 0,
    locked INTEGER NOT NULL DEFAULT 0,
    active INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS documents (
    document_id TEXT PRIMARY KEY,
    series_id TEXT NOT NULL REFERENCES series(series_id),
    number INTEGER NOT NULL,
    label TEXT NOT NULL,
    kind TEXT NOT NULL,
    customer_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    net_total TEXT NOT NULL,
    tax_total TEXT NOT NULL,
    gross_total TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'draft',
    issued_at TEXT,
    previous_hash TEXT,
    hash TEXT,
    unique_code TEXT,
    emission_seq INTEGER,
    UNIQUE (series_id, number),
    UNIQUE (series_id, emission_seq),
    UNIQUE (series_id, previous_hash)
);

-- at most one chain start per series
CREATE UNIQUE INDEX IF NOT EXISTS idx_documents_chain_start
    ON documents(series_id) WHERE status = 'issued' AND previous_hash IS NULL;

CREATE INDEX IF NOT EXISTS idx_documents_emission
    ON documents(status, emission_seq);
"""

_DOCUMENT_COLUMNS = (
    "document_id, series_id, number, label, kind, customer_id, created_at, "
    "net_total, tax_total, gross_total, status, issued_at, previous_hash, hash, unique_code"
)


def _series_from_row(row: sqlite3.Row) -> DocumentSeries:
    return DocumentSeries(
        series_id=row["series_id"],
        code=row["code"],
        prefix=row["prefix"],
        fiscal_year=row["fiscal_year"],
        validation_code=row["validation_code"],
        current_number=row["current_number"],
        locked=bool(row["locked"]),
        active=bool(row["active"]),
    )


def _document_from_row(row: sqlite3.Row) -> FiscalDocument:
    issued_at = row["issued_at"]
    return FiscalDocument(
        document_id=row["document_id"],
        series_id=row["series_id"],
        number=row["number"],
        label=row["label"],
        kind=DocumentKind(row["kind"]),
        customer_id=row["customer_id"],
        created_at=datetime.fromisoformat(row["created_at"]),
        net_total=Decimal(row["net_total"]),
        tax_total=Decimal(row["tax_total"]),
        gross_total=Decimal(row["gross_total"]),
        status=DocumentStatus(row["status"]),
        issued_at=datetime.fromisoformat(issued_at) if issued_at else None,
        previous_hash=row["previous_hash"],
        hash=row["hash"],
        unique_code=row["unique_code"],
    )


def _document_params(document: FiscalDocument) -> tuple:
    return (
        document.document_id,
        document.series_id,
        document.number,
        document.label,
        document.kind.value,
        document.customer_id,
        document.created_at.isoformat(),
        str(document.net_total),
        str(document.tax_total),
        str(document.gross_total),
        document.status.value,
        document.issued_at.isoformat() if document.issued_at else None,
        document.previous_hash,
        document.hash,
        document.unique_code,
    )


class _SqliteUnitOfWork:
    def __init__(self, conn: sqlite3.Connection, series_id: str) -> None:
        self.series_id = series_id
        self._conn = conn

    def get_series(self) -> DocumentSeries:
        row = self._conn.execute(
            "SELECT * FROM series WHERE series_id = ?", (self.series_id,)
        ).fetchone()
        if row is None:
            raise SeriesNotFound(self.series_id)
        return _series_from_row(row)

    def get_document(self, document_id: str) -> FiscalDocument:
        row = self._conn.execute(
            f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE document_id = ?",
            (document_id,),
        ).fetchone()
        if row is None:
            raise DocumentStateError(f"Documento não encontrado: {document_id}")
        if row["series_id"] != self.series_id:
            raise DocumentStateError(
                f"Documento {document_id} não pertence à série {self.series_id}"
            )
        return _document_from_row(row)

    def last_emitted(self) -> FiscalDocument | None:
        row = self._conn.execute(
            f"SELECT {_DOCUMENT_COLUMNS} FROM documents "
            "WHERE series_id = ? AND status = 'issued' "
            "ORDER BY emission_seq DESC LIMIT 1",
            (self.series_id,),
        ).fetchone()
        return _document_from_row(row) if row is not None else None

    def save(self, document: FiscalDocument) -> None:
        if document.series_id != self.series_id:
            raise DocumentStateError(
                f"Documento {document.document_id} não pertence à série {self.series_id}"
            )
        emission_seq = None
        if document.is_issued:
            (emission_seq,) = self._conn.execute(
                "SELECT COALESCE(MAX(emission_seq), 0) + 1 FROM documents WHERE series_id = ?",
                (self.series_id,),
            ).fetchone()
        try:
            cursor = self._conn.execute(
                "UPDATE documents SET status = ?, issued_at = ?, previous_hash = ?, "
                "hash = ?, unique_code = ?, emission_seq = ? "
                "WHERE document_id = ? AND status = 'draft'",
                (
                    document.status.value,
                    document.issued_at.isoformat() if document.issued_at else None,
                    document.previous_hash,
                    document.hash,
                    document.unique_code,
                    emission_seq,
                    document.document_id,
                ),
            )
        except sqlite3.IntegrityError as exc:
            raise ConcurrencyConflict(
                f"Conflito ao gravar {document.label}: {exc}"
            ) from exc
        if cursor.rowcount != 1:
            raise DocumentStateError(f"Documento já emitido: {document.document_id}")


class SqliteDocumentStore:
    """Persist series and documents in a SQLite database file."""

    def __init__(self, db_path: str | Path, *, timeout: float = 5.0) -> None:
        self.db_path = str(db_path)
        self._timeout = timeout
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_database()
        LOGGER.info("Base de dados inicializada em %s", self.db_path)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=self._timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _init_database(self) -> None:
        conn = self._connect()
        try:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.executescript(_SCHEMA)
        finally:
            conn.close()

    @contextmanager
    def _write(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.OperationalError as exc:
                raise ConcurrencyConflict(f"Base de dados ocupada: {exc}") from exc
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            try:
                conn.execute("COMMIT")
            except sqlite3.OperationalError as exc:
                conn.execute("ROLLBACK")
                raise ConcurrencyConflict(f"Falha ao confirmar transação: {exc}") from exc
        finally:
            conn.close()

    @contextmanager
    def _read(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            conn.execute("BEGIN")
            try:
                yield conn
            finally:
                conn.execute("COMMIT")
        finally:
            conn.close()

    def add_series(self, series: DocumentSeries) -> None:
        with self._write() as conn:
            conn.execute(
                "INSERT INTO series (series_id, code, prefix, fiscal_year, validation_code, "
                "current_number, locked, active) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    series.series_id,
                    series.code,
                    series.prefix,
                    series.fiscal_year,
                    series.validation_code,
                    series.current_number,
                    int(series.locked),
                    int(series.active),
                ),
            )

    def get_series(self, series_id: str) -> DocumentSeries:
        with self._read() as conn:
            row = conn.execute(
                "SELECT * FROM series WHERE series_id = ?", (series_id,)
            ).fetchone()
        if row is None:
            raise SeriesNotFound(series_id)
        return _series_from_row(row)

    def allocate_number(self, series_id: str) -> tuple[DocumentSeries, int]:
        with self._write() as conn:
            row = conn.execute(
                "SELECT * FROM series WHERE series_id = ?", (series_id,)
            ).fetchone()
            if row is None:
                raise SeriesNotFound(series_id)
            if not row["active"]:
                raise SeriesInactive(series_id)
            conn.execute(
                "UPDATE series SET current_number = current_number + 1, locked = 1 "
                "WHERE series_id = ?",
                (series_id,),
            )
            row = conn.execute(
                "SELECT * FROM series WHERE series_id = ?", (series_id,)
            ).fetchone()
        series = _series_from_row(row)
        return series, series.current_number

    def add_document(self, document: FiscalDocument) -> None:
        try:
            with self._write() as conn:
                conn.execute(
                    f"INSERT INTO documents ({_DOCUMENT_COLUMNS}) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    _document_params(document),
                )
        except sqlite3.IntegrityError as exc:
            raise DocumentStateError(
                f"Documento não pode ser gravado: {document.document_id} ({exc})"
            ) from exc

    def get_document(self, document_id: str) -> FiscalDocument:
        with self._read() as conn:
            row = conn.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE document_id = ?",
                (document_id,),
            ).fetchone()
        if row is None:
            raise DocumentStateError(f"Documento não encontrado: {document_id}")
        return _document_from_row(row)

    @contextmanager
    def series_transaction(self, series_id: str) -> Iterator[_SqliteUnitOfWork]:
        with self._write() as conn:
            yield _SqliteUnitOfWork(conn, series_id)

    def series_documents(self, series_id: str) -> list[FiscalDocument]:
        with self._read() as conn:
            rows = conn.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents "
                "WHERE series_id = ? AND status = 'issued' ORDER BY emission_seq",
                (series_id,),
            ).fetchall()
        return [_document_from_row(row) for row in rows]

    def issued_documents(
        self, start: date | None = None, end: date | None = None
    ) -> list[FiscalDocument]:
        with self._read() as conn:
            rows = conn.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents "
                "WHERE status = 'issued' ORDER BY issued_at, series_id, emission_seq"
            ).fetchall()
        documents = [_document_from_row(row) for row in rows]
        return [document for document in documents if in_range(document, start, end)]


__all__ = ["SqliteDocumentStore"]
