"""Per-series document numbering."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .storage import DocumentStore

LOGGER = logging.getLogger("saftpt.sequencing")

# Single padding width for every document label.
SEQUENCE_WIDTH = 5


def format_label(prefix: str, year: int, number: int, *, width: int = SEQUENCE_WIDTH) -> str:
    """Return the printed document number, e.g. ``F 2024/00005``."""

    return f"{prefix} {year}/{number:0{width}d}"


class DocumentSequencer:
    """Allocate monotonic numbers and labels for a document series.

    The per-series counter lives in the store; this class never reads or
    writes it directly. ``DocumentStore.allocate_number`` performs the
    increment under the store's per-series serialization, so two concurrent
    callers can never receive the same number.
    """

    def __init__(self, store: "DocumentStore") -> None:
        self._store = store

    def allocate_next(self, series_id: str) -> tuple[int, str]:
        """Reserve the next number of ``series_id``.

        Raises :class:`~saftpt.errors.SeriesNotFound` or
        :class:`~saftpt.errors.SeriesInactive`.
        """

        series, number = self._store.allocate_number(series_id)
        label = format_label(series.prefix, series.fiscal_year, number)
        LOGGER.debug("Série %s: número %d reservado (%s)", series_id, number, label)
        return number, label


__all__ = ["DocumentSequencer", "SEQUENCE_WIDTH", "format_label"]
