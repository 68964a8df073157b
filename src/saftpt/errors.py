"""Exception hierarchy shared by the emission and export paths.

The validator never raises these: malformed reports become findings. They are
reserved for the write path (numbering, chaining, emission) and for report
generation, where a failure must abort the whole operation.
"""

from __future__ import annotations


class SaftError(RuntimeError):
    """Base class for every error raised by :mod:`saftpt`."""


class ConfigurationError(SaftError):
    """Fatal misconfiguration; the operation is aborted with no partial effect."""


class SeriesNotFound(ConfigurationError):
    """The requested document series does not exist."""

    def __init__(self, series_id: str) -> None:
        super().__init__(f"Série não encontrada: {series_id}")
        self.series_id = series_id


class SeriesInactive(ConfigurationError):
    """The requested document series no longer accepts new numbers."""

    def __init__(self, series_id: str) -> None:
        super().__init__(f"Série inactiva: {series_id}")
        self.series_id = series_id


class MissingValidationCode(ConfigurationError):
    """The series has no authority-issued validation code (ATCUD prefix)."""

    def __init__(self, series_id: str | None = None) -> None:
        target = f" na série {series_id}" if series_id else ""
        super().__init__(f"Código de validação AT não configurado{target}")
        self.series_id = series_id


class MissingCompanyProfile(ConfigurationError):
    """No company profile is available to build the report header."""

    def __init__(self) -> None:
        super().__init__("Empresa não configurada.")


class ConcurrencyConflict(SaftError):
    """Another emission holds the series; retry the whole unit of work."""


class DocumentStateError(SaftError):
    """The document is missing or not in the state the operation requires."""


class ExportError(SaftError):
    """The report cannot be generated from the supplied data."""


__all__ = [
    "ConcurrencyConflict",
    "ConfigurationError",
    "DocumentStateError",
    "ExportError",
    "MissingCompanyProfile",
    "MissingValidationCode",
    "SaftError",
    "SeriesInactive",
    "SeriesNotFound",
]
