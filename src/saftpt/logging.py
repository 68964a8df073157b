"""Folhas Excel com as ocorrências de uma validação SAF-T (PT).

Cada chamada a :meth:`ExcelLogger.write_rows` gera um *workbook* novo: uma
linha de cabeçalho a negrito, uma linha por registo e, quando configurada, a
coluna de severidade pinta a linha inteira (crítico, erro, aviso). Os
registos podem ser sequências simples ou objectos com ``as_cells()``, como
:class:`saftpt.findings.Finding`.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Protocol, Sequence

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

SEVERITY_COLOURS = {
    "critical": "F4B6B6",
    "error": "FAD7A0",
    "warning": "FCF3CF",
}


class RowLike(Protocol):
    """Protocolo para linhas serializáveis em formato tabular."""

    def as_cells(self) -> Iterable[str]:
        """Devolve os valores ordenados a escrever na folha."""


@dataclass(slots=True)
class ExcelLoggerConfig:
    """Configuração usada pelo :class:`ExcelLogger`.

    ``severity_column`` é o índice (a partir de 0) da coluna cujo valor
    escolhe a cor da linha; ``None`` desliga o realce.
    """

    columns: Sequence[str]
    filename: str = "saft-pt-validacao.xlsx"
    sheet_title: str = "Validação"
    column_widths: Sequence[int] = ()
    severity_column: int | None = None


def _cells(row: RowLike | Iterable[str]) -> list[str]:
    if hasattr(row, "as_cells"):
        return list(row.as_cells())  # type: ignore[union-attr]
    return list(row)  # type: ignore[arg-type]


class ExcelLogger:
    """Grava registos de validação em Excel utilizando :mod:`openpyxl`."""

    def __init__(self, config: ExcelLoggerConfig) -> None:
        self.config = config
        self._fills = {
            severity: PatternFill(start_color=colour, end_color=colour, fill_type="solid")
            for severity, colour in SEVERITY_COLOURS.items()
        }

    def write_rows(self, rows: Iterable[RowLike | Iterable[str]]) -> Path:
        """Persistir ``rows`` num ficheiro Excel e devolver o caminho final."""

        destination = Path(self.config.filename)
        destination.parent.mkdir(parents=True, exist_ok=True)

        workbook = Workbook()
        sheet = workbook.active
        sheet.title = self.config.sheet_title

        if self.config.columns:
            sheet.append(list(self.config.columns))
            for cell in sheet[1]:
                cell.font = Font(bold=True)

        for row in rows:
            cells = _cells(row)
            sheet.append(cells)
            self._highlight(sheet, cells)

        for index, width in enumerate(self.config.column_widths, start=1):
            sheet.column_dimensions[get_column_letter(index)].width = width
        if self.config.columns:
            sheet.auto_filter.ref = sheet.dimensions
            sheet.freeze_panes = "A2"

        workbook.save(destination)
        return destination

    def _highlight(self, sheet, cells: list[str]) -> None:
        column = self.config.severity_column
        if column is None or column >= len(cells):
            return
        fill = self._fills.get(str(cells[column]).lower())
        if fill is None:
            return
        for cell in sheet[sheet.max_row]:
            cell.fill = fill


__all__ = ["ExcelLogger", "ExcelLoggerConfig", "RowLike", "SEVERITY_COLOURS"]
