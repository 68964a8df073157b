"""Totals by ``InvoiceType`` for a SAF-T (PT) file, written to Excel.

The workbook has two sheets: ``Resumo`` (one row per invoice type plus the
overall totals, where credit notes count negatively) and ``Documentos``
(one row per invoice).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path

from lxml import etree
from openpyxl import Workbook
from openpyxl.styles import Font

from ..scope import Scope, iter_sales_invoices
from . import parse_decimal

CREDIT_TYPES = frozenset({"NC"})
UNKNOWN_TYPE = "DESCONHECIDO"
MONEY_FORMAT = "#,##0.00"

SUMMARY_HEADER = ("Tipo", "Documentos", "Total sem IVA", "IVA", "Total com IVA")
DETAIL_HEADER = (
    "Número",
    "Tipo",
    "Data",
    "Cliente",
    "ATCUD",
    "Total sem IVA",
    "IVA",
    "Total com IVA",
)


@dataclass
class Totals:
    """Running net, tax and gross sums over a number of documents."""

    net_total: Decimal = field(default_factory=lambda: Decimal("0"))
    tax_total: Decimal = field(default_factory=lambda: Decimal("0"))
    gross_total: Decimal = field(default_factory=lambda: Decimal("0"))
    documents: int = 0

    def add(self, net: Decimal, tax: Decimal, gross: Decimal) -> None:
        self.net_total += net
        self.tax_total += tax
        self.gross_total += gross
        self.documents += 1

    def merge(self, other: "Totals", *, sign: int = 1) -> None:
        """Add ``other`` as a single document, negated when ``sign`` is -1."""

        self.add(sign * other.net_total, sign * other.tax_total, sign * other.gross_total)

    def amounts(self) -> list[Decimal]:
        return [self.net_total, self.tax_total, self.gross_total]


@dataclass
class InvoiceRow:
    invoice_no: str
    invoice_type: str
    invoice_date: str
    customer_id: str
    atcud: str
    totals: Totals


@dataclass
class ReportData:
    totals_by_type: dict[str, Totals]
    overall_totals: Totals
    invoices: list[InvoiceRow]


def _document_totals(invoice: Scope) -> Totals:
    node = invoice.child("DocumentTotals")
    if node is None:
        return Totals()
    totals = Totals()
    totals.add(
        parse_decimal(node.value("NetTotal")),
        parse_decimal(node.value("TaxPayable")),
        parse_decimal(node.value("GrossTotal")),
    )
    return totals


def aggregate_documents(root: etree._Element) -> ReportData:
    """Aggregate the sales invoices of *root* by ``InvoiceType``."""

    by_type: dict[str, Totals] = {}
    overall = Totals()
    rows: list[InvoiceRow] = []

    for element in iter_sales_invoices(root):
        invoice = Scope(element, "Invoice")
        invoice_type = invoice.value("InvoiceType") or UNKNOWN_TYPE
        totals = _document_totals(invoice)

        by_type.setdefault(invoice_type, Totals()).merge(totals)
        overall.merge(totals, sign=-1 if invoice_type in CREDIT_TYPES else 1)
        rows.append(
            InvoiceRow(
                invoice_no=invoice.value("InvoiceNo") or "",
                invoice_type=invoice_type,
                invoice_date=invoice.value("InvoiceDate") or "",
                customer_id=invoice.value("CustomerID") or "",
                atcud=invoice.value("ATCUD") or "",
                totals=totals,
            )
        )

    return ReportData(totals_by_type=by_type, overall_totals=overall, invoices=rows)


def _append(sheet, values: list, *, money_from: int) -> None:
    sheet.append(values)
    for cell in sheet[sheet.max_row][money_from:]:
        cell.number_format = MONEY_FORMAT


def _header(sheet, values: tuple[str, ...]) -> None:
    sheet.append(list(values))
    for cell in sheet[1]:
        cell.font = Font(bold=True)
    sheet.freeze_panes = "A2"


def write_excel_report(data: ReportData, destination: Path) -> None:
    """Write the ``Resumo`` and ``Documentos`` sheets to *destination*."""

    destination.parent.mkdir(parents=True, exist_ok=True)

    workbook = Workbook()
    summary = workbook.active
    summary.title = "Resumo"
    _header(summary, SUMMARY_HEADER)
    for invoice_type in sorted(data.totals_by_type):
        totals = data.totals_by_type[invoice_type]
        _append(summary, [invoice_type, totals.documents, *totals.amounts()], money_from=2)
    summary.append([])
    overall = data.overall_totals
    _append(summary, ["Totais Gerais", overall.documents, *overall.amounts()], money_from=2)
    for cell in summary[summary.max_row]:
        cell.font = Font(bold=True)

    detail = workbook.create_sheet(title="Documentos")
    _header(detail, DETAIL_HEADER)
    for row in data.invoices:
        _append(
            detail,
            [
                row.invoice_no,
                row.invoice_type,
                row.invoice_date,
                row.customer_id,
                row.atcud,
                *row.totals.amounts(),
            ],
            money_from=5,
        )

    workbook.save(destination)


__all__ = ["InvoiceRow", "ReportData", "Totals", "aggregate_documents", "write_excel_report"]
