"""Serialize issued documents of a period as a SAF-T (PT) 1.04_01 AuditFile."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Sequence

from lxml import etree

from .errors import ExportError, MissingCompanyProfile
from .models import (
    Address,
    CompanyProfile,
    Customer,
    DocumentKind,
    FiscalDocument,
    Product,
    ReportingPeriod,
    TaxRate,
)
from .storage import DocumentStore
from .utils import NS_DEFAULT, fmt2, q2

LOGGER = logging.getLogger("saftpt.exporter")

AUDIT_FILE_VERSION = "1.04_01"
XSI_NAMESPACE = "http://www.w3.org/2001/XMLSchema-instance"

GENERIC_PRODUCT = Product(code="GERAL", description="Produtos/Serviços", product_type="P")
EXEMPT_TAX_CODE = "OUT"

_UNKNOWN_ADDRESS = Address(
    street="Desconhecido",
    city="Desconhecido",
    postal_code="0000-000",
    country="PT",
    detail="Desconhecido",
)


def _ns_tag(name: str) -> str:
    return f"{{{NS_DEFAULT}}}{name}"


def _add(parent: etree._Element, name: str, text: object | None = None) -> etree._Element:
    element = etree.SubElement(parent, _ns_tag(name))
    if text is not None:
        element.text = str(text)
    return element


def _timestamp(moment: datetime) -> str:
    return moment.isoformat(timespec="seconds")


def effective_rate(document: FiscalDocument) -> Decimal:
    """Tax rate implied by the document totals, in percent."""

    if not document.net_total:
        return Decimal("0.00")
    return q2(document.tax_total / document.net_total * 100)


def _resolve_tax(rate: Decimal, tax_rates: Sequence[TaxRate]) -> TaxRate | None:
    for tax_rate in tax_rates:
        if q2(tax_rate.percentage) == rate:
            return tax_rate
    return None


def _append_address(parent: etree._Element, tag: str, address: Address, *, company: bool) -> None:
    node = _add(parent, tag)
    if company:
        _add(node, "BuildingNumber", address.building_number)
        _add(node, "StreetName", address.street)
    _add(node, "AddressDetail", address.address_detail)
    _add(node, "City", address.city)
    _add(node, "PostalCode", address.postal_code)
    _add(node, "Country", address.country)


def _append_header(
    root: etree._Element, profile: CompanyProfile, period: ReportingPeriod, created: datetime
) -> None:
    header = _add(root, "Header")
    _add(header, "AuditFileVersion", AUDIT_FILE_VERSION)
    _add(header, "CompanyID", profile.tax_id)
    _add(header, "TaxRegistrationNumber", profile.tax_id)
    _add(header, "TaxAccountingBasis", profile.tax_accounting_basis)
    _add(header, "CompanyName", profile.name)
    _append_address(header, "CompanyAddress", profile.address, company=True)
    _add(header, "FiscalYear", period.start.year)
    _add(header, "StartDate", period.start.isoformat())
    _add(header, "EndDate", period.end.isoformat())
    _add(header, "CurrencyCode", profile.currency_code)
    _add(header, "DateCreated", _timestamp(created))
    _add(header, "TaxEntity", profile.tax_entity)
    _add(header, "ProductCompanyTaxID", profile.software.product_company_tax_id)
    _add(header, "SoftwareCertificateNumber", profile.software.certificate_number)
    _add(header, "ProductID", profile.software.product_id)
    _add(header, "ProductVersion", profile.software.product_version)


def _append_master_files(
    root: etree._Element,
    customers: Sequence[Customer],
    products: Sequence[Product],
    tax_rates: Sequence[TaxRate],
) -> None:
    master = _add(root, "MasterFiles")

    ledger = _add(master, "GeneralLedgerAccounts")
    _add(ledger, "NumberOfEntries", 0)

    customer_block = _add(master, "Customer")
    _add(customer_block, "NumberOfEntries", len(customers))
    for customer in customers:
        entry = _add(customer_block, "CustomerEntry")
        _add(entry, "CustomerID", customer.code)
        _add(entry, "AccountID", "Desconhecido")
        _add(entry, "CustomerTaxID", customer.tax_id)
        _add(entry, "CompanyName", customer.name)
        _append_address(entry, "BillingAddress", customer.address or _UNKNOWN_ADDRESS, company=False)
        _add(entry, "SelfBillingIndicator", 1 if customer.self_billing else 0)

    product_block = _add(master, "Product")
    _add(product_block, "NumberOfEntries", len(products))
    for product in products:
        entry = _add(product_block, "ProductEntry")
        _add(entry, "ProductType", product.product_type)
        _add(entry, "ProductCode", product.code)
        _add(entry, "ProductDescription", product.description)
        _add(entry, "ProductNumberCode", product.number_code or product.code)

    tax_block = _add(master, "TaxTable")
    _add(tax_block, "NumberOfEntries", len(tax_rates))
    for tax_rate in tax_rates:
        entry = _add(tax_block, "TaxTableEntry")
        _add(entry, "TaxType", tax_rate.tax_type)
        _add(entry, "TaxCountryRegion", tax_rate.country_region)
        _add(entry, "TaxCode", tax_rate.code)
        _add(entry, "Description", tax_rate.description)
        _add(entry, "TaxPercentage", fmt2(tax_rate.percentage))


def _append_invoice(
    parent: etree._Element,
    document: FiscalDocument,
    customer: Customer,
    tax_rates: Sequence[TaxRate],
) -> None:
    issued = document.issued_at
    invoice = _add(parent, "Invoice")
    _add(invoice, "InvoiceNo", document.label)
    _add(invoice, "ATCUD", document.unique_code)

    status = _add(invoice, "DocumentStatus")
    _add(status, "InvoiceStatus", "N")
    _add(status, "InvoiceStatusDate", _timestamp(issued))
    _add(status, "SourceID", "System")
    _add(status, "SourceBilling", "P")

    _add(invoice, "Hash", document.hash)
    _add(invoice, "HashControl", 1)
    _add(invoice, "Period", issued.month)
    _add(invoice, "InvoiceDate", issued.date().isoformat())
    _add(invoice, "InvoiceType", document.kind.invoice_type)
    _add(invoice, "SelfBillingIndicator", 1 if customer.self_billing else 0)
    _add(invoice, "SystemEntryDate", _timestamp(document.created_at))
    _add(invoice, "CustomerID", customer.code)

    rate = effective_rate(document)
    tax_rate = _resolve_tax(rate, tax_rates)

    line = _add(invoice, "Line")
    _add(line, "LineNumber", 1)
    _add(line, "ProductCode", GENERIC_PRODUCT.code)
    _add(line, "ProductDescription", GENERIC_PRODUCT.description)
    _add(line, "Quantity", 1)
    _add(line, "UnitOfMeasure", "UNI")
    _add(line, "UnitPrice", fmt2(document.net_total))
    _add(line, "TaxPointDate", issued.date().isoformat())
    _add(line, "Description", GENERIC_PRODUCT.description)
    amount_tag = "DebitAmount" if document.kind is DocumentKind.CREDIT_NOTE else "CreditAmount"
    _add(line, amount_tag, fmt2(document.net_total))
    tax = _add(line, "Tax")
    _add(tax, "TaxType", tax_rate.tax_type if tax_rate else "IVA")
    _add(tax, "TaxCountryRegion", tax_rate.country_region if tax_rate else "PT")
    _add(tax, "TaxCode", tax_rate.code if tax_rate else EXEMPT_TAX_CODE)
    _add(tax, "TaxPercentage", fmt2(rate))

    totals = _add(invoice, "DocumentTotals")
    _add(totals, "TaxPayable", fmt2(document.tax_total))
    _add(totals, "NetTotal", fmt2(document.net_total))
    _add(totals, "GrossTotal", fmt2(document.gross_total))


def export_audit_file(
    profile: CompanyProfile | None,
    period: ReportingPeriod,
    documents: Sequence[FiscalDocument],
    customers: Sequence[Customer],
    products: Sequence[Product],
    tax_rates: Sequence[TaxRate],
    *,
    created_at: datetime | None = None,
) -> str:
    """Return the AuditFile text for ``documents``.

    Every document must be issued and dated inside ``period`` and reference a
    customer from ``customers``. The generic product used by the aggregate
    line is added to the product table when absent.
    """

    if profile is None:
        raise MissingCompanyProfile()

    by_id = {customer.customer_id: customer for customer in customers}
    for document in documents:
        if not document.is_issued or document.issued_at is None:
            raise ExportError(f"Documento não emitido: {document.label}")
        if not period.contains(document.issued_at):
            raise ExportError(
                f"Documento {document.label} fora do período "
                f"{period.start.isoformat()} a {period.end.isoformat()}"
            )
        if document.customer_id not in by_id:
            raise ExportError(
                f"Cliente {document.customer_id} do documento {document.label} não encontrado"
            )

    product_list = list(products)
    if all(product.code != GENERIC_PRODUCT.code for product in product_list):
        product_list.append(GENERIC_PRODUCT)

    root = etree.Element(_ns_tag("AuditFile"), nsmap={None: NS_DEFAULT, "xsi": XSI_NAMESPACE})
    _append_header(root, profile, period, created_at or datetime.now(timezone.utc))
    _append_master_files(root, list(customers), product_list, list(tax_rates))

    source = _add(root, "SourceDocuments")
    sales = _add(source, "SalesInvoices")
    total_debit = sum(
        (d.net_total for d in documents if d.kind is DocumentKind.CREDIT_NOTE), Decimal("0")
    )
    total_credit = sum(
        (d.net_total for d in documents if d.kind is not DocumentKind.CREDIT_NOTE), Decimal("0")
    )
    _add(sales, "NumberOfEntries", len(documents))
    _add(sales, "TotalDebit", fmt2(total_debit))
    _add(sales, "TotalCredit", fmt2(total_credit))
    for document in documents:
        _append_invoice(sales, document, by_id[document.customer_id], tax_rates)

    LOGGER.info(
        "SAF-T gerado para %s a %s: %d documentos",
        period.start.isoformat(),
        period.end.isoformat(),
        len(documents),
    )
    return etree.tostring(
        root, xml_declaration=True, encoding="UTF-8", pretty_print=True
    ).decode("utf-8")


def export_period(
    store: DocumentStore,
    profile: CompanyProfile | None,
    period: ReportingPeriod,
    customers: Iterable[Customer],
    products: Iterable[Product],
    tax_rates: Iterable[TaxRate],
    *,
    created_at: datetime | None = None,
) -> str:
    """Export the issued documents of ``period`` read from one store snapshot.

    Only the customers and tax rates referenced by those documents are
    written to the master data.
    """

    if profile is None:
        raise MissingCompanyProfile()
    documents = store.issued_documents(period.start, period.end)
    used_customers = {document.customer_id for document in documents}
    rates = {effective_rate(document) for document in documents}
    return export_audit_file(
        profile,
        period,
        documents,
        [customer for customer in customers if customer.customer_id in used_customers],
        list(products),
        [tax_rate for tax_rate in tax_rates if q2(tax_rate.percentage) in rates],
        created_at=created_at,
    )


@dataclass(frozen=True)
class PeriodSummary:
    """Issued documents of one calendar month."""

    year: int
    month: int
    documents: int
    gross_total: Decimal

    @property
    def period(self) -> ReportingPeriod:
        return ReportingPeriod.month(self.year, self.month)


def list_report_periods(documents: Iterable[FiscalDocument]) -> list[PeriodSummary]:
    """Group issued documents by month, newest month first."""

    groups: dict[tuple[int, int], list[FiscalDocument]] = {}
    for document in documents:
        if not document.is_issued or document.issued_at is None:
            continue
        key = (document.issued_at.year, document.issued_at.month)
        groups.setdefault(key, []).append(document)
    return [
        PeriodSummary(
            year=year,
            month=month,
            documents=len(items),
            gross_total=sum((item.gross_total for item in items), Decimal("0")),
        )
        for (year, month), items in sorted(groups.items(), reverse=True)
    ]


__all__ = [
    "AUDIT_FILE_VERSION",
    "GENERIC_PRODUCT",
    "PeriodSummary",
    "effective_rate",
    "export_audit_file",
    "export_period",
    "list_report_periods",
]
