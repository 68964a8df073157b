"""Declarative SAF-T (PT) 1.04_01 rule tables.

Rules carrying a ``rule_id`` can be tuned from the rules index (see
:mod:`saftpt.rules_loader`).
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from .engine import (
    CalendarDate,
    ChecksumTaxId,
    CompositeCode,
    CrossFieldFormula,
    DateOrder,
    DateTime,
    EntryCount,
    HexDigest,
    NonEmpty,
    NumericRange,
    OneOf,
    Pattern,
    Reference,
    Required,
    ScopeSpec,
)
from .findings import Severity

CRITICAL = Severity.CRITICAL
WARNING = Severity.WARNING

REQUIRED_NAMESPACE = "urn:OECD:StandardAuditFile-Tax:PT_1.04_01"
NAMESPACE_RULE_ID = "pt.envelope.namespace"
AUDIT_FILE_VERSION = "1.04_01"
CONSUMER_TAX_ID = "999999990"

HEADER_TAGS = (
    "AuditFileVersion",
    "CompanyID",
    "TaxRegistrationNumber",
    "TaxEntity",
    "CompanyName",
    "CompanyAddress",
    "FiscalYear",
    "StartDate",
    "EndDate",
    "CurrencyCode",
    "DateCreated",
    "TaxAccountingBasis",
    "ProductCompanyTaxID",
    "SoftwareCertificateNumber",
    "ProductID",
    "ProductVersion",
)
ADDRESS_TAGS = ("BuildingNumber", "StreetName", "AddressDetail", "City", "PostalCode", "Country")
BILLING_ADDRESS_TAGS = ("AddressDetail", "City", "PostalCode", "Country")
CUSTOMER_TAGS = (
    "CustomerID",
    "CustomerTaxID",
    "CompanyName",
    "BillingAddress",
    "SelfBillingIndicator",
)
PRODUCT_TAGS = ("ProductCode", "ProductDescription", "ProductNumberCode", "ProductType")
TAX_TABLE_TAGS = ("TaxType", "TaxCountryRegion", "TaxCode", "Description")
INVOICE_TAGS = (
    "InvoiceNo",
    "ATCUD",
    "DocumentStatus",
    "Hash",
    "HashControl",
    "Period",
    "InvoiceDate",
    "InvoiceType",
    "SelfBillingIndicator",
    "SystemEntryDate",
    "CustomerID",
    "Line",
    "DocumentTotals",
)
STATUS_TAGS = ("InvoiceStatus", "InvoiceStatusDate", "SourceID", "SourceBilling")
LINE_TAGS = (
    "LineNumber",
    "ProductCode",
    "ProductDescription",
    "Quantity",
    "UnitOfMeasure",
    "UnitPrice",
    "TaxPointDate",
    "Description",
    "Tax",
)
LINE_TAX_TAGS = ("TaxType", "TaxCountryRegion", "TaxCode")
TOTALS_TAGS = ("TaxPayable", "NetTotal", "GrossTotal")

TAX_ACCOUNTING_BASES = ("C", "E", "F", "I", "P", "R", "S", "T")
INVOICE_TYPES = (
    "FT",
    "FR",
    "NC",
    "ND",
    "FS",
    "RG",
    "NE",
    "OU",
    "GD",
    "GT",
    "GA",
    "GC",
    "GR",
    "NS",
)
INVOICE_STATUSES = ("N", "A", "S", "F", "R", "D", "C", "M", "X")
SOURCE_BILLING = ("P", "I", "M")
PRODUCT_TYPES = ("P", "S", "O")
TAX_TYPES = ("IVA", "IS", "NS")
TAX_CODES = ("NOR", "INT", "RED", "ISE", "MIN", "OUT")
EXEMPTION_CODES = tuple(f"M{number:02d}" for number in range(1, 21)) + ("M99",)
BOOLEAN_FLAGS = ("0", "1")
COUNTRY_CODES = (
    "PT", "ES", "FR", "DE", "IT", "NL", "BE", "AT", "BG", "CY", "CZ", "DK",
    "EE", "FI", "GR", "HR", "HU", "IE", "LV", "LT", "LU", "MT", "PL", "RO",
    "SK", "SI", "SE", "GB", "US", "BR", "AO", "MZ", "CV", "GW", "TL", "MO",
    "ST", "CH", "NO", "IS", "LI", "MC", "AD", "SM", "VA",
)  # fmt: skip

INVOICE_NUMBER_PATTERN = r"^[^ ]+ [^/ ]+/[0-9]+$"


def _next_year() -> Decimal:
    return Decimal(date.today().year + 1)


def _add(*values: Decimal) -> Decimal:
    return sum(values, Decimal("0"))


HEADER = ScopeSpec(
    "Header",
    missing_code="HDR001",
    missing_severity=CRITICAL,
    rules=(
        Required(HEADER_TAGS, code="HDR002", message="Tag obrigatória <{tag}> não encontrada no Header"),
        OneOf(
            "AuditFileVersion",
            (AUDIT_FILE_VERSION,),
            code="HDR003",
            severity=WARNING,
            message="Versão do SAF-T: {value}. Recomendado: " + AUDIT_FILE_VERSION,
            rule_id="pt.header.audit_file_version",
        ),
        ChecksumTaxId("TaxRegistrationNumber", code="HDR004", message="NIF inválido: {value}"),
        ChecksumTaxId("CompanyID", code="HDR005"),
        CalendarDate("StartDate", code="HDR006"),
        CalendarDate("EndDate", code="HDR007"),
        NumericRange(
            "FiscalYear",
            minimum=Decimal("2000"),
            maximum=_next_year,
            integral=True,
            code="HDR008",
            severity=WARNING,
            message="FiscalYear suspeito: {value}",
            rule_id="pt.header.fiscal_year",
        ),
        DateTime("DateCreated", code="HDR009", severity=WARNING),
        OneOf(
            "TaxAccountingBasis",
            TAX_ACCOUNTING_BASES,
            code="HDR010",
            severity=WARNING,
            rule_id="pt.header.tax_accounting_basis",
        ),
        NonEmpty(
            "SoftwareCertificateNumber",
            code="HDR013",
            message="SoftwareCertificateNumber é obrigatório para software certificado",
        ),
        ChecksumTaxId(
            "ProductCompanyTaxID",
            code="HDR014",
            severity=WARNING,
            rule_id="pt.header.product_company_tax_id",
        ),
        DateOrder(start="StartDate", end="EndDate", code="HDR015", severity=WARNING),
        Pattern(
            "CurrencyCode",
            r"^[A-Z]{3}$",
            code="HDR016",
            severity=WARNING,
            message="CurrencyCode deve ter três letras maiúsculas (ISO 4217): {value}",
        ),
    ),
    children=(
        ScopeSpec(
            "CompanyAddress",
            rules=(
                Required(ADDRESS_TAGS, code="HDR011"),
                OneOf(
                    "Country",
                    COUNTRY_CODES,
                    code="HDR012",
                    severity=WARNING,
                    message="Código de país inválido: {value}. Deve ser ISO 3166-1 alpha-2",
                    rule_id="pt.header.country",
                ),
            ),
        ),
    ),
)

CUSTOMER_ENTRY = ScopeSpec(
    "CustomerEntry",
    repeated=True,
    rules=(
        Required(CUSTOMER_TAGS, code="MF003"),
        ChecksumTaxId(
            "CustomerTaxID",
            exempt=(CONSUMER_TAX_ID,),
            code="MF004",
            severity=WARNING,
            message="NIF de cliente pode ser inválido: {value}",
            rule_id="pt.master.customer_tax_id",
        ),
        OneOf("SelfBillingIndicator", BOOLEAN_FLAGS, code="MF005"),
    ),
    children=(
        ScopeSpec(
            "BillingAddress",
            rules=(
                Required(BILLING_ADDRESS_TAGS, code="MF014"),
                OneOf("Country", COUNTRY_CODES, code="MF015", severity=WARNING),
            ),
        ),
    ),
)

PRODUCT_ENTRY = ScopeSpec(
    "ProductEntry",
    repeated=True,
    rules=(
        Required(PRODUCT_TAGS, code="MF006"),
        OneOf("ProductType", PRODUCT_TYPES, code="MF007"),
    ),
)

TAX_TABLE_ENTRY = ScopeSpec(
    "TaxTableEntry",
    repeated=True,
    rules=(
        Required(TAX_TABLE_TAGS, code="MF008"),
        OneOf(
            "TaxCode",
            TAX_CODES,
            prefixes=("M",),
            code="MF009",
            severity=WARNING,
            message="TaxCode não reconhecido: {value}. Códigos válidos: {allowed}",
            rule_id="pt.master.tax_code",
        ),
        NumericRange(
            "TaxPercentage",
            minimum=Decimal("0"),
            maximum=Decimal("100"),
            code="MF010",
            message="TaxPercentage inválido: {value}",
            rule_id="pt.master.tax_percentage",
        ),
        OneOf("TaxType", TAX_TYPES, code="MF016", severity=WARNING),
    ),
)

MASTER_FILES = ScopeSpec(
    "MasterFiles",
    missing_code="MF001",
    missing_severity=WARNING,
    children=(
        ScopeSpec("GeneralLedgerAccounts", rules=(EntryCount("Account", code="MF013"),)),
        ScopeSpec(
            "Customer",
            rules=(EntryCount("CustomerEntry", code="MF002"),),
            children=(CUSTOMER_ENTRY,),
        ),
        ScopeSpec(
            "Product",
            rules=(EntryCount("ProductEntry", code="MF011"),),
            children=(PRODUCT_ENTRY,),
        ),
        ScopeSpec(
            "TaxTable",
            rules=(EntryCount("TaxTableEntry", code="MF012"),),
            children=(TAX_TABLE_ENTRY,),
        ),
    ),
)

LINE = ScopeSpec(
    "Line",
    repeated=True,
    min_occurs=1,
    missing_code="SD015",
    missing_message="Invoice deve ter pelo menos uma Line",
    rules=(
        Required(LINE_TAGS, code="SD016"),
        NumericRange("Quantity", code="SD017"),
        NumericRange("UnitPrice", code="SD018"),
        CalendarDate("TaxPointDate", code="SD028"),
    ),
    children=(
        ScopeSpec(
            "Tax",
            rules=(
                Required(LINE_TAX_TAGS, code="SD019"),
                OneOf(
                    "TaxCode",
                    TAX_CODES,
                    prefixes=EXEMPTION_CODES,
                    code="SD020",
                    severity=WARNING,
                    message="TaxCode não reconhecido: {value}",
                    rule_id="pt.line.tax_code",
                ),
                NumericRange(
                    "TaxPercentage",
                    minimum=Decimal("0"),
                    maximum=Decimal("100"),
                    code="SD029",
                    rule_id="pt.line.tax_percentage",
                ),
            ),
        ),
    ),
)

INVOICE = ScopeSpec(
    "Invoice",
    repeated=True,
    rules=(
        Required(INVOICE_TAGS, code="SD005"),
        Pattern(
            "InvoiceNo",
            INVOICE_NUMBER_PATTERN,
            code="SD006",
            severity=WARNING,
            message="InvoiceNo pode não seguir o formato TIPO SÉRIE/NÚMERO: {value}",
            rule_id="pt.invoice.number_format",
        ),
        CompositeCode("ATCUD", code="SD007"),
        HexDigest("Hash", code="SD008"),
        OneOf("InvoiceType", INVOICE_TYPES, code="SD009", rule_id="pt.invoice.type"),
        CalendarDate("InvoiceDate", code="SD010"),
        OneOf("SelfBillingIndicator", BOOLEAN_FLAGS, code="SD014"),
        DateTime("SystemEntryDate", code="SD026", severity=WARNING),
        NumericRange(
            "Period",
            minimum=Decimal("1"),
            maximum=Decimal("12"),
            integral=True,
            code="SD027",
        ),
        Reference(
            "CustomerID",
            "customers",
            code="SD031",
            message="Fatura referencia CustomerID '{value}' que não existe no MasterFiles",
        ),
    ),
    children=(
        ScopeSpec(
            "DocumentStatus",
            rules=(
                Required(STATUS_TAGS, code="SD011"),
                OneOf("InvoiceStatus", INVOICE_STATUSES, code="SD012"),
                DateTime("InvoiceStatusDate", code="SD013", severity=WARNING),
                OneOf("SourceBilling", SOURCE_BILLING, code="SD030", severity=WARNING),
            ),
        ),
        LINE,
        ScopeSpec(
            "DocumentTotals",
            rules=(
                Required(TOTALS_TAGS, code="SD021"),
                NumericRange("TaxPayable", code="SD022"),
                NumericRange("NetTotal", code="SD023"),
                NumericRange("GrossTotal", code="SD024"),
                CrossFieldFormula(
                    ("NetTotal", "TaxPayable"),
                    "GrossTotal",
                    _add,
                    code="SD025",
                    severity=WARNING,
                    message=(
                        "DocumentTotals inconsistente: NetTotal + TaxPayable = {computed}, "
                        "mas GrossTotal = {declared}"
                    ),
                    rule_id="pt.totals.consistency",
                ),
            ),
        ),
    ),
)

SOURCE_DOCUMENTS = ScopeSpec(
    "SourceDocuments",
    missing_code="SD001",
    missing_severity=WARNING,
    children=(
        ScopeSpec(
            "SalesInvoices",
            rules=(
                EntryCount("Invoice", code="SD002"),
                NumericRange("TotalDebit", code="SD003"),
                NumericRange("TotalCredit", code="SD004"),
            ),
            children=(INVOICE,),
        ),
    ),
)

AUDIT_FILE = ScopeSpec("AuditFile", children=(HEADER, MASTER_FILES, SOURCE_DOCUMENTS))


__all__ = [
    "AUDIT_FILE",
    "AUDIT_FILE_VERSION",
    "CONSUMER_TAX_ID",
    "HEADER",
    "INVOICE",
    "MASTER_FILES",
    "NAMESPACE_RULE_ID",
    "REQUIRED_NAMESPACE",
    "SOURCE_DOCUMENTS",
]
