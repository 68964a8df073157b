from __future__ import annotations

import pytest

from saft_samples import HASH_B, VALID_SAFT, mutate
from saftpt.findings import Severity
from saftpt.validator import validate

FIRST_TOTALS = "<GrossTotal>123.00"


def test_totals_inconsistency_is_reported_once() -> None:
    result = validate(mutate(FIRST_TOTALS, "<GrossTotal>123.02"))

    assert [f.code for f in result.findings] == ["SD025"]
    finding = result.warnings[0]
    assert finding.severity is Severity.WARNING
    assert finding.location == "SourceDocuments/SalesInvoices/Invoice[1]/DocumentTotals"
    assert "123.00" in finding.message
    assert "123.02" in finding.message


def test_totals_within_one_cent_are_accepted() -> None:
    assert validate(mutate(FIRST_TOTALS, "<GrossTotal>123.01")).findings == []


def test_short_hash_is_reported() -> None:
    result = validate(mutate(f"<Hash>{HASH_B}", "<Hash>abc123"))

    assert result.codes() == {"SD008", "HSH001"}
    sd008 = next(f for f in result.errors if f.code == "SD008")
    assert "6 caracteres" in sd008.message
    assert sd008.location == "SourceDocuments/SalesInvoices/Invoice[2]/Hash"


def test_non_hexadecimal_hash_is_reported() -> None:
    result = validate(mutate(f"<Hash>{HASH_B}", "<Hash>" + "z" * 64))

    assert result.codes() == {"SD008", "HSH001"}
    sd008 = next(f for f in result.errors if f.code == "SD008")
    assert "hexadecimais" in sd008.message


def test_missing_hash_reports_required_and_hash_codes() -> None:
    result = validate(mutate(f"        <Hash>{HASH_B}</Hash>\n", ""))

    assert result.codes() == {"SD005", "SD008"}


@pytest.mark.parametrize("value", ["DEMO123", "DEMO-123-2", "-2", ""])
def test_malformed_atcud(value: str) -> None:
    result = validate(mutate("<ATCUD>DEMO123-2", f"<ATCUD>{value}"))

    assert result.codes() == {"SD007"}


@pytest.mark.parametrize(
    "old, new, code",
    [
        ("<InvoiceType>FT</InvoiceType>", "<InvoiceType>XX</InvoiceType>", "SD009"),
        ("<InvoiceDate>2024-03-15", "<InvoiceDate>2024-13-15", "SD010"),
        ("          <SourceID>System</SourceID>\n", "", "SD011"),
        ("<InvoiceStatus>N", "<InvoiceStatus>Q", "SD012"),
        ("<SelfBillingIndicator>0</SelfBillingIndicator>\n        <SystemEntryDate>", "<SelfBillingIndicator>S</SelfBillingIndicator>\n        <SystemEntryDate>", "SD014"),
        ("          <Quantity>1</Quantity>\n", "", "SD016"),
        ("<Quantity>1</Quantity>", "<Quantity>um</Quantity>", "SD017"),
        ("<UnitPrice>100.00", "<UnitPrice>1,00", "SD018"),
        ("            <TaxCountryRegion>PT</TaxCountryRegion>\n            <TaxCode>NOR</TaxCode>\n", "            <TaxCode>NOR</TaxCode>\n", "SD019"),
        ("<NetTotal>100.00", "<NetTotal>abc", "SD023"),
        ("<Period>3", "<Period>13", "SD027"),
        ("<TaxPointDate>2024-03-15", "<TaxPointDate>2024-02-30", "SD028"),
        ("<TaxPercentage>23.00</TaxPercentage>\n          </Tax>", "<TaxPercentage>-1</TaxPercentage>\n          </Tax>", "SD029"),
    ],
)
def test_invoice_errors(old: str, new: str, code: str) -> None:
    result = validate(mutate(old, new))

    assert not result.is_valid
    assert result.codes() == {code}


@pytest.mark.parametrize(
    "old, new, code",
    [
        ("<InvoiceNo>F 2024/00001", "<InvoiceNo>F2024-1", "SD006"),
        ("<InvoiceStatusDate>2024-03-15T10:00:00", "<InvoiceStatusDate>15-03-2024", "SD013"),
        ("<TaxCode>NOR</TaxCode>\n            <TaxPercentage>", "<TaxCode>M50</TaxCode>\n            <TaxPercentage>", "SD020"),
        ("<SystemEntryDate>2024-03-15T09:00:00", "<SystemEntryDate>2024-03-15 09:00", "SD026"),
        ("<SourceBilling>P", "<SourceBilling>Z", "SD030"),
    ],
)
def test_invoice_warnings(old: str, new: str, code: str) -> None:
    result = validate(mutate(old, new))

    assert result.is_valid
    assert result.codes() == {code}


def test_exemption_code_on_line_is_accepted() -> None:
    text = mutate("<TaxCode>NOR</TaxCode>\n            <TaxPercentage>", "<TaxCode>M07</TaxCode>\n            <TaxPercentage>")

    assert validate(text).findings == []


def test_invoice_without_lines() -> None:
    start = VALID_SAFT.index("<Line>")
    end = VALID_SAFT.index("</Line>") + len("</Line>")

    result = validate(VALID_SAFT[:start] + VALID_SAFT[end:])

    assert result.codes() == {"SD005", "SD015"}
    sd015 = next(f for f in result.errors if f.code == "SD015")
    assert sd015.location == "SourceDocuments/SalesInvoices/Invoice[1]"


def test_invoice_count_mismatch() -> None:
    text = mutate(
        "<SalesInvoices>\n      <NumberOfEntries>2",
        "<SalesInvoices>\n      <NumberOfEntries>3",
    )

    assert validate(text).codes() == {"SD002"}


@pytest.mark.parametrize(
    "old, new, code",
    [
        ("<TotalDebit>0.00", "<TotalDebit>zero", "SD003"),
        ("<TotalCredit>200.00", "<TotalCredit>2O0.00", "SD004"),
    ],
)
def test_sales_invoice_totals_must_be_numeric(old: str, new: str, code: str) -> None:
    assert validate(mutate(old, new)).codes() == {code}


def test_missing_source_documents_is_a_warning() -> None:
    start = VALID_SAFT.index("<SourceDocuments>")
    end = VALID_SAFT.index("</SourceDocuments>") + len("</SourceDocuments>")

    result = validate(VALID_SAFT[:start] + VALID_SAFT[end:])

    assert result.is_valid
    assert result.codes() == {"SD001"}
    assert result.stats.invoices == 0


def test_findings_cover_every_invoice() -> None:
    text = VALID_SAFT.replace("<InvoiceType>FT</InvoiceType>", "<InvoiceType>XX</InvoiceType>")

    result = validate(text)

    locations = [f.location for f in result.errors if f.code == "SD009"]
    assert locations == [
        "SourceDocuments/SalesInvoices/Invoice[1]/InvoiceType",
        "SourceDocuments/SalesInvoices/Invoice[2]/InvoiceType",
    ]
