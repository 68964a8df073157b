from __future__ import annotations

import pytest

from saft_samples import VALID_SAFT, mutate
from saftpt.validator import validate


def test_customer_entry_count_mismatch_is_reported_once() -> None:
    text = mutate(
        "<NumberOfEntries>2</NumberOfEntries>\n      <CustomerEntry>",
        "<NumberOfEntries>5</NumberOfEntries>\n      <CustomerEntry>",
    )

    result = validate(text)

    assert [f.code for f in result.findings] == ["MF002"]
    finding = result.errors[0]
    assert finding.location == "MasterFiles/Customer/NumberOfEntries"
    assert "(5)" in finding.message
    assert "(2)" in finding.message


@pytest.mark.parametrize(
    "old, new, code",
    [
        (
            "<NumberOfEntries>1</NumberOfEntries>\n      <ProductEntry>",
            "<NumberOfEntries>3</NumberOfEntries>\n      <ProductEntry>",
            "MF011",
        ),
        (
            "<NumberOfEntries>1</NumberOfEntries>\n      <TaxTableEntry>",
            "<NumberOfEntries>x</NumberOfEntries>\n      <TaxTableEntry>",
            "MF012",
        ),
        (
            "<GeneralLedgerAccounts>\n      <NumberOfEntries>0",
            "<GeneralLedgerAccounts>\n      <NumberOfEntries>4",
            "MF013",
        ),
    ],
)
def test_other_entry_counts(old: str, new: str, code: str) -> None:
    assert validate(mutate(old, new)).codes() == {code}


def test_missing_master_files_is_a_warning() -> None:
    start = VALID_SAFT.index("<MasterFiles>")
    end = VALID_SAFT.index("</MasterFiles>") + len("</MasterFiles>")

    result = validate(VALID_SAFT[:start] + VALID_SAFT[end:])

    master = [f for f in result.warnings if f.code == "MF001"]
    assert len(master) == 1
    assert result.stats.customers == 0


def test_customer_required_tags() -> None:
    result = validate(mutate("        <CompanyName>Cliente Exemplo</CompanyName>\n", ""))

    assert result.codes() == {"MF003"}
    assert result.errors[0].location == "MasterFiles/Customer/CustomerEntry[1]"


def test_customer_tax_id_checksum_is_a_warning() -> None:
    result = validate(mutate("<CustomerTaxID>500000000", "<CustomerTaxID>500000001"))

    assert result.is_valid
    assert result.codes() == {"MF004"}
    assert result.warnings[0].location == "MasterFiles/Customer/CustomerEntry[1]/CustomerTaxID"


def test_consumer_tax_id_is_accepted() -> None:
    assert "MF004" not in validate(VALID_SAFT).codes()


@pytest.mark.parametrize(
    "old, new, code",
    [
        (
            "<SelfBillingIndicator>0</SelfBillingIndicator>\n      </CustomerEntry>",
            "<SelfBillingIndicator>2</SelfBillingIndicator>\n      </CustomerEntry>",
            "MF005",
        ),
        ("<ProductType>P", "<ProductType>X", "MF007"),
        ("<TaxPercentage>23.00</TaxPercentage>\n      </TaxTableEntry>", "<TaxPercentage>150</TaxPercentage>\n      </TaxTableEntry>", "MF010"),
        ("          <City>Porto</City>\n", "", "MF014"),
    ],
)
def test_master_data_errors(old: str, new: str, code: str) -> None:
    result = validate(mutate(old, new))

    assert not result.is_valid
    assert result.codes() == {code}


@pytest.mark.parametrize(
    "old, new, code",
    [
        ("<TaxCode>NOR</TaxCode>\n        <Description>", "<TaxCode>ZZZ</TaxCode>\n        <Description>", "MF009"),
        ("<TaxType>IVA</TaxType>\n        <TaxCountryRegion>PT</TaxCountryRegion>\n        <TaxCode>NOR</TaxCode>\n        <Description>",
         "<TaxType>XYZ</TaxType>\n        <TaxCountryRegion>PT</TaxCountryRegion>\n        <TaxCode>NOR</TaxCode>\n        <Description>",
         "MF016"),
        ("<Country>PT</Country>\n        </BillingAddress>", "<Country>ZZ</Country>\n        </BillingAddress>", "MF015"),
    ],
)
def test_master_data_warnings(old: str, new: str, code: str) -> None:
    result = validate(mutate(old, new))

    assert result.is_valid
    assert result.codes() == {code}


def test_exemption_tax_code_is_accepted_in_tax_table() -> None:
    text = mutate("<TaxCode>NOR</TaxCode>\n        <Description>", "<TaxCode>M07</TaxCode>\n        <Description>")

    assert validate(text).findings == []


def test_unknown_customer_reference() -> None:
    result = validate(mutate("<CustomerID>CLI002</CustomerID>\n        <Line>", "<CustomerID>CLI999</CustomerID>\n        <Line>"))

    assert result.codes() == {"SD031"}
    assert result.errors[0].location == "SourceDocuments/SalesInvoices/Invoice[2]/CustomerID"
    assert "CLI999" in result.errors[0].message
