"""Domain records for series, fiscal documents and report reference data."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


class DocumentStatus(str, Enum):
    """Lifecycle of a fiscal document. ``ISSUED`` is terminal."""

    DRAFT = "draft"
    ISSUED = "issued"


class DocumentKind(str, Enum):
    """Document kinds handled by the engine and their SAF-T ``InvoiceType``."""

    INVOICE = "FT"
    INVOICE_RECEIPT = "FR"
    SIMPLIFIED_INVOICE = "FS"
    CREDIT_NOTE = "NC"
    DEBIT_NOTE = "ND"

    @property
    def invoice_type(self) -> str:
        return self.value


@dataclass
class DocumentSeries:
    """A numbering stream for one document kind and fiscal year."""

    series_id: str
    code: str
    prefix: str
    fiscal_year: int
    validation_code: str | None = None
    current_number: int = 0
    locked: bool = False
    active: bool = True


@dataclass(frozen=True)
class FiscalDocument:
    """Sales document as seen by the numbering and chaining core.

    Instances are immutable; every state change produces a new record through
    :func:`dataclasses.replace` so that a failed emission never leaves a
    half-issued copy behind.
    """

    document_id: str
    series_id: str
    number: int
    label: str
    kind: DocumentKind
    customer_id: str
    created_at: datetime
    net_total: Decimal
    tax_total: Decimal
    gross_total: Decimal
    status: DocumentStatus = DocumentStatus.DRAFT
    issued_at: datetime | None = None
    previous_hash: str | None = None
    hash: str | None = None
    unique_code: str | None = None

    @property
    def is_issued(self) -> bool:
        return self.status is DocumentStatus.ISSUED


@dataclass(frozen=True)
class Address:
    street: str
    city: str
    postal_code: str
    country: str = "PT"
    building_number: str = "S/N"
    detail: str | None = None

    @property
    def address_detail(self) -> str:
        return self.detail or f"{self.street} {self.building_number}".strip()


@dataclass(frozen=True)
class SoftwareCertification:
    """Identification of the certified billing software in the report header."""

    product_company_tax_id: str
    certificate_number: str
    product_id: str
    product_version: str


@dataclass(frozen=True)
class CompanyProfile:
    tax_id: str
    name: str
    address: Address
    software: SoftwareCertification
    currency_code: str = "EUR"
    tax_accounting_basis: str = "F"
    tax_entity: str = "Global"


@dataclass(frozen=True)
class Customer:
    customer_id: str
    code: str
    name: str
    tax_id: str
    address: Address | None = None
    self_billing: bool = False


@dataclass(frozen=True)
class Product:
    code: str
    description: str
    product_type: str = "P"
    number_code: str | None = None


@dataclass(frozen=True)
class TaxRate:
    code: str
    description: str
    percentage: Decimal
    tax_type: str = "IVA"
    country_region: str = "PT"


@dataclass(frozen=True)
class ReportingPeriod:
    """Inclusive date range covered by one compliance report."""

    start: date
    end: date

    @classmethod
    def month(cls, year: int, month: int) -> "ReportingPeriod":
        last_day = calendar.monthrange(year, month)[1]
        return cls(date(year, month, 1), date(year, month, last_day))

    def contains(self, moment: datetime | date) -> bool:
        day = moment.date() if isinstance(moment, datetime) else moment
        return self.start <= day <= self.end


__all__ = [
    "Address",
    "CompanyProfile",
    "Customer",
    "DocumentKind",
    "DocumentSeries",
    "DocumentStatus",
    "FiscalDocument",
    "Product",
    "ReportingPeriod",
    "SoftwareCertification",
    "TaxRate",
]
