from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from saftpt.models import (
    Address,
    CompanyProfile,
    Customer,
    DocumentSeries,
    Product,
    SoftwareCertification,
    TaxRate,
)
from saftpt.storage import MemoryDocumentStore, SqliteDocumentStore


class StepClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime = datetime(2024, 3, 15, 10, 0, 0)) -> None:
        self.current = start

    def __call__(self) -> datetime:
        moment = self.current
        self.current += timedelta(seconds=1)
        return moment


def make_series(
    series_id: str = "FT-2024",
    *,
    prefix: str = "F",
    fiscal_year: int = 2024,
    validation_code: str | None = "DEMO123",
    active: bool = True,
) -> DocumentSeries:
    return DocumentSeries(
        series_id=series_id,
        code=series_id,
        prefix=prefix,
        fiscal_year=fiscal_year,
        validation_code=validation_code,
        active=active,
    )


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemoryDocumentStore(lock_timeout=2.0)
    return SqliteDocumentStore(tmp_path / "documentos.db", timeout=5.0)


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def profile() -> CompanyProfile:
    return CompanyProfile(
        tax_id="509123457",
        name="Papelaria Central & Filhos, Lda",
        address=Address(street="Rua Direita", city="Lisboa", postal_code="1100-001"),
        software=SoftwareCertification(
            product_company_tax_id="123456789",
            certificate_number="1234",
            product_id="Faturação/Exemplo",
            product_version="1.0",
        ),
    )


@pytest.fixture
def customers() -> list[Customer]:
    return [
        Customer(
            customer_id="c-1",
            code="CLI001",
            name="Cliente <Especial>",
            tax_id="500000000",
            address=Address(street="Avenida da Liberdade", city="Porto", postal_code="4000-001"),
        ),
        Customer(customer_id="c-2", code="CLI002", name="Consumidor final", tax_id="999999990"),
    ]


@pytest.fixture
def products() -> list[Product]:
    return [Product(code="LIV01", description="Livro")]


@pytest.fixture
def tax_rates() -> list[TaxRate]:
    return [
        TaxRate(code="NOR", description="Taxa normal", percentage=Decimal("23")),
        TaxRate(code="RED", description="Taxa reduzida", percentage=Decimal("6")),
    ]
