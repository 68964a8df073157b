"""Validator entry point for SAF-T (PT) files."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from lxml import etree

from .engine import ScopeSpec, configure, evaluate_scope
from .findings import Finding, Severity
from .rules import AUDIT_FILE, NAMESPACE_RULE_ID, REQUIRED_NAMESPACE
from .rules_loader import RulesLoaderError, load_rules_index
from .schema import parse_audit_file, read_declaration
from .scope import Scope, localname
from .utils import detect_namespace

LOGGER = logging.getLogger("saftpt.validator")

XSI_SCHEMA_LOCATION = "{http://www.w3.org/2001/XMLSchema-instance}schemaLocation"

_HEX = re.compile(r"^[0-9A-Fa-f]+$")


@dataclass
class ValidationStats:
    header_tags: int = 0
    master_data_tags: int = 0
    source_doc_tags: int = 0
    invoices: int = 0
    customers: int = 0
    products: int = 0
    tax_entries: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "headerTags": self.header_tags,
            "masterDataTags": self.master_data_tags,
            "sourceDocTags": self.source_doc_tags,
            "invoices": self.invoices,
            "customers": self.customers,
            "products": self.products,
            "taxEntries": self.tax_entries,
        }


@dataclass
class ValidationResult:
    """Outcome of :func:`validate`.

    ``errors`` holds critical and error findings, ``warnings`` the rest;
    ``is_valid`` is true exactly when ``errors`` is empty.
    """

    errors: list[Finding] = field(default_factory=list)
    warnings: list[Finding] = field(default_factory=list)
    stats: ValidationStats = field(default_factory=ValidationStats)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def findings(self) -> list[Finding]:
        return [*self.errors, *self.warnings]

    def codes(self) -> set[str]:
        return {finding.code for finding in self.findings}

    def add(self, findings: Iterable[Finding]) -> None:
        for finding in findings:
            if finding.severity.blocking:
                self.errors.append(finding)
            else:
                self.warnings.append(finding)

    def to_dict(self) -> dict[str, object]:
        return {
            "isValid": self.is_valid,
            "errors": [finding.to_dict() for finding in self.errors],
            "warnings": [finding.to_dict() for finding in self.warnings],
            "stats": self.stats.to_dict(),
        }


def _load_tables() -> tuple[ScopeSpec, str]:
    try:
        index = load_rules_index()
        tables = configure(AUDIT_FILE, index)
        entry = index.find_rule(NAMESPACE_RULE_ID)
    except (RulesLoaderError, OSError) as exc:
        LOGGER.warning("Índice de regras ignorado, a usar regras internas: %s", exc)
        return AUDIT_FILE, REQUIRED_NAMESPACE
    namespace = REQUIRED_NAMESPACE
    if entry is not None:
        namespace = str(entry.constraints.get("namespace", REQUIRED_NAMESPACE))
    return tables, namespace


def _check_envelope(
    text: str, root: etree._Element | None, parse_error: str | None, namespace: str
) -> tuple[list[Finding], bool]:
    """Return the envelope findings and whether validation can go on."""

    findings: list[Finding] = []
    declaration = read_declaration(text)
    if declaration is None:
        findings.append(
            Finding(
                "Falta declaração XML no início do ficheiro",
                code="XML001",
                severity=Severity.CRITICAL,
                location="Início do ficheiro",
            )
        )
    if declaration is None or not declaration.encoding:
        findings.append(
            Finding(
                "Encoding UTF-8 não especificado na declaração XML",
                code="XML002",
                severity=Severity.WARNING,
                location="Declaração XML",
            )
        )
    elif declaration.encoding.upper().replace("_", "-") not in {"UTF-8", "UTF8"}:
        findings.append(
            Finding(
                f"Encoding declarado não é UTF-8: {declaration.encoding}",
                code="XML006",
                severity=Severity.WARNING,
                location="Declaração XML",
            )
        )

    if root is None or localname(root) != "AuditFile":
        message = "Elemento raiz <AuditFile> não encontrado"
        if parse_error:
            message = f"{message} ({parse_error})"
        findings.append(
            Finding(
                message,
                code="XML003",
                severity=Severity.CRITICAL,
                location="Estrutura global",
            )
        )
        return findings, False

    found = detect_namespace(root)
    if found != namespace:
        findings.append(
            Finding(
                f"Namespace SAF-T PT 1.04_01 não encontrado ou incorreto. Deve ser: {namespace}",
                code="XML004",
                severity=Severity.CRITICAL,
                location="Elemento AuditFile",
                details={"current_value": found},
            )
        )
    if root.get(XSI_SCHEMA_LOCATION) is None:
        findings.append(
            Finding(
                "Referência ao XSD não encontrada (xsi:schemaLocation)",
                code="XML005",
                severity=Severity.WARNING,
                location="Elemento AuditFile",
            )
        )
    return findings, True


def _collect_stats(document: Scope) -> ValidationStats:
    stats = ValidationStats()
    header = document.child("Header")
    if header is not None:
        stats.header_tags = header.descendant_count()
    master = document.child("MasterFiles")
    if master is not None:
        stats.master_data_tags = master.descendant_count()
        for block, entry in (
            ("Customer", "CustomerEntry"),
            ("Product", "ProductEntry"),
            ("TaxTable", "TaxTableEntry"),
        ):
            scope = master.child(block)
            count = len(scope.children(entry)) if scope is not None else 0
            if block == "Customer":
                stats.customers = count
            elif block == "Product":
                stats.products = count
            else:
                stats.tax_entries = count
    source = document.child("SourceDocuments")
    if source is not None:
        stats.source_doc_tags = source.descendant_count()
        sales = source.child("SalesInvoices")
        stats.invoices = len(sales.children("Invoice")) if sales is not None else 0
    return stats


def _invoices(document: Scope) -> list[Scope]:
    source = document.child("SourceDocuments")
    sales = source.child("SalesInvoices") if source is not None else None
    return sales.children("Invoice") if sales is not None else []


def _customer_ids(document: Scope) -> frozenset[str]:
    master = document.child("MasterFiles")
    customers = master.child("Customer") if master is not None else None
    if customers is None:
        return frozenset()
    return frozenset(
        value
        for entry in customers.children("CustomerEntry")
        if (value := entry.value("CustomerID"))
    )


def _check_hash_consistency(invoices: list[Scope]) -> list[Finding]:
    """Every invoice hash must share the length and alphabet of the first one."""

    hashes = [
        (invoice, invoice.value("Hash"))
        for invoice in invoices
        if invoice.value("Hash") is not None
    ]
    if len(hashes) < 2:
        return []
    _, first = hashes[0]
    first_shape = (len(first), bool(_HEX.match(first)))
    findings = []
    for invoice, value in hashes[1:]:
        if (len(value), bool(_HEX.match(value))) != first_shape:
            findings.append(
                Finding(
                    "Hash com comprimento ou formato diferente dos demais",
                    code="HSH001",
                    severity=Severity.ERROR,
                    location=invoice.path("Hash"),
                )
            )
    return findings


def validate(content: str | bytes) -> ValidationResult:
    """Validate a SAF-T (PT) document given as text or raw bytes.

    Malformed input never raises; it is reported as findings.
    """

    text = content if isinstance(content, str) else bytes(content).decode("utf-8", "replace")
    tables, namespace = _load_tables()
    result = ValidationResult()

    root, parse_error = parse_audit_file(content)
    envelope, proceed = _check_envelope(text, root, parse_error, namespace)
    result.add(envelope)
    if not proceed or root is None:
        LOGGER.debug("Validação interrompida: raiz AuditFile ausente")
        return result

    document = Scope(root)
    result.stats = _collect_stats(document)
    context = {"customers": _customer_ids(document)}
    result.add(evaluate_scope(tables, document, context))
    result.add(_check_hash_consistency(_invoices(document)))

    LOGGER.debug(
        "Validação concluída: %d erro(s), %d aviso(s)",
        len(result.errors),
        len(result.warnings),
    )
    return result


def validate_file(path: Path) -> ValidationResult:
    """Validate the provided file and return the result."""

    return validate(Path(path).read_bytes())


@dataclass
class ValidationSummary:
    status: str
    summary: str
    details: ValidationResult
    recommendations: list[str]

    def to_dict(self) -> dict[str, object]:
        return {
            "status": self.status,
            "summary": self.summary,
            "details": self.details.to_dict(),
            "recommendations": list(self.recommendations),
        }


_RECOMMENDATIONS: tuple[tuple[frozenset[str], str], ...] = (
    (frozenset({"XML005"}), "Adicionar referência ao XSD oficial para validação completa"),
    (frozenset({"SD008", "HSH001"}), "Verificar implementação do hash encadeado"),
    (frozenset({"SD007"}), "Confirmar o código de validação das séries (ATCUD) comunicado à AT"),
    (
        frozenset({"MF002", "MF011", "MF012", "MF013", "SD002"}),
        "Recalcular os campos NumberOfEntries",
    ),
    (frozenset({"SD025"}), "Rever os totais dos documentos (NetTotal + TaxPayable = GrossTotal)"),
)


def summarize(result: ValidationResult) -> ValidationSummary:
    """Classify ``result`` and derive recommendations from its codes."""

    if not result.errors and not result.warnings:
        return ValidationSummary(
            status="valid",
            summary="SAF-T válido. Todos os requisitos estruturais foram verificados com sucesso.",
            details=result,
            recommendations=["O ficheiro pode ser submetido à AT para validação oficial"],
        )

    codes = result.codes()
    recommendations: list[str] = []
    if any(finding.severity is Severity.CRITICAL for finding in result.errors):
        recommendations.append("Corrigir erros críticos antes de submeter à AT")
    for trigger, text in _RECOMMENDATIONS:
        if codes & trigger:
            recommendations.append(text)

    if result.errors:
        critical = sum(1 for finding in result.errors if finding.severity is Severity.CRITICAL)
        suffix = f" ({critical} crítico(s))" if critical else ""
        return ValidationSummary(
            status="invalid",
            summary=f"SAF-T inválido. {len(result.errors)} erro(s) encontrado(s){suffix}.",
            details=result,
            recommendations=recommendations,
        )

    return ValidationSummary(
        status="warnings",
        summary=f"SAF-T válido com avisos. {len(result.warnings)} aviso(s) encontrado(s).",
        details=result,
        recommendations=recommendations,
    )


def export_report(findings: Iterable[Finding], *, destination: Path) -> Path:
    """Export validation findings to an Excel report."""

    from .logging import ExcelLogger, ExcelLoggerConfig

    logger = ExcelLogger(
        ExcelLoggerConfig(
            columns=("code", "severity", "location", "message"),
            filename=str(destination),
            column_widths=(10, 10, 60, 90),
            severity_column=1,
        )
    )
    return logger.write_rows(findings)


__all__ = [
    "Finding",
    "Severity",
    "ValidationResult",
    "ValidationStats",
    "ValidationSummary",
    "export_report",
    "summarize",
    "validate",
    "validate_file",
]
