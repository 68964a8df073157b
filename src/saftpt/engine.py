"""Generic rule engine driven by declarative scope tables.

A :class:`ScopeSpec` names an element, the rules checked on it and the child
scopes below it. :func:`evaluate` walks a ScopeSpec tree and
returns every finding; each rule variant has one checker registered on
:func:`check`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from functools import singledispatch
from typing import Any, Callable, Iterator, Mapping, Union

from .findings import Finding, Severity
from .rules_loader import RulesIndex, RulesLoaderError
from .scope import Scope
from .utils import is_valid_tax_id

Bound = Union[Decimal, Callable[[], Decimal], None]
Context = Mapping[str, frozenset]

_NUMBER = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)$")
_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DATETIME = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d{1,6})?(Z|[+-]\d{2}:\d{2})?$")
_HEX = re.compile(r"^[0-9A-Fa-f]+$")


def parse_number(text: str | None) -> Decimal | None:
    """Strict decimal parse; ``None`` for anything that is not a plain number."""

    if text is None or not _NUMBER.match(text):
        return None
    try:
        return Decimal(text)
    except InvalidOperation:
        return None


def is_calendar_date(text: str) -> bool:
    if not _DATE.match(text):
        return False
    try:
        date.fromisoformat(text)
    except ValueError:
        return False
    return True


def is_datetime(text: str) -> bool:
    if not _DATETIME.match(text):
        return False
    try:
        datetime.strptime(text[:19], "%Y-%m-%dT%H:%M:%S")
    except ValueError:
        return False
    return True


# -- rule variants -----------------------------------------------------------


@dataclass(frozen=True, kw_only=True)
class Rule:
    code: str
    severity: Severity = Severity.ERROR
    message: str | None = None
    rule_id: str | None = None
    enabled: bool = True


@dataclass(frozen=True)
class Required(Rule):
    """Every tag in ``tags`` must be present as a direct child."""

    tags: tuple[str, ...]


@dataclass(frozen=True)
class NonEmpty(Rule):
    tag: str


@dataclass(frozen=True)
class OneOf(Rule):
    """Value must be one of ``allowed`` or start with one of ``prefixes``."""

    tag: str
    allowed: tuple[str, ...]
    prefixes: tuple[str, ...] = ()


@dataclass(frozen=True)
class Pattern(Rule):
    tag: str
    pattern: str


@dataclass(frozen=True)
class CalendarDate(Rule):
    tag: str


@dataclass(frozen=True)
class DateTime(Rule):
    tag: str


@dataclass(frozen=True)
class NumericRange(Rule):
    """Value must be numeric and, when bounds are given, inside them.

    Bounds may be callables evaluated at check time.
    """

    tag: str
    minimum: Bound = None
    maximum: Bound = None
    integral: bool = False


@dataclass(frozen=True)
class ChecksumTaxId(Rule):
    tag: str
    exempt: tuple[str, ...] = ()


@dataclass(frozen=True)
class HexDigest(Rule):
    tag: str
    length: int = 64


@dataclass(frozen=True)
class CompositeCode(Rule):
    """Value must be two non-empty parts joined by exactly one ``separator``."""

    tag: str
    separator: str = "-"


@dataclass(frozen=True)
class CrossFieldFormula(Rule):
    """``compute(*operands)`` must match ``target`` within ``tolerance``."""

    operands: tuple[str, ...]
    target: str
    compute: Callable[..., Decimal]
    tolerance: Decimal = Decimal("0.01")


@dataclass(frozen=True)
class DateOrder(Rule):
    """``end`` must not precede ``start`` when both are valid dates."""

    start: str
    end: str


@dataclass(frozen=True)
class EntryCount(Rule):
    """Declared ``NumberOfEntries`` must equal the number of ``entry_tag`` children."""

    entry_tag: str
    declared_tag: str = "NumberOfEntries"


@dataclass(frozen=True)
class Reference(Rule):
    """Value must appear in the context collection named ``collection``."""

    tag: str
    collection: str


@dataclass(frozen=True)
class ScopeSpec:
    """One element of the tree walked by :func:`evaluate`.

    ``repeated`` scopes match every child with the tag; ``min_occurs`` is the
    minimum count below which ``missing_code`` is reported. A non-repeated
    scope that is absent reports ``missing_code`` when one is set.
    """

    tag: str
    rules: tuple[Rule, ...] = ()
    children: tuple["ScopeSpec", ...] = ()
    repeated: bool = False
    min_occurs: int = 0
    missing_code: str | None = None
    missing_severity: Severity = Severity.ERROR
    missing_message: str | None = None


# -- checkers ----------------------------------------------------------------


def _finding(rule: Rule, default: str, location: str, **fields: Any) -> Finding:
    template = rule.message or default
    return Finding(
        template.format(**fields),
        code=rule.code,
        severity=rule.severity,
        location=location,
        details={key: str(value) for key, value in fields.items()},
    )


def _resolve(bound: Bound) -> Decimal | None:
    if callable(bound):
        return Decimal(bound())
    return bound


@singledispatch
def check(rule: Rule, scope: Scope, context: Context) -> Iterator[Finding]:
    raise TypeError(f"No checker registered for {type(rule).__name__}")


@check.register(Required)
def _check_required(rule: Required, scope: Scope, context: Context) -> Iterator[Finding]:
    section = scope.location.rsplit("/", 1)[-1] or "AuditFile"
    for tag in rule.tags:
        if not scope.has(tag):
            yield _finding(
                rule,
                "Tag obrigatória <{tag}> não encontrada em {section}",
                scope.location,
                tag=tag,
                section=section,
            )


@check.register(NonEmpty)
def _check_non_empty(rule: NonEmpty, scope: Scope, context: Context) -> Iterator[Finding]:
    if not scope.value(rule.tag):
        yield _finding(rule, "{tag} é obrigatório", scope.path(rule.tag), tag=rule.tag)


@check.register(OneOf)
def _check_one_of(rule: OneOf, scope: Scope, context: Context) -> Iterator[Finding]:
    value = scope.value(rule.tag)
    if not value or value in rule.allowed:
        return
    if any(value.startswith(prefix) for prefix in rule.prefixes):
        return
    yield _finding(
        rule,
        "{tag} inválido: {value}. Valores válidos: {allowed}",
        scope.path(rule.tag),
        tag=rule.tag,
        value=value,
        allowed=", ".join(rule.allowed),
    )


@check.register(Pattern)
def _check_pattern(rule: Pattern, scope: Scope, context: Context) -> Iterator[Finding]:
    value = scope.value(rule.tag)
    if value and not re.match(rule.pattern, value):
        yield _finding(
            rule, "{tag} com formato inválido: {value}", scope.path(rule.tag), tag=rule.tag, value=value
        )


@check.register(CalendarDate)
def _check_calendar_date(rule: CalendarDate, scope: Scope, context: Context) -> Iterator[Finding]:
    value = scope.value(rule.tag)
    if value and not is_calendar_date(value):
        yield _finding(
            rule,
            "{tag} com formato ou data inválida: {value}",
            scope.path(rule.tag),
            tag=rule.tag,
            value=value,
        )


@check.register(DateTime)
def _check_datetime(rule: DateTime, scope: Scope, context: Context) -> Iterator[Finding]:
    value = scope.value(rule.tag)
    if value and not is_datetime(value):
        yield _finding(
            rule,
            "{tag} pode não estar no formato ISO 8601: {value}",
            scope.path(rule.tag),
            tag=rule.tag,
            value=value,
        )


@check.register(NumericRange)
def _check_numeric_range(rule: NumericRange, scope: Scope, context: Context) -> Iterator[Finding]:
    value = scope.value(rule.tag)
    if not value:
        return
    number = parse_number(value)
    minimum = _resolve(rule.minimum)
    maximum = _resolve(rule.maximum)
    if (
        number is None
        or (rule.integral and number != number.to_integral_value())
        or (minimum is not None and number < minimum)
        or (maximum is not None and number > maximum)
    ):
        yield _finding(rule, "{tag} com valor inválido: {value}", scope.path(rule.tag), tag=rule.tag, value=value)


@check.register(ChecksumTaxId)
def _check_tax_id(rule: ChecksumTaxId, scope: Scope, context: Context) -> Iterator[Finding]:
    value = scope.value(rule.tag)
    if not value or value in rule.exempt:
        return
    if not is_valid_tax_id(value):
        yield _finding(rule, "{tag} (NIF) inválido: {value}", scope.path(rule.tag), tag=rule.tag, value=value)


@check.register(HexDigest)
def _check_hex_digest(rule: HexDigest, scope: Scope, context: Context) -> Iterator[Finding]:
    value = scope.value(rule.tag)
    location = scope.path(rule.tag)
    if not value:
        yield _finding(rule, "{tag} inválido: {tag} vazio", location, tag=rule.tag)
    elif len(value) != rule.length:
        yield _finding(
            rule,
            "{tag} inválido: {size} caracteres (esperado: {length})",
            location,
            tag=rule.tag,
            size=len(value),
            length=rule.length,
        )
    elif not _HEX.match(value):
        yield _finding(
            rule,
            "{tag} inválido: contém caracteres não hexadecimais",
            location,
            tag=rule.tag,
        )


@check.register(CompositeCode)
def _check_composite(rule: CompositeCode, scope: Scope, context: Context) -> Iterator[Finding]:
    value = scope.value(rule.tag)
    location = scope.path(rule.tag)
    if not value:
        yield _finding(rule, "{tag} é obrigatório", location, tag=rule.tag)
        return
    parts = value.split(rule.separator)
    if len(parts) != 2 or not all(part.strip() for part in parts):
        yield _finding(
            rule,
            "{tag} inválido: {value} (formato esperado: Código{separator}Número)",
            location,
            tag=rule.tag,
            value=value,
            separator=rule.separator,
        )


@check.register(CrossFieldFormula)
def _check_formula(rule: CrossFieldFormula, scope: Scope, context: Context) -> Iterator[Finding]:
    operands = [parse_number(scope.value(tag)) for tag in rule.operands]
    declared = parse_number(scope.value(rule.target))
    if declared is None or any(operand is None for operand in operands):
        return
    computed = rule.compute(*operands)
    if abs(computed - declared) > rule.tolerance:
        yield _finding(
            rule,
            "{target} inconsistente: calculado {computed}, declarado {declared}",
            scope.location,
            target=rule.target,
            computed=computed,
            declared=declared,
        )


@check.register(DateOrder)
def _check_date_order(rule: DateOrder, scope: Scope, context: Context) -> Iterator[Finding]:
    start = scope.value(rule.start) or ""
    end = scope.value(rule.end) or ""
    if not (is_calendar_date(start) and is_calendar_date(end)):
        return
    if date.fromisoformat(end) < date.fromisoformat(start):
        yield _finding(
            rule,
            "{end_tag} ({end}) anterior a {start_tag} ({start})",
            scope.path(rule.end),
            start_tag=rule.start,
            end_tag=rule.end,
            start=start,
            end=end,
        )


@check.register(EntryCount)
def _check_entry_count(rule: EntryCount, scope: Scope, context: Context) -> Iterator[Finding]:
    declared = scope.value(rule.declared_tag)
    if declared is None:
        return
    actual = len(scope.children(rule.entry_tag))
    if declared.isdigit() and int(declared) == actual:
        return
    section = scope.location.rsplit("/", 1)[-1]
    yield _finding(
        rule,
        "{section}/{declared_tag} ({declared}) não corresponde ao número de {entry_tag} ({actual})",
        scope.path(rule.declared_tag),
        section=section,
        declared_tag=rule.declared_tag,
        declared=declared,
        entry_tag=rule.entry_tag,
        actual=actual,
    )


@check.register(Reference)
def _check_reference(rule: Reference, scope: Scope, context: Context) -> Iterator[Finding]:
    value = scope.value(rule.tag)
    if not value or value in context.get(rule.collection, frozenset()):
        return
    yield _finding(
        rule,
        "{tag} '{value}' não existe em {collection}",
        scope.path(rule.tag),
        tag=rule.tag,
        value=value,
        collection=rule.collection,
    )


# -- walking -----------------------------------------------------------------


def evaluate(spec: ScopeSpec, parent: Scope, context: Context | None = None) -> list[Finding]:
    """Locate ``spec`` under ``parent`` and check every matching element."""

    context = context or {}
    findings: list[Finding] = []
    if spec.repeated:
        scopes = parent.children(spec.tag)
        if len(scopes) < spec.min_occurs and spec.missing_code:
            findings.append(_missing(spec, parent))
    else:
        scope = parent.child(spec.tag)
        if scope is None:
            if spec.missing_code:
                findings.append(_missing(spec, parent))
            return findings
        scopes = [scope]
    for scope in scopes:
        findings.extend(evaluate_scope(spec, scope, context))
    return findings


def evaluate_scope(spec: ScopeSpec, scope: Scope, context: Context | None = None) -> list[Finding]:
    """Check ``spec``'s rules on ``scope`` itself, then descend into children."""

    context = context or {}
    findings: list[Finding] = []
    for rule in spec.rules:
        if rule.enabled:
            findings.extend(check(rule, scope, context))
    for child in spec.children:
        findings.extend(evaluate(child, scope, context))
    return findings


def _missing(spec: ScopeSpec, parent: Scope) -> Finding:
    message = spec.missing_message or "Secção <{tag}> não encontrada"
    return Finding(
        message.format(tag=spec.tag),
        code=spec.missing_code or "",
        severity=spec.missing_severity,
        location=parent.location or "Estrutura global",
    )


# -- configuration -----------------------------------------------------------


def _as_decimal(value: Any, rule_id: str) -> Decimal:
    try:
        number = Decimal(str(value))
    except InvalidOperation as exc:
        raise RulesLoaderError(f"Valor numérico inválido na regra {rule_id}: {value!r}") from exc
    if not number.is_finite():
        raise RulesLoaderError(f"Valor numérico inválido na regra {rule_id}: {value!r}")
    return number


def configure_rule(rule: Rule, index: RulesIndex) -> Rule:
    """Apply the constraint overrides of the index entry matching ``rule.rule_id``."""

    if rule.rule_id is None:
        return rule
    entry = index.find_rule(rule.rule_id)
    if entry is None:
        return rule
    constraints = entry.constraints
    changes: dict[str, Any] = {}
    if "enabled" in constraints:
        enabled = constraints["enabled"]
        if not isinstance(enabled, bool):
            raise RulesLoaderError(f"'enabled' deve ser booleano na regra {rule.rule_id}: {enabled!r}")
        changes["enabled"] = enabled
    if "severity" in constraints:
        severity = constraints["severity"]
        if severity not in tuple(item.value for item in Severity):
            raise RulesLoaderError(f"Severidade inválida na regra {rule.rule_id}: {severity!r}")
        changes["severity"] = Severity(severity)
    if "allowed" in constraints and isinstance(rule, OneOf):
        allowed = constraints["allowed"]
        if not isinstance(allowed, list) or not all(isinstance(item, str) for item in allowed):
            raise RulesLoaderError(
                f"'allowed' deve ser uma lista de textos na regra {rule.rule_id}: {allowed!r}"
            )
        changes["allowed"] = tuple(allowed)
    if isinstance(rule, NumericRange):
        for key in ("minimum", "maximum"):
            if key in constraints:
                raw = constraints[key]
                changes[key] = None if raw is None else _as_decimal(raw, rule.rule_id)
    if "tolerance" in constraints and isinstance(rule, CrossFieldFormula):
        changes["tolerance"] = _as_decimal(constraints["tolerance"], rule.rule_id)
    return replace(rule, **changes) if changes else rule


def configure(spec: ScopeSpec, index: RulesIndex) -> ScopeSpec:
    """Return ``spec`` with index overrides applied to every rule in the tree."""

    if not index.rules:
        return spec
    return replace(
        spec,
        rules=tuple(configure_rule(rule, index) for rule in spec.rules),
        children=tuple(configure(child, index) for child in spec.children),
    )


__all__ = [
    "CalendarDate",
    "ChecksumTaxId",
    "CompositeCode",
    "CrossFieldFormula",
    "DateOrder",
    "DateTime",
    "EntryCount",
    "HexDigest",
    "NonEmpty",
    "NumericRange",
    "OneOf",
    "Pattern",
    "Reference",
    "Required",
    "Rule",
    "ScopeSpec",
    "check",
    "configure",
    "configure_rule",
    "evaluate",
    "evaluate_scope",
    "is_calendar_date",
    "is_datetime",
    "parse_number",
]
