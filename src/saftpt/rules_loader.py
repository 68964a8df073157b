"""Optional JSON rules index with per-rule overrides for the validator.

The file is named by ``$SAFTPT_RULES_INDEX_PATH``::

    {
      "generated_at": "2024-04-01T00:00:00Z",
      "schema_version": "1",
      "rules": [
        {"rule_id": "pt.totals.consistency", "scope": "totals",
         "semantics": "tolerância de arredondamento",
         "constraints": {"tolerance": "0.05"}, "precedence": 10}
      ]
    }

Without the variable :data:`EMPTY_INDEX` is returned and the built-in rule
tables apply unchanged. The parsed index is cached until the file's
modification time changes.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Mapping

INDEX_ENV_VAR = "SAFTPT_RULES_INDEX_PATH"

_REQUIRED_KEYS = ("generated_at", "schema_version", "rules")


class RulesLoaderError(RuntimeError):
    """Raised when the rules index cannot be read or holds invalid values."""


@dataclass(frozen=True)
class Rule:
    """One override entry of the rules index."""

    rule_id: str
    scope: str
    semantics: str
    constraints: Mapping[str, Any]
    applies_since: str | None = None
    applies_until: str | None = None
    precedence: int | None = None


@dataclass(frozen=True)
class RulesIndex:
    generated_at: str
    schema_version: str
    rules: tuple[Rule, ...]

    def find_rule(self, rule_id: str) -> Rule | None:
        """Return the entry for ``rule_id``; the highest ``precedence`` wins."""

        best: Rule | None = None
        for rule in self.rules:
            if rule.rule_id != rule_id:
                continue
            if best is None or (rule.precedence or 0) > (best.precedence or 0):
                best = rule
        return best

    def iter_scope(self, scope: str) -> Iterator[Rule]:
        return (rule for rule in self.rules if rule.scope == scope)


EMPTY_INDEX = RulesIndex(generated_at="", schema_version="", rules=())


@dataclass(frozen=True)
class _Cached:
    path: Path
    mtime: float
    index: RulesIndex


_cache: _Cached | None = None


def index_path() -> Path | None:
    """Path named by :data:`INDEX_ENV_VAR`, ``None`` when unset or blank."""

    value = os.getenv(INDEX_ENV_VAR, "").strip()
    return Path(value) if value else None


def _parse_rule(item: Any) -> Rule:
    if not isinstance(item, dict):
        raise RulesLoaderError(f"Entrada do índice de regras inválida: {item!r}")
    try:
        constraints = item.get("constraints") or {}
        if not isinstance(constraints, dict):
            raise TypeError("constraints must be an object")
        precedence = item.get("precedence")
        return Rule(
            rule_id=str(item["rule_id"]),
            scope=str(item["scope"]),
            semantics=str(item["semantics"]),
            constraints=dict(constraints),
            applies_since=item.get("applies_since"),
            applies_until=item.get("applies_until"),
            precedence=int(precedence) if precedence is not None else None,
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise RulesLoaderError(f"Entrada do índice de regras inválida: {item!r}") from exc


def parse_index(payload: Any) -> RulesIndex:
    """Build a :class:`RulesIndex` from decoded JSON."""

    if not isinstance(payload, dict) or any(key not in payload for key in _REQUIRED_KEYS):
        raise RulesLoaderError(
            "Índice de regras sem as chaves obrigatórias: " + ", ".join(_REQUIRED_KEYS)
        )
    raw_rules = payload["rules"]
    if not isinstance(raw_rules, list):
        raise RulesLoaderError("'rules' deve ser uma lista")
    return RulesIndex(
        generated_at=str(payload["generated_at"]),
        schema_version=str(payload["schema_version"]),
        rules=tuple(_parse_rule(item) for item in raw_rules),
    )


def _read(path: Path) -> RulesIndex:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise RulesLoaderError(f"Índice de regras '{path}' não encontrado") from exc
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise RulesLoaderError(f"Índice de regras '{path}' não é JSON válido") from exc
    return parse_index(payload)


def load_rules_index(force_reload: bool = False) -> RulesIndex:
    """Return the configured index, re-reading it only when the file changed."""

    global _cache

    path = index_path()
    if path is None:
        return EMPTY_INDEX
    try:
        mtime = path.stat().st_mtime
    except FileNotFoundError as exc:
        raise RulesLoaderError(f"Índice de regras '{path}' não encontrado") from exc

    cached = _cache
    if not force_reload and cached is not None and cached.path == path and cached.mtime == mtime:
        return cached.index

    index = _read(path)
    _cache = _Cached(path, mtime, index)
    return index


def get_rule(rule_id: str) -> Rule | None:
    """Shortcut for ``load_rules_index().find_rule(rule_id)``."""

    return load_rules_index().find_rule(rule_id)


__all__ = [
    "EMPTY_INDEX",
    "INDEX_ENV_VAR",
    "Rule",
    "RulesIndex",
    "RulesLoaderError",
    "get_rule",
    "index_path",
    "load_rules_index",
    "parse_index",
]
