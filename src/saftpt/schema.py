"""Parsing helpers for SAF-T (PT) documents."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple

from lxml import etree

from .utils import detect_namespace

_DECLARATION = re.compile(
    r"""^\ufeff?\s*<\?xml\s+version\s*=\s*(["'])([^"']*)\1"""
    r"""(?:\s+encoding\s*=\s*(["'])([^"']*)\3)?"""
)


@dataclass(frozen=True)
class XmlDeclaration:
    version: str
    encoding: str | None


def read_declaration(text: str) -> XmlDeclaration | None:
    """Return the XML declaration at the start of ``text``, if any."""

    match = _DECLARATION.match(text)
    if match is None:
        return None
    return XmlDeclaration(version=match.group(2), encoding=match.group(4))


def _parser(*, from_text: bool) -> etree.XMLParser:
    # no DTD expansion or network access for untrusted input
    return etree.XMLParser(
        recover=True,
        resolve_entities=False,
        no_network=True,
        remove_comments=True,
        remove_pis=True,
        huge_tree=False,
        encoding="utf-8" if from_text else None,
    )


def parse_audit_file(content: str | bytes) -> Tuple[etree._Element | None, str | None]:
    """Parse ``content`` leniently.

    Returns ``(root, None)`` on success or ``(None, message)`` when nothing
    usable could be recovered. Never raises for malformed input.
    """

    from_text = isinstance(content, str)
    try:
        data = content.encode("utf-8") if from_text else bytes(content)
    except UnicodeEncodeError as exc:
        return None, f"Texto com caracteres inválidos: {exc.reason}"
    if not data.strip():
        return None, "Ficheiro vazio"
    try:
        root = etree.fromstring(data, parser=_parser(from_text=from_text))
    except (etree.LxmlError, ValueError) as exc:
        return None, str(exc)
    if root is None:
        return None, "Não foi possível interpretar o XML"
    return root, None


def load_audit_file(path: Path) -> Tuple[etree._ElementTree, etree._Element, str]:
    """Load *path* and return the parsed tree, root element and namespace."""

    root, error = parse_audit_file(Path(path).read_bytes())
    if root is None:
        raise ValueError(f"Ficheiro SAF-T inválido '{path}': {error}")
    tree = root.getroottree()
    return tree, root, detect_namespace(root)


__all__ = ["XmlDeclaration", "load_audit_file", "parse_audit_file", "read_declaration"]
