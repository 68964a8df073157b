"""Namespace-agnostic navigation over SAF-T elements.

Lookups match on the local name only, so a file exported with a wrong or
missing namespace is still inspected; the envelope check reports the
namespace itself.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from lxml import etree


def localname(element: etree._Element) -> str | None:
    tag = element.tag
    if not isinstance(tag, str):
        return None
    return etree.QName(tag).localname


def _find_child_by_localname(element: etree._Element, tag: str) -> etree._Element | None:
    for child in element:
        if localname(child) == tag:
            return child
    return None


@dataclass(frozen=True)
class Scope:
    """An element together with its location path for findings."""

    element: etree._Element
    location: str = ""

    def _join(self, segment: str) -> str:
        return f"{self.location}/{segment}" if self.location else segment

    def path(self, tag: str) -> str:
        """Location of the ``tag`` child, whether or not it exists."""

        return self._join(tag)

    def child(self, tag: str) -> "Scope | None":
        node = _find_child_by_localname(self.element, tag)
        if node is None:
            return None
        return Scope(node, self._join(tag))

    def children(self, tag: str) -> list["Scope"]:
        nodes = [node for node in self.element if localname(node) == tag]
        return [
            Scope(node, self._join(f"{tag}[{index}]"))
            for index, node in enumerate(nodes, start=1)
        ]

    def has(self, tag: str) -> bool:
        return _find_child_by_localname(self.element, tag) is not None

    def value(self, tag: str) -> str | None:
        """Stripped text of the first ``tag`` child, ``None`` when absent."""

        node = _find_child_by_localname(self.element, tag)
        if node is None:
            return None
        return (node.text or "").strip()

    def descendant_count(self) -> int:
        return sum(1 for node in self.element.iter() if localname(node) is not None) - 1


def iter_sales_invoices(root: etree._Element) -> Iterator[etree._Element]:
    """Yield every ``Invoice`` node under ``SourceDocuments/SalesInvoices``."""

    source = _find_child_by_localname(root, "SourceDocuments")
    if source is None:
        return iter(())
    sales = _find_child_by_localname(source, "SalesInvoices")
    if sales is None:
        return iter(())
    return (node for node in sales if localname(node) == "Invoice")


__all__ = ["Scope", "iter_sales_invoices", "localname"]
