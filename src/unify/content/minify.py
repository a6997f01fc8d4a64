"""Whitespace minification on the parsed tree."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from unify.html.dom import RAW_TEXT_ELEMENTS, Comment, Element, Text, parse_document, serialize

if TYPE_CHECKING:
    from unify.html.dom import Document, Node

_WHITESPACE = re.compile(r"\s+")

# Containers whose whitespace-only children carry no rendering meaning
_STRUCTURAL = frozenset({"html", "head", "body", "ul", "ol", "table", "thead", "tbody", "tr"})


def minify(document: Document) -> None:
    """Collapse runs of whitespace and drop non-conditional comments in place."""
    _minify_children(document.children, parent_tag=None)


def minify_html(html: str) -> str:
    """Minify markup that has not been parsed yet."""
    document = parse_document(html)
    minify(document)
    return serialize(document)


def _minify_children(children: list[Node], parent_tag: str | None) -> None:
    pending: list[tuple[list[Node], str | None]] = [(children, parent_tag)]
    while pending:
        nodes, tag = pending.pop()
        for node in list(nodes):
            if isinstance(node, Comment):
                if not node.data.lstrip().startswith("[if"):
                    node.detach()
            elif isinstance(node, Text):
                collapsed = _WHITESPACE.sub(" ", node.data)
                if not collapsed.strip() and (tag is None or tag in _STRUCTURAL):
                    node.detach()
                else:
                    node.data = collapsed
            elif isinstance(node, Element) and node.tag not in RAW_TEXT_ELEMENTS:
                pending.append((node.children, node.tag))
