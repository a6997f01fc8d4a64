"""Head merging across cascade layers.

Layers are merged in cascade order (outermost layout first, page last):

- ``<meta>``, ``<link>``, ``<style>``, ``<script>`` and any other head
  element accumulate, de-duplicated by exact serialized markup.  Reordered
  attributes therefore count as distinct elements.
- ``<title>`` comes from the most page-specific layer that has one.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from unify.html.dom import Comment, Element, Text

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from unify.html.dom import Node


class HeadMerger:
    """Merges ``<head>`` children from layout, component and page layers."""

    __slots__ = ("_indent",)

    def __init__(self, indent: str = "\n  ") -> None:
        self._indent = indent

    def merge(self, layout_head: Sequence[Node], page_head: Sequence[Node]) -> list[Node]:
        """Merge a layout head with a page head. Returns new, detached nodes."""
        return self.merge_many([layout_head, page_head])

    def merge_many(self, layers: Iterable[Sequence[Node]]) -> list[Node]:
        """Merge any number of head layers, outermost first."""
        title: Element | None = None
        title_slot: int | None = None
        merged: list[Node] = []
        seen: set[str] = set()

        for layer in layers:
            for node in layer:
                if isinstance(node, Element):
                    if node.tag == "title":
                        title = node
                        if title_slot is None:
                            title_slot = len(merged)
                        continue
                    key = node.outer_html
                    if key in seen:
                        continue
                    seen.add(key)
                    merged.append(node.clone())
                elif isinstance(node, Comment):
                    merged.append(node.clone())

        if title is not None:
            merged.insert(title_slot or 0, title.clone())

        return self._with_whitespace(merged)

    def apply(self, head: Element, layers: Iterable[Sequence[Node]]) -> None:
        """Replace the children of *head* with the merged layers."""
        head.replace_children(self.merge_many(layers))

    def _with_whitespace(self, nodes: list[Node]) -> list[Node]:
        if not nodes:
            return []
        spaced: list[Node] = []
        for node in nodes:
            spaced.append(Text(data=self._indent))
            spaced.append(node)
        spaced.append(Text(data="\n"))
        return spaced


def head_children(head: Element | None) -> list[Node]:
    """Children of a head element, or an empty list when there is none."""
    return list(head.children) if head is not None else []
