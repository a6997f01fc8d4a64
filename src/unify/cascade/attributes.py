"""Attribute merging for matched layout/page element pairs.

Rules:
    - ``id``: the layout's value wins, so script and style hooks stay stable
      across rebuilds.
    - ``class``: ordered, de-duplicated union (layout classes first).
    - everything else: the page's value wins when present.

Directive attributes (``data-unify``, ``data-layer``) are never carried over.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from unify.html.dom import Document, Element

DIRECTIVE_ATTRIBUTES = ("data-unify", "data-layer")


def merge_classes(layout_classes: list[str], page_classes: list[str]) -> list[str]:
    """Union of both class lists, layout first, keeping first occurrence."""
    return list(dict.fromkeys([*layout_classes, *page_classes]))


def merge_attributes(
    layout_attrs: dict[str, str | None],
    page_attrs: dict[str, str | None],
) -> dict[str, str | None]:
    """Merge two attribute maps into a new one.

    Args:
        layout_attrs: Attributes of the layout (area or landmark) element.
        page_attrs: Attributes of the page element that fills it.

    Returns:
        Merged attributes. Layout attribute order is preserved and page-only
        attributes are appended in page order.

    """
    merged: dict[str, str | None] = {}

    for name, value in layout_attrs.items():
        if name in DIRECTIVE_ATTRIBUTES:
            continue
        merged[name] = page_attrs[name] if name in page_attrs and name not in ("id", "class") else value

    for name, value in page_attrs.items():
        if name in DIRECTIVE_ATTRIBUTES or name in merged:
            continue
        merged[name] = value

    classes = merge_classes(
        (layout_attrs.get("class") or "").split(),
        (page_attrs.get("class") or "").split(),
    )
    if classes:
        merged["class"] = " ".join(classes)

    return merged


def directive_of(element: Element) -> str | None:
    """The layout or component reference an element carries, if any."""
    for name in DIRECTIVE_ATTRIBUTES:
        value = element.get(name)
        if value and value.strip():
            return value.strip()
    return None


def strip_directives(document: Document | Element) -> int:
    """Remove every directive attribute in place. Returns the number removed."""
    removed = 0
    for element in document.iter():
        for name in DIRECTIVE_ATTRIBUTES:
            if element.remove_attr(name):
                removed += 1
    return removed
