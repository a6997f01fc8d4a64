"""Area and landmark matching between a layout and the page filling it.

An *area* is a layout element carrying a class under the area prefix
(``unify-`` by default).  A page element with the identical class supplies
its content.  When no area matches at all, sectioning *landmarks*
(``header``, ``nav``, ``main``, ``aside``, ``footer``) are paired by tag.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from unify.html.dom import Element, Text

if TYPE_CHECKING:
    from unify.html.dom import Document, Node

LANDMARKS = ("header", "nav", "main", "aside", "footer")


@dataclass(frozen=True, slots=True)
class AreaMatch:
    """A layout area paired with the page elements sharing its class.

    Attributes:
        layout_element: The area element in the layout.
        page_elements: Every page element with ``target_class``, in order.
        target_class: The shared area class.
        combined_content: Inner markup of the first page element, the merge
            source.

    """

    layout_element: Element
    page_elements: tuple[Element, ...]
    target_class: str
    combined_content: str

    @property
    def source(self) -> Element:
        return self.page_elements[0]


@dataclass(frozen=True, slots=True)
class LandmarkMatch:
    """A layout landmark paired with the page's landmark of the same tag."""

    layout_element: Element
    page_element: Element
    tag: str


def area_class(element: Element, prefix: str) -> str | None:
    """Return the first class of *element* under *prefix*, if any."""
    return next((c for c in element.classes if c.startswith(prefix)), None)


def match_areas(layout_doc: Document, page_doc: Document, prefix: str = "unify-") -> list[AreaMatch]:
    """Pair every layout area with page elements sharing its area class.

    Layout areas without any page counterpart are left out, so they keep
    their default content.

    """
    page_by_class: dict[str, list[Element]] = {}
    for element in page_doc.iter():
        for cls in element.classes:
            if cls.startswith(prefix):
                page_by_class.setdefault(cls, []).append(element)

    matches: list[AreaMatch] = []
    for element in layout_doc.iter():
        target = area_class(element, prefix)
        if target is None:
            continue
        candidates = page_by_class.get(target)
        if not candidates:
            continue
        matches.append(AreaMatch(
            layout_element=element,
            page_elements=tuple(candidates),
            target_class=target,
            combined_content=candidates[0].inner_html,
        ))
    return matches


def match_landmarks(
    layout_doc: Document,
    page_doc: Document,
    *,
    prefix: str = "unify-",
    include_main: bool = True,
) -> list[LandmarkMatch]:
    """Pair the first landmark of each tag in the layout and the page.

    Layout landmarks that are also areas are skipped; they belong to area
    matching.

    """
    tags = LANDMARKS if include_main else tuple(t for t in LANDMARKS if t != "main")
    matches: list[LandmarkMatch] = []
    for tag in tags:
        page_element = page_doc.find(tag)
        if page_element is None:
            continue
        layout_element = next(
            (el for el in layout_doc.iter() if el.tag == tag and area_class(el, prefix) is None),
            None,
        )
        if layout_element is None:
            continue
        matches.append(LandmarkMatch(layout_element=layout_element, page_element=page_element, tag=tag))
    return matches


def has_landmarks(page_doc: Document) -> bool:
    return any(el.tag in LANDMARKS for el in page_doc.iter())


def wrap_loose_content(page_doc: Document, prefix: str = "unify-") -> Element | None:
    """Collect top-level page content outside any area into a content area.

    Lets plain pages (no area classes, no landmarks) fill the layout's
    ``<prefix>content`` area.  Returns the synthetic element appended to the
    page body, or None when the page already has a content area, uses
    landmarks, or has nothing loose to wrap.

    """
    content_class = f"{prefix}content"
    container = page_doc.content_root()
    if any(el.has_class(content_class) for el in page_doc.iter()) or has_landmarks(page_doc):
        return None

    loose: list[Node] = []
    for child in container.children:
        if isinstance(child, Element):
            if child.tag in ("head", "html") or any(area_class(el, prefix) for el in child.iter()):
                continue
        elif not isinstance(child, Text):
            continue
        loose.append(child)

    if not any(not isinstance(n, Text) or n.data.strip() for n in loose):
        return None

    synthetic = Element(tag="div", attrs={"class": content_class})
    for node in loose:
        synthetic.append(node)
    container.append(synthetic)
    return synthetic
