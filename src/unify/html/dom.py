"""Parsed HTML tree with a round-trippable serializer.

Builds a lightweight node tree on top of :class:`html.parser.HTMLParser`.
Character references in text are kept verbatim (``convert_charrefs=False``)
so that ``serialize(parse_document(s))`` reproduces well-formed input
byte-for-byte, apart from attribute quoting, which is normalized to double
quotes.

Only the operations the cascade needs are provided: class helpers,
attribute access, depth-first traversal, and child replacement.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

VOID_ELEMENTS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "param", "source", "track", "wbr",
})

# Elements whose text content must never be reformatted
RAW_TEXT_ELEMENTS = frozenset({"script", "style", "pre", "textarea"})


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------


@dataclass(eq=False, slots=True)
class Node:
    """Base tree node. ``parent`` is None for detached nodes."""

    parent: Element | Document | None = field(default=None, repr=False)

    def clone(self) -> Node:
        raise NotImplementedError

    def detach(self) -> None:
        """Remove this node from its parent's children."""
        if self.parent is not None:
            self.parent.children.remove(self)
            self.parent = None


@dataclass(eq=False, slots=True)
class Text(Node):
    """Character data, stored exactly as it appeared in the source."""

    data: str = ""

    def clone(self) -> Text:
        return Text(data=self.data)


@dataclass(eq=False, slots=True)
class Comment(Node):
    data: str = ""

    def clone(self) -> Comment:
        return Comment(data=self.data)


@dataclass(eq=False, slots=True)
class Declaration(Node):
    """Doctype, processing instruction or CDATA section, stored raw."""

    markup: str = ""

    def clone(self) -> Declaration:
        return Declaration(markup=self.markup)


@dataclass(eq=False, slots=True)
class Element(Node):
    """An element with ordered attributes and child nodes.

    Attributes:
        tag: Lowercase tag name.
        attrs: Attribute name -> value (None for boolean attributes).
        children: Child nodes in document order.
        self_closing: Written as ``<tag />`` in the source.
        has_end_tag: False when the source relied on an implied end tag;
            the serializer then omits it as well.

    """

    tag: str = ""
    attrs: dict[str, str | None] = field(default_factory=dict)
    children: list[Node] = field(default_factory=list)
    self_closing: bool = False
    has_end_tag: bool = True

    # ----- Attributes -----

    def get(self, name: str, default: str | None = None) -> str | None:
        value = self.attrs.get(name, default)
        return default if value is None else value

    def has(self, name: str) -> bool:
        return name in self.attrs

    def set(self, name: str, value: str | None) -> None:
        self.attrs[name] = value

    def remove_attr(self, name: str) -> bool:
        """Remove an attribute, returning whether it was present."""
        return self.attrs.pop(name, False) is not False

    @property
    def classes(self) -> list[str]:
        """Class tokens in source order."""
        return (self.attrs.get("class") or "").split()

    def has_class(self, name: str) -> bool:
        return name in self.classes

    # ----- Children -----

    def append(self, node: Node) -> None:
        node.detach()
        node.parent = self
        self.children.append(node)

    def insert(self, index: int, node: Node) -> None:
        node.detach()
        node.parent = self
        self.children.insert(index, node)

    def replace_children(self, nodes: Iterable[Node]) -> None:
        """Replace all children with *nodes* (which are detached first)."""
        for child in self.children:
            child.parent = None
        self.children = []
        for node in nodes:
            self.append(node)

    def replace_with(self, nodes: Iterable[Node]) -> None:
        """Replace this element in its parent with *nodes*."""
        parent = self.parent
        if parent is None:
            return
        new_nodes = list(nodes)
        for node in new_nodes:
            node.detach()
            node.parent = parent
        index = parent.children.index(self)
        parent.children[index:index + 1] = new_nodes
        self.parent = None

    def clone(self) -> Element:
        copy = Element(
            tag=self.tag,
            attrs=dict(self.attrs),
            self_closing=self.self_closing,
            has_end_tag=self.has_end_tag,
        )
        _clone_children(self, copy)
        return copy

    # ----- Traversal -----

    def iter(self) -> Iterator[Element]:
        """Depth-first iteration over this element and all descendants."""
        yield from _iter_elements([self])

    def find(self, tag: str) -> Element | None:
        return next((el for el in self.iter() if el.tag == tag), None)

    def find_all(self, predicate: Callable[[Element], bool]) -> list[Element]:
        return [el for el in self.iter() if predicate(el)]

    @property
    def inner_html(self) -> str:
        return serialize_nodes(self.children)

    @property
    def outer_html(self) -> str:
        return serialize_nodes([self])


@dataclass(eq=False, slots=True)
class Document(Node):
    """Root container for a parsed document or fragment."""

    children: list[Node] = field(default_factory=list)

    def append(self, node: Node) -> None:
        node.detach()
        node.parent = self
        self.children.append(node)

    def insert(self, index: int, node: Node) -> None:
        node.detach()
        node.parent = self
        self.children.insert(index, node)

    def clone(self) -> Document:
        copy = Document()
        _clone_children(self, copy)
        return copy

    def iter(self) -> Iterator[Element]:
        yield from _iter_elements(self.children)

    def find(self, tag: str) -> Element | None:
        return next((el for el in self.iter() if el.tag == tag), None)

    def find_all(self, predicate: Callable[[Element], bool]) -> list[Element]:
        return [el for el in self.iter() if predicate(el)]

    @property
    def html(self) -> Element | None:
        return self.find("html")

    @property
    def head(self) -> Element | None:
        return self.find("head")

    @property
    def body(self) -> Element | None:
        return self.find("body")

    def content_root(self) -> Element | Document:
        """The element whose children hold the visible content."""
        return self.body or self


def _clone_children(source: Element | Document, target: Element | Document) -> None:
    pending: list[tuple[Element | Document, Element | Document]] = [(source, target)]
    while pending:
        original, copy = pending.pop()
        for child in original.children:
            if isinstance(child, Element):
                twin = Element(
                    tag=child.tag,
                    attrs=dict(child.attrs),
                    self_closing=child.self_closing,
                    has_end_tag=child.has_end_tag,
                )
                pending.append((child, twin))
            else:
                twin = child.clone()
            copy.append(twin)


def _iter_elements(nodes: list[Node]) -> Iterator[Element]:
    # Explicit stack; deep trees must not hit the recursion limit.
    # Child lists are snapshotted so callers may mutate the tree while iterating.
    stack = [node for node in reversed(nodes) if isinstance(node, Element)]
    while stack:
        element = stack.pop()
        yield element
        stack.extend(child for child in reversed(list(element.children)) if isinstance(child, Element))


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


# Optional end tags: opening the key closes an open element from the first
# set, searching no further than an element from the second set.
_P_CLOSERS = frozenset({
    "address", "article", "aside", "blockquote", "details", "div", "dl",
    "fieldset", "figcaption", "figure", "footer", "form", "h1", "h2", "h3",
    "h4", "h5", "h6", "header", "hgroup", "hr", "main", "menu", "nav", "ol",
    "p", "pre", "section", "table", "ul",
})
_SCOPE = frozenset({"html", "body", "table", "template", "td", "th"})
_IMPLIED_END: dict[str, tuple[frozenset[str], frozenset[str]]] = {
    "li": (frozenset({"li"}), _SCOPE | {"ul", "ol", "menu"}),
    "dt": (frozenset({"dt", "dd"}), _SCOPE | {"dl"}),
    "dd": (frozenset({"dt", "dd"}), _SCOPE | {"dl"}),
    "option": (frozenset({"option"}), _SCOPE | {"select", "datalist"}),
    "optgroup": (frozenset({"option", "optgroup"}), _SCOPE | {"select"}),
    "tr": (frozenset({"tr", "td", "th"}), frozenset({"html", "table", "thead", "tbody", "tfoot", "template"})),
    "td": (frozenset({"td", "th"}), frozenset({"html", "table", "tr", "template"})),
    "th": (frozenset({"td", "th"}), frozenset({"html", "table", "tr", "template"})),
    "thead": (frozenset({"tbody", "tr", "td", "th"}), frozenset({"html", "table", "template"})),
    "tbody": (frozenset({"thead", "tbody", "tr", "td", "th"}), frozenset({"html", "table", "template"})),
    "tfoot": (frozenset({"thead", "tbody", "tr", "td", "th"}), frozenset({"html", "table", "template"})),
}


class _TreeBuilder(HTMLParser):
    """Feeds HTMLParser callbacks into a :class:`Document`."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=False)
        self.document = Document()
        self._stack: list[Element | Document] = [self.document]

    @property
    def _current(self) -> Element | Document:
        return self._stack[-1]

    def _add(self, node: Node) -> None:
        self._current.append(node)

    def _close_implied(self, tag: str) -> None:
        if tag in _P_CLOSERS:
            closes, scope = frozenset({"p"}), _SCOPE | {"button"}
        elif tag in _IMPLIED_END:
            closes, scope = _IMPLIED_END[tag]
        else:
            return
        # Close up to the outermost match, so a new <tr> also ends an open <td>
        match: int | None = None
        for index in range(len(self._stack) - 1, 0, -1):
            node = self._stack[index]
            if not isinstance(node, Element) or node.tag in scope:
                break
            if node.tag in closes:
                match = index
        if match is not None:
            del self._stack[match:]

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        self._close_implied(tag)
        element = Element(tag=tag, attrs=_attr_dict(attrs))
        self._add(element)
        if tag not in VOID_ELEMENTS:
            element.has_end_tag = False
            self._stack.append(element)

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        self._add(Element(tag=tag, attrs=_attr_dict(attrs), self_closing=True))

    def handle_endtag(self, tag: str) -> None:
        # Close up to the nearest matching open element; stray end tags are dropped.
        for index in range(len(self._stack) - 1, 0, -1):
            node = self._stack[index]
            if isinstance(node, Element) and node.tag == tag:
                node.has_end_tag = True
                del self._stack[index:]
                return

    def handle_data(self, data: str) -> None:
        children = self._current.children
        if children and isinstance(children[-1], Text):
            children[-1].data += data
        else:
            self._add(Text(data=data))

    def handle_entityref(self, name: str) -> None:
        self.handle_data(f"&{name};")

    def handle_charref(self, name: str) -> None:
        self.handle_data(f"&#{name};")

    def handle_comment(self, data: str) -> None:
        self._add(Comment(data=data))

    def handle_decl(self, decl: str) -> None:
        self._add(Declaration(markup=f"<!{decl}>"))

    def handle_pi(self, data: str) -> None:
        self._add(Declaration(markup=f"<?{data}>"))

    def unknown_decl(self, data: str) -> None:
        self._add(Declaration(markup=f"<![{data}]>"))


def _attr_dict(attrs: list[tuple[str, str | None]]) -> dict[str, str | None]:
    result: dict[str, str | None] = {}
    for name, value in attrs:
        # First occurrence wins, as in browsers
        result.setdefault(name, value)
    return result


def parse_document(markup: str) -> Document:
    """Parse *markup* (a full document or a fragment) into a tree."""
    builder = _TreeBuilder()
    builder.feed(markup)
    builder.close()
    return builder.document


def parse_fragment(markup: str) -> list[Node]:
    """Parse *markup* and return its top-level nodes, detached."""
    document = parse_document(markup)
    nodes = list(document.children)
    for node in nodes:
        node.parent = None
    return nodes


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def escape_attr(value: str) -> str:
    return value.replace("&", "&amp;").replace('"', "&quot;")


def _serialize_attrs(attrs: dict[str, str | None]) -> str:
    parts = []
    for name, value in attrs.items():
        if value is None:
            parts.append(f" {name}")
        else:
            parts.append(f' {name}="{escape_attr(value)}"')
    return "".join(parts)


def _write(root: Node, out: list[str]) -> None:
    # Explicit stack of nodes and pending end tags; deep trees must not
    # hit the recursion limit.
    stack: list[Node | str] = [root]
    while stack:
        node = stack.pop()
        if isinstance(node, str):
            out.append(node)
        elif isinstance(node, Text):
            out.append(node.data)
        elif isinstance(node, Comment):
            out.append(f"<!--{node.data}-->")
        elif isinstance(node, Declaration):
            out.append(node.markup)
        elif isinstance(node, Element):
            attrs = _serialize_attrs(node.attrs)
            if node.self_closing and not node.children:
                out.append(f"<{node.tag}{attrs} />")
                continue
            out.append(f"<{node.tag}{attrs}>")
            if node.tag in VOID_ELEMENTS:
                continue
            if node.has_end_tag:
                stack.append(f"</{node.tag}>")
            stack.extend(reversed(node.children))
        elif isinstance(node, Document):
            stack.extend(reversed(node.children))


def serialize_nodes(nodes: Iterable[Node]) -> str:
    out: list[str] = []
    for node in nodes:
        _write(node, out)
    return "".join(out)


def serialize(document: Document | Element) -> str:
    """Serialize a document or element back to markup."""
    return serialize_nodes([document])
