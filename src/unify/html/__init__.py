"""HTML layer: parsed tree and serializer used by the cascade."""

from unify.html.dom import (
    Comment,
    Declaration,
    Document,
    Element,
    Node,
    Text,
    parse_document,
    parse_fragment,
    serialize,
    serialize_nodes,
)

__all__ = [
    "Comment",
    "Declaration",
    "Document",
    "Element",
    "Node",
    "Text",
    "parse_document",
    "parse_fragment",
    "serialize",
    "serialize_nodes",
]
