"""Output path mapping and pretty-URL link rewriting."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import urlsplit, urlunsplit

from unify.content.classifier import HTML_EXTENSIONS

if TYPE_CHECKING:
    from unify.html.dom import Document


def output_path_for(
    source: str | Path,
    source_root: str | Path,
    output_root: str | Path,
    *,
    pretty_urls: bool = False,
) -> Path:
    """Map a source file to its mirrored output path.

    With *pretty_urls*, ``about.html`` becomes ``about/index.html``;
    ``index.html`` files are left where they are.

    """
    relative = Path(source).relative_to(source_root)
    if pretty_urls and relative.suffix.lower() in HTML_EXTENSIONS and relative.stem != "index":
        relative = relative.with_suffix("") / "index.html"
    return Path(output_root) / relative


def pretty_href(href: str) -> str:
    """Rewrite one local ``.html`` link to its directory form.

    External URLs, fragments-only links and non-HTML targets pass through.

    """
    parts = urlsplit(href)
    if parts.scheme or parts.netloc or not parts.path:
        return href
    path = parts.path
    suffix = Path(path).suffix.lower()
    if suffix not in HTML_EXTENSIONS:
        return href
    stem_path = path[: -len(suffix)]
    if stem_path.endswith("/index") or stem_path == "index":
        new_path = stem_path[: -len("index")] or "./"
    else:
        new_path = stem_path + "/"
    return urlunsplit(("", "", new_path, parts.query, parts.fragment))


def normalize_links(document: Document, *, pretty_urls: bool) -> int:
    """Rewrite ``<a href>`` targets in place. Returns the number changed."""
    if not pretty_urls:
        return 0
    changed = 0
    for element in document.iter():
        if element.tag != "a":
            continue
        href = element.get("href")
        if not href:
            continue
        rewritten = pretty_href(href)
        if rewritten != href:
            element.set("href", rewritten)
            changed += 1
    return changed
