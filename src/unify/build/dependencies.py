"""Dependency tracker: which pages must be rebuilt when a file changes.

Every tracked file (page, layout or fragment) owns a set of outgoing
edges to the files it references: layouts and components named by
directives, server-side includes, ``<include src>`` elements and local
assets.  Stylesheets own edges too, to the files their ``url()`` and
``@import`` references name.  The tracker keeps the reverse mapping so
that a change to any file can be answered with the pages that depend on
it, directly or through a chain of layouts, fragments and stylesheets.

Re-tracking a file replaces its edges; nothing accumulates across builds.
"""

from __future__ import annotations

import os
import re
from collections import deque
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import unquote, urlsplit

from unify._errors import PathTraversalError
from unify.cascade.attributes import directive_of
from unify.cascade.resolver import resolve_reference
from unify.content.includes import find_include_targets
from unify.content.security import validate_path
from unify.html.dom import Text, parse_document

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from unify.html.dom import Document

# Elements whose src/href point at files the page needs at runtime
_ASSET_ATTRS = {
    "link": "href",
    "script": "src",
    "img": "src",
    "source": "src",
    "video": "src",
    "audio": "src",
    "track": "src",
    "iframe": "src",
    "embed": "src",
    "object": "data",
}

# Stylesheet references: url(...) anywhere, and bare-string @import
_CSS_URL = re.compile(r"""url\(\s*(["']?)([^"')]+?)\1\s*\)""", re.IGNORECASE)
_CSS_IMPORT = re.compile(r"""@import\s+(["'])([^"']+)\1""", re.IGNORECASE)

STYLESHEET_SUFFIXES = frozenset({".css"})


def _local_target(reference: str, from_file: str, source_root: str) -> str | None:
    """Absolute path for a local URL reference, or None for external ones."""
    parts = urlsplit(reference.strip())
    if parts.scheme or parts.netloc or not parts.path:
        return None
    path = unquote(parts.path)
    if path.startswith("/"):
        candidate = os.path.join(source_root, path.lstrip("/"))
    else:
        candidate = os.path.join(os.path.dirname(from_file), path)
    try:
        return validate_path(candidate, source_root)
    except PathTraversalError:
        return None


def scan_stylesheet(path: str, content: str, source_root: str) -> list[str]:
    """List local files a stylesheet pulls in through ``url()`` and ``@import``."""
    found: list[str] = []
    for pattern in (_CSS_IMPORT, _CSS_URL):
        for match in pattern.finditer(content):
            reference = match.group(2).strip()
            if reference.startswith(("data:", "#")):
                continue
            target = _local_target(reference, path, source_root)
            if target is not None and target != path and target not in found:
                found.append(target)
    return found


def _srcset_urls(value: str) -> list[str]:
    return [candidate.split()[0] for candidate in value.split(",") if candidate.strip()]


def scan_references(
    path: str,
    content: str,
    source_root: str,
    *,
    exists: Callable[[str], bool] = os.path.isfile,
    includes_dir: str = "_includes",
) -> list[str]:
    """List every file *content* references, in document order.

    Directive references are recorded even when the target does not exist
    yet, so that creating it later rebuilds the referencing pages.

    """
    found: list[str] = []

    def add(target: str | None) -> None:
        if target is not None and target != path and target not in found:
            found.append(target)

    document: Document = parse_document(content)
    for element in document.iter():
        reference = directive_of(element)
        if reference is not None:
            try:
                add(resolve_reference(reference, path, source_root, exists, includes_dir=includes_dir))
            except PathTraversalError:
                pass

        if element.tag == "include":
            add(_local_target(element.get("src") or "", path, source_root))
            continue

        attr = _ASSET_ATTRS.get(element.tag)
        if attr is not None:
            add(_local_target(element.get(attr) or "", path, source_root))
        if element.tag == "video":
            add(_local_target(element.get("poster") or "", path, source_root))
        for url in _srcset_urls(element.get("srcset") or ""):
            add(_local_target(url, path, source_root))

        if element.tag == "style":
            css = "".join(child.data for child in element.children if isinstance(child, Text))
            for target in scan_stylesheet(path, css, source_root):
                add(target)
        style = element.get("style")
        if style and "url(" in style:
            for target in scan_stylesheet(path, style, source_root):
                add(target)

    for target in find_include_targets(content, path, source_root):
        add(target)
    return found


class DependencyTracker:
    """Reverse dependency graph over source files.

    Keys are absolute path strings.  Pages and the layouts/fragments they
    use are tracked alike; only pages are ever returned as rebuild targets.

    Args:
        includes_dir: Directory searched last for short layout names.

    """

    __slots__ = ("_dependencies", "_dependents", "_includes_dir", "_pages")

    def __init__(self, *, includes_dir: str = "_includes") -> None:
        self._includes_dir = includes_dir
        self._dependencies: dict[str, set[str]] = {}
        self._dependents: dict[str, set[str]] = {}
        self._pages: set[str] = set()

    # ----- Recording -----

    def track_page_dependencies(
        self,
        path: str | Path,
        content: str,
        source_root: str | Path,
        *,
        is_page: bool = True,
        exists: Callable[[str], bool] = os.path.isfile,
    ) -> list[str]:
        """Scan *content* and replace the edges owned by *path*.

        Args:
            path: Absolute path of the scanned file.
            content: Its markup.
            source_root: Root that references may not escape.
            is_page: False for layouts and fragments, which are tracked so
                that chains resolve but are never rebuilt themselves.
            exists: Existence check used to pick between directive
                candidates.

        Returns:
            The recorded dependencies.

        """
        key = str(path)
        dependencies = scan_references(
            key,
            content,
            str(source_root),
            exists=exists,
            includes_dir=self._includes_dir,
        )
        self.record_dependencies(key, dependencies, is_page=is_page)
        return dependencies

    def track_stylesheet(self, path: str | Path, content: str, source_root: str | Path) -> list[str]:
        """Replace the edges of a stylesheet with its ``url()`` and ``@import`` targets."""
        key = str(path)
        dependencies = scan_stylesheet(key, content, str(source_root))
        self.record_dependencies(key, dependencies, is_page=False)
        return dependencies

    def record_dependencies(self, page: str | Path, dependencies: Iterable[str], *, is_page: bool = True) -> None:
        """Replace the outgoing edges of *page* with *dependencies*."""
        key = str(page)
        self._drop_edges(key)
        new = {str(d) for d in dependencies if str(d) != key}
        self._dependencies[key] = new
        for dependency in new:
            self._dependents.setdefault(dependency, set()).add(key)
        if is_page:
            self._pages.add(key)
        else:
            self._pages.discard(key)

    def remove_file(self, path: str | Path) -> None:
        """Forget what *path* depends on.

        Edges pointing *at* the file stay, so re-creating it rebuilds the
        pages that still reference it.

        """
        key = str(path)
        self._drop_edges(key)
        self._dependencies.pop(key, None)
        self._pages.discard(key)

    def _drop_edges(self, key: str) -> None:
        for dependency in self._dependencies.get(key, ()):
            dependents = self._dependents.get(dependency)
            if dependents is None:
                continue
            dependents.discard(key)
            if not dependents:
                del self._dependents[dependency]

    # ----- Queries -----

    def get_dependent_pages(self, path: str | Path) -> set[str]:
        """Pages that reference *path* directly."""
        return {d for d in self._dependents.get(str(path), ()) if d in self._pages}

    def get_all_transitive_dependents(self, path: str | Path) -> set[str]:
        """Pages that reach *path* through any chain of layouts and fragments."""
        start = str(path)
        seen: set[str] = {start}
        queue: deque[str] = deque([start])
        while queue:
            current = queue.popleft()
            for dependent in self._dependents.get(current, ()):
                if dependent not in seen:
                    seen.add(dependent)
                    queue.append(dependent)
        seen.discard(start)
        return {p for p in seen if p in self._pages}

    def get_dependencies(self, page: str | Path) -> set[str]:
        return set(self._dependencies.get(str(page), ()))

    def is_referenced(self, path: str | Path) -> bool:
        return bool(self._dependents.get(str(path)))

    def get_stats(self) -> dict[str, int]:
        return {
            "tracked_files": len(self._dependencies),
            "pages": len(self._pages),
            "dependencies": len(self._dependents),
            "edges": sum(len(d) for d in self._dependencies.values()),
        }

    # ----- Persistence -----

    def export_data(self) -> dict[str, Any]:
        """JSON-serializable snapshot of the graph."""
        return {
            "dependencies": {k: sorted(v) for k, v in sorted(self._dependencies.items())},
            "pages": sorted(self._pages),
        }

    def import_data(self, data: dict[str, Any]) -> None:
        """Replace the graph with a snapshot from :meth:`export_data`."""
        self.clear()
        pages = set(data.get("pages", ()))
        for key, dependencies in data.get("dependencies", {}).items():
            self.record_dependencies(key, dependencies, is_page=key in pages)

    def clear(self) -> None:
        self._dependencies.clear()
        self._dependents.clear()
        self._pages.clear()
