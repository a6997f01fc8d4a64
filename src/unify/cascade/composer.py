"""Composition engine: turns a page plus its layouts and components into HTML.

A page opts into a layout with a directive (``data-unify``, or the legacy
``data-layer``) on its ``<html>`` or ``<body>`` element.  Any other element
carrying a directive is replaced by the named component.  Layouts may
themselves name an outer layout, forming a chain of at most
``MAX_DEPTH`` links.

Composition of one page::

    page ──▶ expand includes ──▶ compose page components
                 │
                 ▼
        layout chain (outermost first)
                 │  for each link: load ──▶ components ──▶ outer link
                 ▼
        areas (class match) or landmarks ──▶ root attrs ──▶ heads
                 │
                 ▼
        strip directives ──▶ minify ──▶ links ──▶ security scan

Internally every step yields a tagged outcome (``Composed``, ``Fallback``,
``Fatal``).  A missing layout is a ``Fallback`` and never fails the page;
cycles, excessive depth and path traversal are ``Fatal``.  The public
:meth:`CompositionEngine.compose` never raises.
"""

from __future__ import annotations

import os
import sys
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from unify._errors import (
    EXIT_OK,
    CircularImportError,
    CompositionError,
    LayoutNotFoundError,
    MaxDepthExceededError,
    UnifyError,
)
from unify.cascade.areas import match_areas, match_landmarks, wrap_loose_content
from unify.cascade.attributes import (
    DIRECTIVE_ATTRIBUTES,
    directive_of,
    merge_attributes,
    strip_directives,
)
from unify.cascade.head import HeadMerger, head_children
from unify.cascade.resolver import resolve_reference
from unify.content.includes import process_includes
from unify.content.links import normalize_links
from unify.content.minify import minify
from unify.content.security import scan_for_security_issues
from unify.html.dom import Document, Element, Text, parse_document, serialize

if TYPE_CHECKING:
    from collections.abc import Iterator

    from unify._types import FileSystemMap
    from unify.content.security import SecurityWarning
    from unify.html.dom import Node
    from unify.observability.collector import StackCollector

MAX_DEPTH = 10

_ROOT_TAGS = ("html", "body")


# ---------------------------------------------------------------------------
# Options, outcomes and results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ComposeOptions:
    """Per-call composition settings.

    Attributes:
        area_prefix: Class prefix that marks an area.
        includes_dir: Directory searched last for short layout names.
        pretty_urls: Rewrite local ``.html`` links to directory form.
        minify: Collapse whitespace in the output.
        security_scan: Run the security scanner over the output.

    """

    area_prefix: str = "unify-"
    includes_dir: str = "_includes"
    pretty_urls: bool = False
    minify: bool = False
    security_scan: bool = True


@dataclass(frozen=True, slots=True)
class Composed:
    """A document that went through at least one composition step."""

    document: Document


@dataclass(frozen=True, slots=True)
class Fallback:
    """Composition could not proceed; *document* is usable as is."""

    document: Document
    reason: UnifyError


@dataclass(frozen=True, slots=True)
class Fatal:
    """Composition failed for this file."""

    error: UnifyError


type Outcome = Composed | Fallback | Fatal


@dataclass(frozen=True, slots=True)
class CompositionResult:
    """What :meth:`CompositionEngine.compose` returns for one page.

    Attributes:
        success: False only for fatal errors.
        html: Final markup.  On failure, the page's own markup with
            directives removed.
        error: The fatal error, when there is one.
        exit_code: 0 on success, 1 for composition errors, 2 for
            security errors.
        security_warnings: Findings of the security scanner.
        dependencies: Every layout, component and include file used.
        recoverable_errors: Problems the page was composed around.
        layouts_processed: Number of layouts applied.
        composition_applied: True when at least one layout was applied.

    """

    success: bool
    html: str
    error: UnifyError | None = None
    exit_code: int = EXIT_OK
    security_warnings: tuple[SecurityWarning, ...] = ()
    dependencies: tuple[str, ...] = ()
    recoverable_errors: tuple[str, ...] = ()
    layouts_processed: int = 0
    composition_applied: bool = False


# ---------------------------------------------------------------------------
# Per-call state
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class _Session:
    """State threaded through one top-level ``compose`` call."""

    source_root: str
    file_system: FileSystemMap
    options: ComposeOptions
    stack: list[str]
    dependencies: list[str] = field(default_factory=list)
    recoverable_errors: list[str] = field(default_factory=list)
    layouts_processed: int = 0

    @contextmanager
    def enter(self, key: str) -> Iterator[None]:
        """Hold *key* on the processing stack for the duration of the block.

        Raises:
            CircularImportError: If *key* is already being processed.

        """
        if key in self.stack:
            raise CircularImportError([*self.stack, key])
        self.stack.append(key)
        try:
            yield
        finally:
            self.stack.pop()

    def depend_on(self, path: str) -> None:
        if path not in self.dependencies:
            self.dependencies.append(path)


def _read_text(path: str) -> str | None:
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError, ValueError):
        return None


def _root_directive(document: Document) -> tuple[Element, str] | None:
    for tag in _ROOT_TAGS:
        element = document.find(tag)
        if element is None:
            continue
        reference = directive_of(element)
        if reference is not None:
            return element, reference
    return None


def _next_component(document: Document) -> tuple[Element, str] | None:
    for element in document.iter():
        if element.tag in _ROOT_TAGS:
            continue
        reference = directive_of(element)
        if reference is not None:
            return element, reference
    return None


def _clone_children(element: Element) -> list[Node]:
    return [child.clone() for child in element.children]


def _fill(target: Element, source: Element) -> None:
    """Give *target* the merged attributes and a copy of the content of *source*."""
    target.attrs = merge_attributes(target.attrs, source.attrs)
    target.replace_children(_clone_children(source))


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class CompositionEngine:
    """Composes pages against layouts and components.

    Layout content is cached by absolute path for the lifetime of the
    engine.  Missing paths are remembered so each one is warned about only
    once.  Use :meth:`invalidate` when a single file changes and
    :meth:`clear_cache` to reset everything.

    Args:
        collector: Optional event collector for observability.
        head_merger: Head merger to use; a default one is created if omitted.

    """

    def __init__(
        self,
        *,
        collector: StackCollector | None = None,
        head_merger: HeadMerger | None = None,
    ) -> None:
        self._collector = collector
        self._head = head_merger or HeadMerger()
        self._layout_cache: dict[str, str] = {}
        self._missing: set[str] = set()
        self._stack: list[str] = []
        self._stats = self._empty_stats()

    @staticmethod
    def _empty_stats() -> dict[str, int]:
        return {"cache_hits": 0, "cache_misses": 0, "missing_attempts": 0, "warnings_emitted": 0}

    # ----- Cache management -----

    @property
    def processing_stack(self) -> tuple[str, ...]:
        """Keys currently being composed (empty between calls)."""
        return tuple(self._stack)

    def get_cache_stats(self) -> dict[str, int]:
        return {
            "layout_cache_size": len(self._layout_cache),
            "cache_hits": self._stats["cache_hits"],
            "cache_misses": self._stats["cache_misses"],
            "missing_attempts": self._stats["missing_attempts"],
            "unique_missing": len(self._missing),
            "warnings_emitted": self._stats["warnings_emitted"],
        }

    def clear_cache(self) -> None:
        """Forget cached layouts, missing paths and statistics."""
        self._layout_cache.clear()
        self._missing.clear()
        self._stats = self._empty_stats()

    def invalidate(self, path: str | Path) -> None:
        """Forget one file so the next composition reloads it."""
        key = str(path)
        self._layout_cache.pop(key, None)
        self._missing.discard(key)

    # ----- Public API -----

    def compose(
        self,
        path: str | Path,
        html: str,
        file_system: FileSystemMap | None = None,
        source_root: str | Path = ".",
        options: ComposeOptions | None = None,
    ) -> CompositionResult:
        """Compose one page.

        Args:
            path: Path of the page being composed.
            html: The page's markup.
            file_system: Absolute path -> content for layouts, components
                and includes.  Anything absent is read from disk.
            source_root: Root that directives and includes may not escape.
            options: Composition settings.

        Returns:
            The composition result.  Errors are reported in the result,
            never raised.

        """
        page_path = os.path.abspath(path)
        session = _Session(
            source_root=os.path.abspath(source_root),
            file_system=file_system or {},
            options=options or ComposeOptions(),
            stack=self._stack,
        )
        t0 = time.perf_counter()

        outcome = self._compose_page(page_path, html, session)
        result = self._finish(page_path, html, outcome, session)

        if self._collector is not None:
            self._collector.record_composition(
                page_path,
                success=result.success,
                layouts=result.layouts_processed,
                recoverable=len(result.recoverable_errors),
                duration_ms=(time.perf_counter() - t0) * 1000,
            )
        return result

    # ----- Page level -----

    def _compose_page(self, path: str, html: str, session: _Session) -> Outcome:
        try:
            with session.enter(path):
                document = parse_document(self._expand_includes(html, path, session))
                self._compose_components(document, path, session, depth=0)

                root = _root_directive(document)
                if root is None:
                    return Composed(document)

                _, reference = root
                return self._compose_with_layout(
                    document, path, reference, session, depth=1, page_level=True,
                )
        except UnifyError as exc:
            return Fatal(exc)
        except Exception as exc:
            # Anything unexpected still fails only this page
            error = CompositionError(f"Composition failed: {type(exc).__name__}: {exc}", file_path=path)
            return Fatal(error)

    def _finish(self, path: str, html: str, outcome: Outcome, session: _Session) -> CompositionResult:
        if isinstance(outcome, Fatal):
            original = parse_document(html)
            strip_directives(original)
            return CompositionResult(
                success=False,
                html=serialize(original),
                error=outcome.error,
                exit_code=outcome.error.exit_code,
                dependencies=tuple(session.dependencies),
                recoverable_errors=tuple(session.recoverable_errors),
                layouts_processed=session.layouts_processed,
            )

        document = outcome.document
        options = session.options
        strip_directives(document)
        if options.minify:
            minify(document)
        normalize_links(document, pretty_urls=options.pretty_urls)
        output = serialize(document)

        warnings = scan_for_security_issues(output, path) if options.security_scan else []
        return CompositionResult(
            success=True,
            html=output,
            security_warnings=tuple(warnings),
            dependencies=tuple(session.dependencies),
            recoverable_errors=tuple(session.recoverable_errors),
            layouts_processed=session.layouts_processed,
            composition_applied=session.layouts_processed > 0,
        )

    # ----- Layout chain -----

    def _compose_with_layout(
        self,
        page_doc: Document,
        source_path: str,
        reference: str,
        session: _Session,
        depth: int,
        page_level: bool,
    ) -> Composed | Fallback:
        """Compose *page_doc* into the layout named by *reference*.

        Outer layouts are applied to the layout first, so the page can
        fill any area defined anywhere along the chain.

        """
        if depth > MAX_DEPTH:
            raise MaxDepthExceededError(depth, MAX_DEPTH, file_path=source_path)

        layout_path = self._resolve(reference, source_path, session)
        with session.enter(f"{source_path}→{layout_path}"):
            content = self._load(layout_path, source_path, session)
            if content is None:
                return Fallback(page_doc, reason=LayoutNotFoundError(layout_path, file_path=source_path))

            session.depend_on(layout_path)
            session.layouts_processed += 1
            layout_doc = parse_document(self._expand_includes(content, layout_path, session))
            self._compose_components(layout_doc, layout_path, session, depth)

            outer = _root_directive(layout_doc)
            if outer is not None:
                _, outer_reference = outer
                nested = self._compose_with_layout(
                    layout_doc, layout_path, outer_reference, session, depth + 1, page_level=False,
                )
                match nested:
                    case Composed(document=composed):
                        layout_doc = composed
                    case Fallback():
                        pass

            self._merge(layout_doc, page_doc, session.options, page_level=page_level)
            return Composed(layout_doc)

    def _merge(self, layout_doc: Document, page_doc: Document, options: ComposeOptions, *, page_level: bool) -> None:
        """Fill *layout_doc* in place with content from *page_doc*."""
        prefix = options.area_prefix
        wrap_loose_content(page_doc, prefix)

        matches = match_areas(layout_doc, page_doc, prefix)
        for match in matches:
            _fill(match.layout_element, match.source)

        if not matches:
            for landmark in match_landmarks(layout_doc, page_doc, prefix=prefix, include_main=not page_level):
                _fill(landmark.layout_element, landmark.page_element)

        for tag in _ROOT_TAGS:
            layout_root, page_root = layout_doc.find(tag), page_doc.find(tag)
            if layout_root is not None and page_root is not None:
                layout_root.attrs = merge_attributes(layout_root.attrs, page_root.attrs)

        self._merge_heads(layout_doc, head_children(page_doc.head))

    def _merge_heads(self, owner: Document, layer: list[Node]) -> None:
        if not any(isinstance(node, Element) for node in layer):
            return
        head = owner.head
        if head is None:
            head = Element(tag="head")
            container = owner.html or owner
            container.insert(0, head)
        self._head.apply(head, [head_children(head), layer])

    # ----- Components -----

    def _compose_components(self, owner: Document, owner_path: str, session: _Session, depth: int) -> None:
        """Replace every component reference in *owner*, outermost first."""
        while (found := _next_component(owner)) is not None:
            element, reference = found
            self._compose_component(owner, element, reference, owner_path, session, depth + 1)

    def _compose_component(
        self,
        owner: Document,
        element: Element,
        reference: str,
        owner_path: str,
        session: _Session,
        depth: int,
    ) -> None:
        if depth > MAX_DEPTH:
            raise MaxDepthExceededError(depth, MAX_DEPTH, file_path=owner_path)

        component_path = self._resolve(reference, owner_path, session)
        with session.enter(component_path):
            content = self._load(component_path, owner_path, session, kind="component")
            if content is None:
                for name in DIRECTIVE_ATTRIBUTES:
                    element.remove_attr(name)
                return

            session.depend_on(component_path)
            component_doc = parse_document(self._expand_includes(content, component_path, session))
            self._compose_components(component_doc, component_path, session, depth)

            # Content written inside the reference may override component areas
            overrides = Document()
            for child in _clone_children(element):
                overrides.append(child)
            prefix = session.options.area_prefix
            for match in match_areas(component_doc, overrides, prefix):
                _fill(match.layout_element, match.source)

            head = component_doc.head
            head_layer = [n for n in head_children(head) if not (isinstance(n, Element) and n.tag == "title")]
            if head is not None:
                head.detach()

            container = component_doc.body or component_doc.html or component_doc
            nodes: list[Node] = list(container.children)

            owner_head = owner.head
            if owner_head is not None and all(a is not owner_head for a in _ancestors(element)):
                self._merge_heads(owner, head_layer)
            else:
                nodes = [*_spaced(head_layer), *nodes]
            element.replace_with(nodes)

    # ----- Loading -----

    def _resolve(self, reference: str, from_file: str, session: _Session) -> str:
        def exists(candidate: str) -> bool:
            return (
                candidate in self._layout_cache
                or candidate in session.file_system
                or os.path.isfile(candidate)
            )

        return resolve_reference(
            reference,
            from_file,
            session.source_root,
            exists,
            includes_dir=session.options.includes_dir,
        )

    def _load(self, path: str, referenced_by: str, session: _Session, *, kind: str = "layout") -> str | None:
        cached = self._layout_cache.get(path)
        if cached is not None:
            self._stats["cache_hits"] += 1
            return cached

        self._stats["cache_misses"] += 1
        content = session.file_system.get(path)
        if content is None:
            content = _read_text(path)
        if content is None:
            self._report_missing(path, referenced_by, session, kind)
            return None

        self._layout_cache[path] = content
        return content

    def _report_missing(self, path: str, referenced_by: str, session: _Session, kind: str) -> None:
        error = LayoutNotFoundError(path, file_path=referenced_by, kind=kind)
        session.recoverable_errors.append(f"{error} (referenced by {referenced_by})")
        self._stats["missing_attempts"] += 1
        if path in self._missing:
            return

        self._missing.add(path)
        self._stats["warnings_emitted"] += 1
        shown = os.path.relpath(path, session.source_root)
        print(f"  Warning: {kind} not found: {shown}, composing without it", file=sys.stderr)
        if self._collector is not None:
            self._collector.record_layout_missing(path, referenced_by)

    def _expand_includes(self, html: str, path: str, session: _Session) -> str:
        def loader(target: str) -> str | None:
            content = session.file_system.get(target)
            return content if content is not None else _read_text(target)

        result = process_includes(html, path, session.source_root, loader=loader)
        for dependency in result.dependencies:
            session.depend_on(dependency)
        session.recoverable_errors.extend(result.warnings)
        return result.content


def _ancestors(node: Node) -> Iterator[Element | Document]:
    parent = node.parent
    while parent is not None:
        yield parent
        parent = parent.parent


def _spaced(nodes: list[Node]) -> list[Node]:
    """Head nodes for inline placement, one per line."""
    spaced: list[Node] = []
    for node in nodes:
        if isinstance(node, Element):
            spaced.extend([node, Text(data="\n")])
    return spaced
