"""Server-side include expansion.

Replaces Apache-style include comments and ``<include>`` elements before
composition::

    <!--#include file="partials/note.html" -->     relative to the including file
    <!--#include virtual="/partials/note.html" -->  relative to the source root
    <include src="/partials/note.html"></include>    /path from the root, else local

Includes nest up to ``MAX_INCLUDE_DEPTH``.  A missing or cyclic include is
replaced by a warning comment and reported, never raised; path traversal
is raised so the caller can classify it as a security failure.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from unify._errors import PathTraversalError
from unify.content.security import validate_path

if TYPE_CHECKING:
    from collections.abc import Callable

MAX_INCLUDE_DEPTH = 10

INCLUDE_PATTERN = re.compile(
    r"""<!--\s*#include\s+(file|virtual)\s*=\s*["']([^"']+)["']\s*-->""",
    re.IGNORECASE,
)

ELEMENT_PATTERN = re.compile(
    r"""<include\s+[^>]*?\bsrc\s*=\s*["']([^"']+)["'][^>]*?(?:/>|>.*?</include\s*>)""",
    re.IGNORECASE | re.DOTALL,
)


@dataclass(slots=True)
class IncludeResult:
    """Outcome of expanding includes in one document.

    Attributes:
        success: False when any include was left unexpanded.
        content: Markup with every include replaced.
        includes_processed: Number of include directives replaced.
        warnings: Messages for missing, cyclic or too-deep includes.
        dependencies: Absolute paths of every file pulled in, in order.

    """

    success: bool = True
    content: str = ""
    includes_processed: int = 0
    warnings: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)


def resolve_include(kind: str, target: str, including_file: str, source_root: str) -> str:
    """Resolve an include target to an absolute path inside the source root."""
    if kind.lower() == "virtual" or target.startswith("/"):
        candidate = os.path.join(source_root, target.lstrip("/"))
    else:
        candidate = os.path.join(os.path.dirname(including_file), target)
    return validate_path(candidate, source_root)


def _read_disk(path: str) -> str | None:
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError, ValueError):
        return None


def process_includes(
    html: str,
    path: str,
    source_root: str | Path,
    *,
    loader: Callable[[str], str | None] | None = None,
) -> IncludeResult:
    """Expand every include comment and ``<include src>`` element in *html*.

    Args:
        html: Markup of the including file.
        path: Absolute path of the including file.
        source_root: Root that ``virtual`` includes resolve against.
        loader: Returns file content or None; defaults to reading from disk.

    Raises:
        PathTraversalError: If an include resolves outside the source root.

    """
    read = loader or _read_disk
    result = IncludeResult()
    result.content = _expand(html, str(path), str(source_root), read, result, (str(path),))
    return result


def _expand(
    html: str,
    path: str,
    source_root: str,
    read: Callable[[str], str | None],
    result: IncludeResult,
    chain: tuple[str, ...],
) -> str:
    if "#include" not in html and "<include" not in html.lower():
        return html

    def inline(kind: str, target: str) -> str:
        resolved = resolve_include(kind, target, path, source_root)

        if resolved in chain:
            result.warnings.append(f"Circular include skipped: {target} in {path}")
            result.success = False
            return f"<!-- WARNING: circular include {target} -->"
        if len(chain) > MAX_INCLUDE_DEPTH:
            result.warnings.append(f"Include depth exceeded at {target} in {path}")
            result.success = False
            return f"<!-- WARNING: include depth exceeded {target} -->"

        content = read(resolved)
        if content is None:
            result.warnings.append(f"Include not found: {target} in {path}")
            result.success = False
            return f"<!-- WARNING: include not found {target} -->"

        if resolved not in result.dependencies:
            result.dependencies.append(resolved)
        result.includes_processed += 1
        return _expand(content, resolved, source_root, read, result, (*chain, resolved))

    html = INCLUDE_PATTERN.sub(lambda m: inline(m.group(1), m.group(2)), html)
    return ELEMENT_PATTERN.sub(lambda m: inline("file", m.group(1)), html)


def find_include_targets(html: str, path: str, source_root: str | Path) -> list[str]:
    """Resolve include targets without reading them (for dependency tracking).

    Targets escaping the source root are skipped.

    """
    directives = [(m.group(1), m.group(2)) for m in INCLUDE_PATTERN.finditer(html)]
    directives += [("file", m.group(1)) for m in ELEMENT_PATTERN.finditer(html)]
    targets: list[str] = []
    for kind, target in directives:
        try:
            resolved = resolve_include(kind, target, str(path), str(source_root))
        except PathTraversalError:
            continue
        if resolved not in targets:
            targets.append(resolved)
    return targets
