"""Directive path resolution.

A ``data-unify`` value is resolved to an absolute path:

1. ``/path.html``  -> relative to the source root.
2. ``path.html`` or ``dir/path.html`` -> relative to the referencing file's
   directory, then relative to the source root.
3. a short name (``blog``) -> searched from the referencing file's directory
   up to the source root, then in the includes directory, trying
   ``blog``, ``_blog``, ``_blog.layout`` with ``.html`` and ``.htm``.

Candidates outside the source root are discarded.  When nothing
exists, the first candidate is returned so that callers can report a stable
"missing" path.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from unify._errors import PathTraversalError
from unify.content.security import is_within, validate_path

if TYPE_CHECKING:
    from collections.abc import Callable

LAYOUT_EXTENSIONS = (".html", ".htm")
_SHORT_NAME_PATTERNS = ("{}", "_{}", "_{}.layout")


def is_short_name(reference: str) -> bool:
    return "/" not in reference and "." not in reference


def candidate_paths(
    reference: str,
    from_file: str,
    source_root: str,
    includes_dir: str = "_includes",
) -> list[str]:
    """List absolute candidates for *reference* in precedence order (unvalidated)."""
    reference = reference.strip()
    from_dir = os.path.dirname(from_file)

    if reference.startswith("/"):
        return [os.path.normpath(os.path.join(source_root, reference.lstrip("/")))]

    if not is_short_name(reference):
        local = os.path.normpath(os.path.join(from_dir, reference))
        rooted = os.path.normpath(os.path.join(source_root, reference))
        return list(dict.fromkeys([local, rooted]))

    directories: list[str] = []
    current = os.path.normpath(from_dir)
    root = os.path.normpath(source_root)
    while True:
        directories.append(current)
        if current == root or not current.startswith(root + os.sep):
            break
        current = os.path.dirname(current)
    directories.append(os.path.join(root, includes_dir))

    candidates: list[str] = []
    for directory in directories:
        for pattern in _SHORT_NAME_PATTERNS:
            name = pattern.format(reference)
            for ext in LAYOUT_EXTENSIONS:
                candidates.append(os.path.join(directory, name + ext))
    return list(dict.fromkeys(candidates))


def resolve_reference(
    reference: str,
    from_file: str,
    source_root: str,
    exists: Callable[[str], bool],
    *,
    includes_dir: str = "_includes",
) -> str:
    """Resolve a directive reference to an absolute path.

    Raises:
        PathTraversalError: If the reference contains a NUL byte or every
            candidate points outside the source root.

    """
    if "\0" in reference:
        raise PathTraversalError(reference, source_root)
    raw = candidate_paths(reference, from_file, source_root, includes_dir)
    candidates = [c for c in raw if is_within(c, source_root)]
    if not candidates:
        validate_path(raw[0], source_root)
    for candidate in candidates:
        if exists(candidate):
            return candidate
    return candidates[0]
