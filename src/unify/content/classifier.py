"""Convention-based file classification.

- **page**: ``.html``/``.htm`` with no ``_``-prefixed name or directory.
- **layout**: a ``_``-prefixed HTML file named ``*layout.html`` (or
  ``_includes/_layout.html``).
- **fragment**: any other ``_``-prefixed HTML file, or HTML inside a
  ``_``-prefixed directory (components, partials).
- **asset**: everything else.  Assets are copied unless they live under a
  ``_``-prefixed path, in which case they are copied only when referenced.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from unify._types import FileRole

HTML_EXTENSIONS = frozenset({".html", ".htm"})


@dataclass(frozen=True, slots=True)
class FileClassification:
    """Role flags for one source file. Exactly one of the role flags is set."""

    is_page: bool = False
    is_fragment: bool = False
    is_layout: bool = False
    is_asset: bool = False
    should_copy: bool = False

    @property
    def role(self) -> FileRole:
        if self.is_page:
            return "page"
        if self.is_layout:
            return "layout"
        if self.is_fragment:
            return "fragment"
        return "asset"


def is_layout_name(name: str) -> bool:
    lowered = name.lower()
    return lowered.startswith("_") and lowered.endswith(("layout.html", "layout.htm"))


class FileClassifier:
    """Classifies paths relative to one source root.

    Args:
        source_root: Directory that relative conventions are measured from.
        includes_dir: Fallback layout directory (``_includes`` by default).

    """

    __slots__ = ("_includes_dir", "_source_root")

    def __init__(self, source_root: str | Path, includes_dir: str = "_includes") -> None:
        self._source_root = Path(source_root)
        self._includes_dir = includes_dir

    def classify(self, path: str | Path) -> FileClassification:
        path = Path(path)
        try:
            parts = path.relative_to(self._source_root).parts
        except ValueError:
            parts = (path.name,)

        underscored = any(part.startswith("_") for part in parts)

        if path.suffix.lower() in HTML_EXTENSIONS:
            if is_layout_name(path.name) or parts in (
                (self._includes_dir, "_layout.html"),
                (self._includes_dir, "_layout.htm"),
            ):
                return FileClassification(is_layout=True)
            if underscored:
                return FileClassification(is_fragment=True)
            return FileClassification(is_page=True, should_copy=True)

        return FileClassification(is_asset=True, should_copy=not underscored)

    def is_hidden(self, path: str | Path) -> bool:
        """Dot-files and dot-directories are never part of the build."""
        try:
            parts = Path(path).relative_to(self._source_root).parts
        except ValueError:
            parts = (Path(path).name,)
        return any(part.startswith(".") for part in parts)
