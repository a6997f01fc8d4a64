"""Content-hash build cache.

Maps absolute source paths to the SHA-256 hex digest of their content as
of the last successful build.  A file without an entry always counts as
changed.  The cache is one flat JSON object on disk; a missing, unreadable
or malformed file is treated as empty and never blocks a build.
"""

from __future__ import annotations

import hashlib
import json
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

_DIGEST = re.compile(r"^[0-9a-f]{64}$")


@dataclass(frozen=True, slots=True)
class CacheCheck:
    """Partition of a set of files by whether their content changed.

    Attributes:
        changed: Paths whose digest differs from the cache, or has no entry.
        unchanged: Paths whose digest matches the cache.

    """

    changed: tuple[str, ...]
    unchanged: tuple[str, ...]

    @property
    def all_unchanged(self) -> bool:
        return not self.changed


def hash_content(content: str | bytes) -> str:
    """SHA-256 hex digest of *content* (text is encoded as UTF-8)."""
    data = content.encode("utf-8") if isinstance(content, str) else content
    return hashlib.sha256(data).hexdigest()


def hash_file(path: str | Path) -> str | None:
    """Digest of a file's bytes, or None when it cannot be read."""
    try:
        return hash_content(Path(path).read_bytes())
    except OSError:
        return None


class BuildCache:
    """Content digests of the last successful build.

    Args:
        cache_path: JSON file the cache is loaded from and persisted to.

    """

    __slots__ = ("_entries", "_loaded", "_path")

    def __init__(self, cache_path: Path) -> None:
        self._path = Path(cache_path)
        self._entries: dict[str, str] = {}
        self._loaded = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: object) -> bool:
        return str(path) in self._entries

    # ----- Hashing -----

    hash_content = staticmethod(hash_content)
    hash_file = staticmethod(hash_file)

    def get(self, path: str | Path) -> str | None:
        return self._entries.get(str(path))

    def has_file_changed(self, path: str | Path, content: str | bytes | None = None) -> bool:
        """Whether *path* differs from its cached digest.

        Args:
            path: The file to check.
            content: Its current content; read from disk when omitted.

        """
        cached = self._entries.get(str(path))
        if cached is None:
            return True
        current = hash_content(content) if content is not None else hash_file(path)
        return current != cached

    def store_file_hash(self, path: str | Path, content: str | bytes | None = None) -> str | None:
        """Record the current digest of *path*.  Returns it, or None if unreadable."""
        digest = hash_content(content) if content is not None else hash_file(path)
        if digest is None:
            self._entries.pop(str(path), None)
            return None
        self._entries[str(path)] = digest
        return digest

    update_file_hash = store_file_hash

    def check_multiple_files(self, paths: Iterable[str | Path]) -> CacheCheck:
        changed: list[str] = []
        unchanged: list[str] = []
        for path in paths:
            (changed if self.has_file_changed(path) else unchanged).append(str(path))
        return CacheCheck(changed=tuple(changed), unchanged=tuple(unchanged))

    # ----- Maintenance -----

    def remove(self, path: str | Path) -> bool:
        return self._entries.pop(str(path), None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def repair(self) -> int:
        """Drop entries for vanished files and recompute malformed digests.

        Returns the number of entries touched.

        """
        touched = 0
        for path, digest in list(self._entries.items()):
            if not Path(path).is_file():
                del self._entries[path]
                touched += 1
            elif not _DIGEST.match(digest):
                self.store_file_hash(path)
                touched += 1
        return touched

    def get_stats(self) -> dict[str, object]:
        return {
            "entries": len(self._entries),
            "cache_file": str(self._path),
            "loaded": self._loaded,
        }

    # ----- Persistence -----

    def load_from_disk(self, *, force: bool = False) -> int:
        """Load the cache file once per session.

        Returns the number of entries loaded.  Later calls are no-ops
        unless *force* is set.

        """
        if self._loaded and not force:
            return len(self._entries)
        self._loaded = True
        self._entries = {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError):
            return 0
        if not isinstance(raw, dict):
            return 0
        self._entries = {k: v for k, v in raw.items() if isinstance(k, str) and isinstance(v, str)}
        return len(self._entries)

    def persist_to_disk(self) -> bool:
        """Rewrite the cache file.  Returns False (after a warning) on failure."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                json.dumps(self._entries, indent=2, sort_keys=True) + "\n",
                encoding="utf-8",
            )
        except OSError as exc:
            print(f"  Warning: could not write build cache {self._path}: {exc}", file=sys.stderr)
            return False
        return True
