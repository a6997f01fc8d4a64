"""Output file handling: copy assets, write pages, remove stale output.

Every write mirrors the source file's position under the source root into
the output root.  Pages may be remapped for pretty URLs by the caller;
assets always keep their relative path.
"""

from __future__ import annotations

import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from unify._errors import BuildError


@dataclass(frozen=True, slots=True)
class OutputFile:
    """Record of a single file written during a build.

    Attributes:
        source_path: Absolute path of the source file.
        output_path: Absolute filesystem path to the written file.
        source_type: Whether the file was composed or copied.
        size_bytes: Size of the written file in bytes.
        duration_ms: Time taken to produce and write this file.

    """

    source_path: str
    output_path: Path
    source_type: Literal["page", "asset"]
    size_bytes: int
    duration_ms: float


def copy_asset(source: Path, source_root: Path, output_root: Path) -> OutputFile:
    """Copy one asset to its mirrored location under ``output_root``.

    Raises:
        BuildError: If the source cannot be read or the target written.

    """
    t0 = time.perf_counter()
    dest = output_root / source.relative_to(source_root)
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, dest)
        size = dest.stat().st_size
    except OSError as exc:
        raise BuildError(f"Could not copy asset: {exc}", file_path=str(source)) from exc
    return OutputFile(
        source_path=str(source),
        output_path=dest,
        source_type="asset",
        size_bytes=size,
        duration_ms=(time.perf_counter() - t0) * 1000,
    )


def write_html(filepath: Path, html: str) -> int:
    """Write HTML content to a file, creating parent dirs as needed.

    Returns the size in bytes of the written file.

    Raises:
        BuildError: If the file cannot be written.

    """
    data = html.encode("utf-8")
    try:
        filepath.parent.mkdir(parents=True, exist_ok=True)
        filepath.write_bytes(data)
    except OSError as exc:
        raise BuildError(f"Could not write {filepath}: {exc}", file_path=str(filepath)) from exc
    return len(data)


def remove_output(filepath: Path, output_root: Path) -> bool:
    """Delete a mirrored output file, returning whether it existed.

    Empty parent directories left behind (pretty-URL folders) are removed
    too.  Errors other than the file already being absent propagate.

    """
    try:
        filepath.unlink()
    except FileNotFoundError:
        return False
    parent = filepath.parent
    if parent != output_root and output_root in parent.parents and not any(parent.iterdir()):
        parent.rmdir()
    return True


def clean_output(output_dir: Path, *, keep: tuple[str, ...] = ()) -> int:
    """Empty the output directory, keeping entries named in *keep*.

    Returns the number of top-level entries removed.

    """
    if not output_dir.exists():
        output_dir.mkdir(parents=True, exist_ok=True)
        return 0
    removed = 0
    for entry in output_dir.iterdir():
        if entry.name in keep:
            continue
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()
        removed += 1
    return removed
