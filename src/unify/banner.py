"""Startup banner and build summary output.

Prints a mode-aware status block to stderr before a build or watch session
and a completion summary after an initial build.  Detects ``NO_COLOR`` /
``TERM`` for safe fallback.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from unify.build.incremental import BuildResult
    from unify.config import UnifyConfig


# ---------------------------------------------------------------------------
# ANSI helpers, respecting NO_COLOR (https://no-color.org)
# ---------------------------------------------------------------------------

def _supports_color() -> bool:
    """Return True if the terminal supports ANSI colors."""
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("TERM") == "dumb":
        return False
    return hasattr(sys.stderr, "isatty") and sys.stderr.isatty()


_COLOR = _supports_color()

_RESET = "\033[0m" if _COLOR else ""
_BOLD = "\033[1m" if _COLOR else ""
_DIM = "\033[2m" if _COLOR else ""
_GREEN = "\033[32m" if _COLOR else ""
_YELLOW = "\033[33m" if _COLOR else ""
_RED = "\033[31m" if _COLOR else ""

_MODE_STYLES: dict[str, str] = {
    "build": _YELLOW,
    "watch": _GREEN,
}


def _mode_badge(mode: str) -> str:
    return f"{_MODE_STYLES.get(mode, _DIM)}[{mode}]{_RESET}"


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'s' if count != 1 else ''}"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def print_banner(config: UnifyConfig, mode: str) -> None:
    """Print the unify startup banner to stderr.

    Args:
        config: Resolved UnifyConfig.
        mode: ``"build"`` or ``"watch"``.

    """
    from unify import __version__

    lines = [
        "",
        f"  {_BOLD}unify{_RESET} {_DIM}v{__version__}{_RESET}  {_mode_badge(mode)}",
        f"  {_DIM}{'─' * 43}{_RESET}",
        f"  {_DIM}├─{_RESET} source: {_DIM}{config.source_path}{_RESET}",
    ]

    options = [
        name
        for name, enabled in (("pretty urls", config.pretty_urls), ("minify", config.minify), ("clean", config.clean))
        if enabled
    ]
    if options:
        lines.append(f"  {_DIM}├─{_RESET} options: {', '.join(options)}")
    lines.append(f"  {_DIM}└─{_RESET} output: {_DIM}{config.output_path}{_RESET}")
    lines.append("")

    print("\n".join(lines), file=sys.stderr)


def print_build_summary(result: BuildResult, config: UnifyConfig) -> None:
    """Print build completion summary to stderr."""
    lines = [
        "",
        "─" * 41,
        f"  Built {_plural(len(result.processed_files), 'page')}",
    ]
    if result.copied_assets:
        lines.append(f"  Copied {_plural(len(result.copied_assets), 'asset')}")
    if result.cache_hits and not result.processed_files:
        lines.append(f"  {_DIM}Up to date ({_plural(result.cache_hits, 'file')} unchanged){_RESET}")

    failures = [i for i in result.issues if i.kind != "recoverable"]
    recoverable = len(result.issues) - len(failures)
    if recoverable:
        lines.append(f"  {_YELLOW}!{_RESET} {_plural(recoverable, 'warning')}")
    for issue in failures:
        lines.append(f"  {_RED}✗{_RESET} {issue.file_path}: {issue.message}")
    if result.security_warnings:
        lines.append(f"  {_YELLOW}!{_RESET} {_plural(len(result.security_warnings), 'security warning')}")
    if result.error:
        lines.append(f"  {_RED}✗{_RESET} {result.error}")

    lines.append(f"  Output: {config.output_path}")
    lines.append(f"  Done in {result.duration_ms:.0f}ms")

    print("\n".join(lines), file=sys.stderr)
