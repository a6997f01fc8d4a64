"""Path validation and a line-based HTML security scanner.

``validate_path`` is a hard boundary: anything resolving outside the source
root raises :class:`PathTraversalError`.  ``scan_for_security_issues`` only
reports; composed output is never altered by it.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from unify._errors import PathTraversalError

type SecurityCheck = Literal["XSS_RISK", "JAVASCRIPT_URL", "CONTENT_INJECTION", "PATH_TRAVERSAL"]


@dataclass(frozen=True, slots=True)
class SecurityWarning:
    """A potential vulnerability found in composed HTML.

    Attributes:
        type: Which check fired.
        message: Human-readable description.
        line: 1-based line number in the scanned markup.
        file_path: File the markup came from.
        severity: ``"warning"`` or ``"error"``.

    """

    type: SecurityCheck
    message: str
    line: int
    file_path: str
    severity: Literal["warning", "error"] = "warning"


def is_within(path: str | Path, root: str | Path) -> bool:
    """Whether *path* is *root* or lies beneath it (lexically, after normalization)."""
    path_str = os.path.normpath(os.path.abspath(path))
    root_str = os.path.normpath(os.path.abspath(root))
    return path_str == root_str or path_str.startswith(root_str.rstrip(os.sep) + os.sep)


def validate_path(path: str | Path, source_root: str | Path) -> str:
    """Return the normalized absolute *path*, or raise if it escapes *source_root*.

    Raises:
        PathTraversalError: If the path contains a NUL byte or resolves
            outside the source root.

    """
    raw = str(path)
    if "\0" in raw or not is_within(raw, source_root):
        raise PathTraversalError(raw, str(source_root))
    return os.path.normpath(os.path.abspath(raw))


# ---------------------------------------------------------------------------
# Scanner
# ---------------------------------------------------------------------------

_EVENT_HANDLER = re.compile(r"""\s((?:data-|xml:)?on[a-z]+)\s*=\s*(["'])(.*?)\2""", re.IGNORECASE)
_JAVASCRIPT_URL = re.compile(r"""(?:href|src|action|formaction)\s*=\s*["']\s*javascript:""", re.IGNORECASE)
_TRAVERSAL_REF = re.compile(r"""(?:href|src)\s*=\s*["'][^"']*\.\./\.\./""", re.IGNORECASE)
_DANGEROUS_CALLS = ("document.write(", "eval(", "innerHTML =", "innerHTML=")
_SAFE_HANDLER = re.compile(r"^\s*(?:return\s+)?(?:false|true)\s*;?\s*$")


def scan_for_security_issues(
    html: str,
    file_path: str,
    *,
    disabled: frozenset[str] = frozenset(),
) -> list[SecurityWarning]:
    """Scan markup line by line for common XSS and injection patterns.

    Args:
        html: Markup to scan.
        file_path: Reported in every warning.
        disabled: Check names to skip (e.g. ``{"XSS_RISK"}``).

    Returns:
        Warnings in line order.

    """
    if not html:
        return []

    warnings: list[SecurityWarning] = []

    def warn(check: SecurityCheck, message: str, line: int) -> None:
        if check not in disabled:
            warnings.append(SecurityWarning(type=check, message=message, line=line, file_path=file_path))

    in_script = False
    for number, line in enumerate(html.splitlines(), start=1):
        lowered = line.lower()

        for match in _EVENT_HANDLER.finditer(line):
            if not _SAFE_HANDLER.match(match.group(3)):
                warn("XSS_RISK", f"Event handler {match.group(1)} detected", number)
        if "expression(" in lowered:
            warn("XSS_RISK", "CSS expression() detected", number)
        if "data:" in lowered and ("javascript" in lowered or "<script" in lowered):
            warn("XSS_RISK", "Suspicious data URL detected", number)

        if _JAVASCRIPT_URL.search(line):
            warn("JAVASCRIPT_URL", "javascript: URL detected", number)

        if "<script" in lowered:
            in_script = True
        if in_script and any(call in line for call in _DANGEROUS_CALLS):
            warn("CONTENT_INJECTION", "Dynamic content injection in script", number)
        if "</script" in lowered:
            in_script = False

        if _TRAVERSAL_REF.search(line):
            warn("PATH_TRAVERSAL", "Reference climbs multiple parent directories", number)

    return warnings
