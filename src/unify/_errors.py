"""Unify error hierarchy.

All unify-specific errors inherit from UnifyError for easy catching.
Each error carries an ``exit_code`` used to classify failed compositions
and CLI runs.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_SECURITY = 2


class UnifyError(Exception):
    """Base error for all unify operations."""

    exit_code: int = EXIT_ERROR

    def __init__(self, message: str, *, file_path: str | None = None) -> None:
        super().__init__(message)
        self.file_path = file_path

    @property
    def is_recoverable(self) -> bool:
        """Whether the build should degrade and continue instead of failing."""
        return False


class ConfigError(UnifyError):
    """Invalid or missing configuration."""


class CompositionError(UnifyError):
    """A page could not be composed from its layouts and components."""


class CircularImportError(CompositionError):
    """A layout or component chain refers back to itself.

    Args:
        chain: The processing keys from the outermost file to the repeated one.

    """

    def __init__(self, chain: Sequence[str], *, file_path: str | None = None) -> None:
        self.chain = tuple(chain)
        super().__init__(
            "Circular import detected: " + " → ".join(self.chain),
            file_path=file_path,
        )


class MaxDepthExceededError(CompositionError):
    """Layout/component nesting went deeper than the allowed maximum."""

    def __init__(self, depth: int, max_depth: int, *, file_path: str | None = None) -> None:
        self.depth = depth
        self.max_depth = max_depth
        super().__init__(
            f"Maximum layout depth ({max_depth}) exceeded at depth {depth}",
            file_path=file_path,
        )


class PathTraversalError(UnifyError):
    """A referenced path escapes the source root."""

    exit_code = EXIT_SECURITY

    def __init__(self, attempted: str, source_root: str) -> None:
        self.attempted = attempted
        self.source_root = source_root
        super().__init__(f"Path traversal attempt blocked: {attempted}")


class LayoutNotFoundError(UnifyError):
    """A layout or component referenced by a directive does not exist.

    Args:
        kind: ``"layout"`` or ``"component"``, used in the message.

    """

    def __init__(self, layout_path: str, *, file_path: str | None = None, kind: str = "layout") -> None:
        self.layout_path = layout_path
        self.kind = kind
        super().__init__(f"{kind.capitalize()} not found: {layout_path}", file_path=file_path)

    @property
    def is_recoverable(self) -> bool:
        return True


class BuildError(UnifyError):
    """Error while writing, copying, or tracking build output."""


class BuildCancelled(UnifyError):  # noqa: N818
    """A newer change batch superseded the one being processed."""
