"""Shared type definitions for unify."""

from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from unify.content.watcher import CancellationToken, ChangeEvent

# Role a source file plays in the build
type FileRole = Literal["page", "fragment", "layout", "asset"]

# Absolute path string -> file content, used for layout/component lookup
type FileSystemMap = Mapping[str, str]

# Watcher event kinds
type ChangeKind = Literal["add", "change", "unlink"]

# Batch handler registered with the file watcher
type BatchHandler = Callable[
    [list[ChangeEvent], CancellationToken], Awaitable[object]
]
