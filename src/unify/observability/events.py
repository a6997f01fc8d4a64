"""Unified event model for build observability.

Defines event types for the composition pipeline, the incremental builder
and the file watcher.

All events are frozen dataclasses with:
- ``timestamp_ns``: Monotonic nanosecond timestamp
- Descriptive fields for the specific event type

Thread Safety:
    All events are frozen (immutable) and safe to share across threads.

"""

import time
from dataclasses import dataclass
from typing import Literal


# ---------------------------------------------------------------------------
# Composition events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CompositionEvent:
    """A page went through the composition pipeline.

    Attributes:
        path: Absolute path of the page.
        success: False when composition failed fatally.
        layouts: Number of layouts applied.
        recoverable: Number of recoverable problems folded into the result.
        duration_ms: Time spent composing in milliseconds.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    path: str
    success: bool
    layouts: int
    recoverable: int
    duration_ms: float
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class LayoutMissing:
    """A directive named a layout or component that does not exist.

    Emitted once per unique missing path per engine.

    Attributes:
        path: The missing file.
        referenced_by: File whose directive named it.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    path: str
    referenced_by: str
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Build events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BuildEvent:
    """A build action wrote or removed an output file.

    Attributes:
        kind: The type of build action.
        source: Source file path.
        target: Output file path.
        duration_ms: Time taken in milliseconds.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    kind: Literal["compose", "copy_asset", "remove_output"]
    source: str
    target: str
    duration_ms: float
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class BatchProcessed:
    """The watcher handed a batch of changes to the builder.

    Attributes:
        files: Number of change events in the batch.
        rebuilt: Number of pages rebuilt.
        copied: Number of assets copied.
        cancelled: True if a newer batch superseded this one.
        duration_ms: Wall-clock time for the batch.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    files: int
    rebuilt: int
    copied: int
    cancelled: bool
    duration_ms: float
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class BuildProfile:
    """Per-stage timing for one build.

    Attributes:
        trigger: What started the build (``"initial"`` or a file path).
        pages: Number of pages composed.
        discover_ms: Time spent discovering files and checking the cache.
        compose_ms: Time spent composing and writing pages.
        copy_ms: Time spent copying assets.
        track_ms: Time spent recording dependencies.
        persist_ms: Time spent writing the build cache.
        total_ms: End-to-end latency.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    trigger: str
    pages: int
    discover_ms: float
    compose_ms: float
    copy_ms: float
    track_ms: float
    persist_ms: float
    total_ms: float
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Union type
# ---------------------------------------------------------------------------

type StackEvent = (
    CompositionEvent
    | LayoutMissing
    | BuildEvent
    | BatchProcessed
    | BuildProfile
)


def now_ns() -> int:
    """Return the current monotonic clock value in nanoseconds."""
    return time.monotonic_ns()
