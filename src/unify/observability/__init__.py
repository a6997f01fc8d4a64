"""Build observability: one event model for composition, builds and watching.

Aggregates events from:
- **Composition**: per-page outcomes and missing layouts
- **Builds**: output writes, asset copies, removals and stage timing
- **Watching**: batches handed from the watcher to the builder

All events are frozen dataclasses with monotonic nanosecond timestamps.

Quick Start:
    >>> from unify.observability import StackCollector, EventLog
    >>> log = EventLog()
    >>> collector = StackCollector(log)
    >>> # Pass collector to CompositionEngine and IncrementalBuilder

"""

from unify.observability.collector import StackCollector
from unify.observability.events import (
    BatchProcessed,
    BuildEvent,
    BuildProfile,
    CompositionEvent,
    LayoutMissing,
    StackEvent,
    now_ns,
)
from unify.observability.log import EventLog
from unify.observability.profiler import BuildProfiler, compute_aggregate_stats

__all__ = [
    "BatchProcessed",
    "BuildEvent",
    "BuildProfile",
    "BuildProfiler",
    "CompositionEvent",
    "EventLog",
    "LayoutMissing",
    "StackCollector",
    "StackEvent",
    "compute_aggregate_stats",
    "now_ns",
]
