"""Stack collector: the one write path into the event log.

The composition engine, the incremental builder and the watcher each hold
an optional collector and call its ``record_*`` methods.  Nothing is
recorded when no collector is configured.

Thread Safety:
    The collector delegates to ``EventLog`` which is internally locked.

"""

from __future__ import annotations

from unify.observability.events import (
    BatchProcessed,
    BuildEvent,
    CompositionEvent,
    LayoutMissing,
    now_ns,
)
from unify.observability.log import EventLog


class StackCollector:
    """Event collector shared by the build components.

    Args:
        log: The EventLog to store events in.

    """

    __slots__ = ("_log",)

    def __init__(self, log: EventLog | None = None) -> None:
        self._log = log if log is not None else EventLog()

    @property
    def log(self) -> EventLog:
        """The underlying event log."""
        return self._log

    # ----- Composition -----

    def record_composition(
        self,
        path: str,
        *,
        success: bool,
        layouts: int = 0,
        recoverable: int = 0,
        duration_ms: float = 0.0,
    ) -> None:
        self._log.append(
            CompositionEvent(
                path=path,
                success=success,
                layouts=layouts,
                recoverable=recoverable,
                duration_ms=duration_ms,
                timestamp_ns=now_ns(),
            )
        )

    def record_layout_missing(self, path: str, referenced_by: str) -> None:
        """Record a missing layout or component (once per unique path)."""
        self._log.append(LayoutMissing(path=path, referenced_by=referenced_by, timestamp_ns=now_ns()))

    # ----- Build events -----

    def record_build(
        self,
        kind: str,
        source: str,
        target: str,
        *,
        duration_ms: float = 0.0,
    ) -> None:
        """Record an output write, asset copy or output removal."""
        self._log.append(
            BuildEvent(
                kind=kind,  # type: ignore[arg-type]
                source=source,
                target=target,
                duration_ms=duration_ms,
                timestamp_ns=now_ns(),
            )
        )

    def record_batch(
        self,
        *,
        files: int,
        rebuilt: int = 0,
        copied: int = 0,
        cancelled: bool = False,
        duration_ms: float = 0.0,
    ) -> None:
        """Record one watcher batch handed to the builder."""
        self._log.append(
            BatchProcessed(
                files=files,
                rebuilt=rebuilt,
                copied=copied,
                cancelled=cancelled,
                duration_ms=duration_ms,
                timestamp_ns=now_ns(),
            )
        )
