"""Build profiler: per-stage timing for initial and incremental builds.

Records how long each build spent discovering files, composing pages,
copying assets, tracking dependencies and persisting the cache, then emits
a ``BuildProfile`` event to the ``EventLog``.

Thread Safety:
    A profiler belongs to one builder on the event loop (single writer).
    Aggregate queries go through the ``EventLog`` lock.

"""

from __future__ import annotations

import sys
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from unify.observability.events import BuildProfile, now_ns

if TYPE_CHECKING:
    from unify.observability.log import EventLog

STAGES = ("discover", "compose", "copy", "track", "persist")


@dataclass(slots=True)
class _Timer:
    """Accumulates timing for a named build stage.

    A stage may be entered several times per build (once per file); the
    elapsed time adds up.

    """

    name: str
    _start: float = 0.0
    elapsed_ms: float = 0.0

    def start(self) -> None:
        self._start = time.perf_counter()

    def stop(self) -> None:
        if self._start > 0:
            self.elapsed_ms += (time.perf_counter() - self._start) * 1000
            self._start = 0.0


class BuildProfiler:
    """Records per-stage timing for a single build.

    Usage::

        profiler = BuildProfiler(event_log)

        profiler.begin("initial")
        profiler.start("discover")
        # ... walk the source tree ...
        profiler.stop("discover")
        profiler.finish(pages=12)

    After ``finish()``, a ``BuildProfile`` event is appended to the log
    and, when verbose, a one-line summary is printed to stderr.

    """

    __slots__ = ("_log", "_t0", "_timers", "_trigger", "_verbose")

    def __init__(self, log: EventLog, *, verbose: bool = True) -> None:
        self._log = log
        self._verbose = verbose
        self._trigger = ""
        self._t0 = 0.0
        self._timers = {name: _Timer(name=name) for name in STAGES}

    def begin(self, trigger: str) -> None:
        """Start profiling a new build."""
        self._trigger = trigger
        self._t0 = time.perf_counter()
        for timer in self._timers.values():
            timer.elapsed_ms = 0.0

    def start(self, stage: str) -> None:
        timer = self._timers.get(stage)
        if timer is not None:
            timer.start()

    def stop(self, stage: str) -> None:
        timer = self._timers.get(stage)
        if timer is not None:
            timer.stop()

    def finish(self, *, pages: int = 0) -> BuildProfile:
        """Finish profiling and emit the ``BuildProfile`` event.

        Returns the profile for inspection.

        """
        total_ms = (time.perf_counter() - self._t0) * 1000 if self._t0 > 0 else 0.0

        profile = BuildProfile(
            trigger=self._trigger,
            pages=pages,
            discover_ms=self._timers["discover"].elapsed_ms,
            compose_ms=self._timers["compose"].elapsed_ms,
            copy_ms=self._timers["copy"].elapsed_ms,
            track_ms=self._timers["track"].elapsed_ms,
            persist_ms=self._timers["persist"].elapsed_ms,
            total_ms=total_ms,
            timestamp_ns=now_ns(),
        )

        self._log.append(profile)

        if self._verbose:
            self._print_summary(profile)

        return profile

    def _print_summary(self, p: BuildProfile) -> None:
        name = p.trigger.replace("\\", "/").rsplit("/", 1)[-1]
        pages = "page" if p.pages == 1 else "pages"
        stages = ", ".join(
            f"{stage}: {getattr(p, f'{stage}_ms'):.0f}ms" for stage in STAGES
        )
        print(f"  [{p.total_ms:.0f}ms] {name} -> {p.pages} {pages} ({stages})", file=sys.stderr)


def compute_aggregate_stats(log: EventLog, *, limit: int = 100) -> dict:
    """Latency statistics over recent ``BuildProfile`` events.

    Returns a dict with p50/p95/p99 totals and per-stage averages.

    """
    profiles = log.query(event_type=BuildProfile, limit=limit)
    if not profiles:
        return {"count": 0}

    totals = sorted(p.total_ms for p in profiles)
    count = len(totals)

    def percentile(data: list[float], pct: float) -> float:
        idx = int(len(data) * pct / 100)
        return data[min(idx, len(data) - 1)]

    return {
        "count": count,
        "total_ms": {
            "p50": round(percentile(totals, 50), 1),
            "p95": round(percentile(totals, 95), 1),
            "p99": round(percentile(totals, 99), 1),
            "min": round(totals[0], 1),
            "max": round(totals[-1], 1),
        },
        "avg_by_stage_ms": {
            stage: round(sum(getattr(p, f"{stage}_ms") for p in profiles) / count, 1)
            for stage in STAGES
        },
    }
