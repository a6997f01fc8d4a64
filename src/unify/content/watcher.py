"""File watcher: debounced, cancellable change batches for the builder.

watchfiles runs in a background thread and posts every raw change onto the
asyncio loop with ``call_soon_threadsafe``.  On the loop side:

- temp files, editor droppings, ignored directories and the output
  directory are dropped;
- each change is classified as ``add``, ``change`` or ``unlink``, with an
  existence check settling rename-like events;
- pending changes are coalesced by path (the latest event wins, discovery
  order is kept);
- one restartable timer fires ``debounce_ms`` after the last change.

When the timer fires the pending changes become one batch, a fresh
:class:`CancellationToken` is minted, the previous token is cancelled, and
the handler runs as a task with ``(batch, token)``.
"""

from __future__ import annotations

import asyncio
import sys
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from watchfiles import Change

from unify._errors import BuildCancelled

if TYPE_CHECKING:
    from unify._types import BatchHandler, ChangeKind

TEMP_SUFFIXES = (".tmp", ".temp", "~", ".swp", ".swo", ".orig", ".bak")
TEMP_NAMES = frozenset({"4913", ".DS_Store", "Thumbs.db"})
IGNORED_DIRS = frozenset({"node_modules", ".git", ".cache"})

# Mapping from watchfiles Change enum to our event kinds.
_CHANGE_KIND_MAP: dict[Change, ChangeKind] = {
    Change.added: "add",
    Change.modified: "change",
    Change.deleted: "unlink",
}


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """A file change handed to the builder.

    Attributes:
        event_type: ``add``, ``change`` or ``unlink``.
        file_path: Absolute path of the changed file.
        timestamp: Wall-clock time the change was seen.

    """

    event_type: ChangeKind
    file_path: Path
    timestamp: float = field(default_factory=time.time)

    @property
    def is_addition(self) -> bool:
        return self.event_type == "add"

    @property
    def is_deletion(self) -> bool:
        return self.event_type == "unlink"

    @property
    def requires_cleanup(self) -> bool:
        """Whether output mirrored from this file must be removed."""
        return self.is_deletion


class CancellationToken:
    """Cooperative cancellation flag shared between the watcher and a build."""

    __slots__ = ("_cancelled",)

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        """Raise :class:`BuildCancelled` once the token has been cancelled."""
        if self._cancelled:
            raise BuildCancelled("Build superseded by newer changes")


def is_temp_file(path: Path) -> bool:
    """Editor swap files, backups and OS metadata files."""
    name = path.name
    return name in TEMP_NAMES or name.startswith(".#") or name.endswith(TEMP_SUFFIXES)


class FileWatcher:
    """Watches a source tree and hands debounced change batches to a handler.

    Args:
        root: Directory to watch recursively.
        handler: ``async handler(batch, token)``, usually
            ``IncrementalBuilder.process_batch``.
        debounce_ms: Quiet period before a batch is dispatched.
        output_dir: Directory whose changes are ignored (build output).
        ignore_dirs: Directory names ignored anywhere in the tree.

    """

    def __init__(
        self,
        root: Path,
        handler: BatchHandler,
        *,
        debounce_ms: int = 100,
        output_dir: Path | None = None,
        ignore_dirs: frozenset[str] = IGNORED_DIRS,
    ) -> None:
        self._root = Path(root).resolve()
        self._handler = handler
        self._debounce = debounce_ms / 1000
        self._output_dir = Path(output_dir).resolve() if output_dir is not None else None
        self._ignore_dirs = ignore_dirs

        self._loop: asyncio.AbstractEventLoop | None = None
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

        self._pending: dict[Path, ChangeEvent] = {}
        self._timer: asyncio.TimerHandle | None = None
        self._token: CancellationToken | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self.batches_dispatched = 0

    @property
    def is_running(self) -> bool:
        """Whether the watcher background thread is active."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def pending(self) -> tuple[ChangeEvent, ...]:
        """Changes waiting for the debounce timer, in discovery order."""
        return tuple(self._pending.values())

    @property
    def active_token(self) -> CancellationToken | None:
        return self._token

    # ----- Lifecycle -----

    def start(self) -> None:
        """Start watching.  Must be called from the event loop's thread."""
        if self.is_running:
            return

        self._loop = asyncio.get_running_loop()
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._watch_loop,
            args=(self._loop,),
            name="unify-watcher",
            daemon=True,
        )
        self._thread.start()

    def stop_watching(self) -> None:
        """Cancel in-flight work, drop pending changes and stop the thread."""
        if self._token is not None:
            self._token.cancel()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending.clear()

        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5.0)
            self._thread = None

    async def wait_idle(self) -> None:
        """Wait until every dispatched batch has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ----- Event intake (loop thread) -----

    def record_change(self, change: Change | ChangeKind, path: str | Path) -> ChangeEvent | None:
        """Classify one raw change and queue it for the next batch.

        Returns the queued event, or None when the path is ignored.

        """
        file_path = Path(path).resolve()
        if self.is_ignored(file_path):
            return None

        kind: ChangeKind = _CHANGE_KIND_MAP.get(change, "change") if isinstance(change, Change) else change
        exists = file_path.exists()
        if kind == "unlink" and exists:
            kind = "change"
        elif kind != "unlink" and not exists:
            kind = "unlink"
        if file_path.is_dir():
            return None

        event = ChangeEvent(event_type=kind, file_path=file_path)
        self._pending[file_path] = event
        self._restart_timer()
        return event

    def is_ignored(self, path: Path) -> bool:
        if is_temp_file(path):
            return True
        try:
            rel = path.relative_to(self._root)
        except ValueError:
            return True
        if any(part in self._ignore_dirs for part in rel.parts):
            return True
        if self._output_dir is not None:
            return path == self._output_dir or self._output_dir in path.parents
        return False

    def _restart_timer(self) -> None:
        loop = self._loop or asyncio.get_running_loop()
        self._loop = loop
        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(self._debounce, self._flush)

    def _flush(self) -> None:
        """Timer callback: turn pending changes into a batch and dispatch it."""
        self._timer = None
        if not self._pending:
            return

        batch = list(self._pending.values())
        self._pending.clear()

        token = CancellationToken()
        previous, self._token = self._token, token
        if previous is not None:
            previous.cancel()

        loop = self._loop or asyncio.get_running_loop()
        task = loop.create_task(self._dispatch(batch, token))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self.batches_dispatched += 1

    async def _dispatch(self, batch: list[ChangeEvent], token: CancellationToken) -> None:
        try:
            # A newer batch may have been flushed before this task started
            token.raise_if_cancelled()
            await self._handler(batch, token)
        except BuildCancelled:
            pass
        except Exception as exc:
            print(f"  Watch handler error: {exc}", file=sys.stderr)

    # ----- Background thread -----

    def _watch_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Background thread: run watchfiles and post raw changes to the loop."""
        from watchfiles import watch

        for raw_changes in watch(
            self._root,
            stop_event=self._stop_event,
            debounce=50,
            step=50,
            watch_filter=None,
        ):
            for change, path_str in raw_changes:
                try:
                    loop.call_soon_threadsafe(self.record_change, change, path_str)
                except RuntimeError:
                    # Loop closed underneath us
                    return
