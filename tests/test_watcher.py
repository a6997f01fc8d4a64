"""Tests for unify.content.watcher — change intake, debouncing and cancellation."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from watchfiles import Change

from unify._errors import BuildCancelled
from unify.content.watcher import CancellationToken, ChangeEvent, FileWatcher, is_temp_file


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def root(tmp_path: Path) -> Path:
    src = tmp_path.resolve() / "src"
    src.mkdir()
    return src


@pytest.fixture
def page(root: Path) -> Path:
    path = root / "index.html"
    path.write_text("<p>x</p>")
    return path


def _watcher(root: Path, handler: object, **kwargs: object) -> FileWatcher:
    return FileWatcher(root, handler, debounce_ms=20, **kwargs)  # type: ignore[arg-type]


async def _settle(watcher: FileWatcher) -> None:
    """Wait past the debounce window and for dispatched batches to finish."""
    await asyncio.sleep(0.1)
    await watcher.wait_idle()


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------


class TestChangeEvent:
    """Verify ChangeEvent is frozen and well-behaved."""

    def test_frozen(self) -> None:
        event = ChangeEvent(event_type="change", file_path=Path("/a.html"))
        with pytest.raises(AttributeError):
            event.event_type = "add"  # type: ignore[misc]

    def test_kind_properties(self) -> None:
        added = ChangeEvent(event_type="add", file_path=Path("/a.html"))
        removed = ChangeEvent(event_type="unlink", file_path=Path("/a.html"))
        changed = ChangeEvent(event_type="change", file_path=Path("/a.html"))
        assert added.is_addition and not added.is_deletion
        assert removed.is_deletion and removed.requires_cleanup
        assert not changed.is_addition and not changed.requires_cleanup

    def test_timestamp_defaults(self) -> None:
        assert ChangeEvent(event_type="add", file_path=Path("/a")).timestamp > 0


class TestCancellationToken:

    def test_starts_active(self) -> None:
        token = CancellationToken()
        assert not token.is_cancelled
        token.raise_if_cancelled()

    def test_cancel(self) -> None:
        token = CancellationToken()
        token.cancel()
        assert token.is_cancelled
        with pytest.raises(BuildCancelled):
            token.raise_if_cancelled()


@pytest.mark.parametrize(("name", "expected"), [
    ("index.html", False),
    ("site.css", False),
    ("index.html~", True),
    ("index.html.swp", True),
    (".index.html.swo", True),
    ("page.tmp", True),
    ("4913", True),
    (".DS_Store", True),
    (".#index.html", True),
    ("notes.bak", True),
])
def test_is_temp_file(name: str, expected: bool) -> None:
    assert is_temp_file(Path("/src") / name) is expected


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------


class TestIsIgnored:
    """Paths that never reach the builder."""

    def test_regular_file(self, root: Path) -> None:
        assert not _watcher(root, AsyncMock()).is_ignored(root / "index.html")

    def test_temp_file(self, root: Path) -> None:
        assert _watcher(root, AsyncMock()).is_ignored(root / "index.html.swp")

    def test_outside_root(self, root: Path) -> None:
        assert _watcher(root, AsyncMock()).is_ignored(root.parent / "elsewhere.html")

    def test_ignored_directories(self, root: Path) -> None:
        watcher = _watcher(root, AsyncMock())
        assert watcher.is_ignored(root / "node_modules" / "pkg" / "index.js")
        assert watcher.is_ignored(root / ".git" / "HEAD")

    def test_output_directory(self, root: Path) -> None:
        watcher = _watcher(root, AsyncMock(), output_dir=root / "dist")
        assert watcher.is_ignored(root / "dist" / "index.html")
        assert watcher.is_ignored(root / "dist")
        assert not watcher.is_ignored(root / "distance.html")


# ---------------------------------------------------------------------------
# Event intake
# ---------------------------------------------------------------------------


class TestRecordChange:
    """Classification, existence correction and coalescing."""

    @pytest.mark.asyncio
    async def test_watchfiles_change_mapped(self, root: Path, page: Path) -> None:
        watcher = _watcher(root, AsyncMock())
        event = watcher.record_change(Change.added, page)
        assert event is not None
        assert event.event_type == "add"
        watcher.stop_watching()

    @pytest.mark.asyncio
    async def test_unlink_of_existing_file_is_change(self, root: Path, page: Path) -> None:
        watcher = _watcher(root, AsyncMock())
        event = watcher.record_change("unlink", page)
        assert event is not None and event.event_type == "change"
        watcher.stop_watching()

    @pytest.mark.asyncio
    async def test_change_of_missing_file_is_unlink(self, root: Path) -> None:
        watcher = _watcher(root, AsyncMock())
        event = watcher.record_change(Change.modified, root / "gone.html")
        assert event is not None and event.event_type == "unlink"
        watcher.stop_watching()

    @pytest.mark.asyncio
    async def test_ignored_and_directories_dropped(self, root: Path) -> None:
        watcher = _watcher(root, AsyncMock())
        (root / "blog").mkdir()
        assert watcher.record_change("change", root / "a.html.swp") is None
        assert watcher.record_change("add", root / "blog") is None
        assert watcher.pending == ()

    @pytest.mark.asyncio
    async def test_rapid_edits_coalesce(self, root: Path, page: Path) -> None:
        handler = AsyncMock()
        watcher = _watcher(root, handler)

        for _ in range(5):
            watcher.record_change("change", page)
        assert len(watcher.pending) == 1

        await _settle(watcher)

        handler.assert_awaited_once()
        batch, token = handler.await_args.args
        assert [e.file_path for e in batch] == [page]
        assert isinstance(token, CancellationToken)
        assert watcher.batches_dispatched == 1

    @pytest.mark.asyncio
    async def test_latest_event_wins_in_discovery_order(self, root: Path, page: Path) -> None:
        other = root / "about.html"
        other.write_text("x")
        handler = AsyncMock()
        watcher = _watcher(root, handler)

        watcher.record_change("add", page)
        watcher.record_change("change", other)
        watcher.record_change("change", page)

        await _settle(watcher)

        batch, _ = handler.await_args.args
        assert [(e.file_path, e.event_type) for e in batch] == [(page, "change"), (other, "change")]


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


class TestDispatch:
    """Batches, tokens and handler failures."""

    @pytest.mark.asyncio
    async def test_new_batch_cancels_previous(self, root: Path, page: Path) -> None:
        tokens: list[CancellationToken] = []
        started = asyncio.Event()
        release = asyncio.Event()

        async def handler(batch: list[ChangeEvent], token: CancellationToken) -> None:
            tokens.append(token)
            started.set()
            await release.wait()

        watcher = _watcher(root, handler)
        watcher.record_change("change", page)
        await asyncio.wait_for(started.wait(), timeout=2)

        watcher.record_change("change", page)
        await asyncio.sleep(0.1)

        assert len(tokens) == 2
        assert tokens[0].is_cancelled
        assert not tokens[1].is_cancelled
        assert watcher.active_token is tokens[1]

        release.set()
        await watcher.wait_idle()

    @pytest.mark.asyncio
    async def test_handler_error_reported(
        self, root: Path, page: Path, capsys: pytest.CaptureFixture[str],
    ) -> None:
        watcher = _watcher(root, AsyncMock(side_effect=RuntimeError("boom")))
        watcher.record_change("change", page)
        await _settle(watcher)
        assert "Watch handler error: boom" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_cancelled_handler_is_silent(
        self, root: Path, page: Path, capsys: pytest.CaptureFixture[str],
    ) -> None:
        watcher = _watcher(root, AsyncMock(side_effect=BuildCancelled("superseded")))
        watcher.record_change("change", page)
        await _settle(watcher)
        assert capsys.readouterr().err == ""

    @pytest.mark.asyncio
    async def test_superseded_batch_never_reaches_handler(self, root: Path, page: Path) -> None:
        handler = AsyncMock()
        watcher = _watcher(root, handler)
        watcher.record_change("change", page)
        watcher._flush()
        watcher.record_change("change", page)
        watcher._flush()
        await watcher.wait_idle()

        assert handler.await_count == 1
        assert handler.await_args.args[1] is watcher.active_token
        watcher.stop_watching()

    @pytest.mark.asyncio
    async def test_stop_drops_pending_and_cancels(self, root: Path, page: Path) -> None:
        handler = AsyncMock()
        watcher = _watcher(root, handler)
        watcher.record_change("change", page)

        watcher.stop_watching()
        await asyncio.sleep(0.1)

        assert watcher.pending == ()
        handler.assert_not_awaited()


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_start_and_stop(self, root: Path) -> None:
        watcher = _watcher(root, AsyncMock())
        watcher.start()
        assert watcher.is_running
        watcher.stop_watching()
        assert not watcher.is_running
