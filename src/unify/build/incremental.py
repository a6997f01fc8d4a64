"""Incremental builder: initial builds, selective rebuilds and watch batches.

The builder ties the composition engine, the dependency tracker and the
build cache together:

    initial build:
        load cache ──▶ discover ──▶ all unchanged? ──▶ done (zero writes)
                                         │ no
                                         ▼
        layout/fragment map ──▶ track fragments ──▶ compose pages
                 ──▶ copy assets ──▶ store digests ──▶ persist

    one changed file:
        layout/fragment ──▶ rebuild every page that reaches it
        page            ──▶ rebuild that page
        asset           ──▶ copy it

All public methods are coroutines.  They yield to the event loop between
files and stop early once their :class:`CancellationToken` is cancelled;
output already written is kept, since rebuilding a page is idempotent.
Failures are collected per file in the returned :class:`BuildResult` and
never abort sibling files.
"""

from __future__ import annotations

import asyncio
import sys
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from unify._errors import EXIT_SECURITY, BuildError
from unify.build.assets import OutputFile, clean_output, copy_asset, remove_output, write_html
from unify.build.cache import BuildCache
from unify.build.dependencies import STYLESHEET_SUFFIXES, DependencyTracker
from unify.cascade.composer import ComposeOptions, CompositionEngine
from unify.config import UnifyConfig
from unify.content.classifier import FileClassifier
from unify.content.links import output_path_for
from unify.content.watcher import IGNORED_DIRS

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from unify.content.security import SecurityWarning
    from unify.content.watcher import CancellationToken, ChangeEvent
    from unify.observability.collector import StackCollector
    from unify.observability.profiler import BuildProfiler


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BuildIssue:
    """A problem with one file during a build.

    Attributes:
        file_path: Source file the problem belongs to.
        message: Human-readable description.
        kind: ``recoverable`` problems still produced output; the others
            did not.

    """

    file_path: str
    message: str
    kind: Literal["recoverable", "filesystem", "composition", "security"]


@dataclass(frozen=True, slots=True)
class BuildResult:
    """Aggregate result of one build operation.

    Attributes:
        processed_files: Pages composed and written.
        copied_assets: Assets copied to the output.
        cache_hits: Files skipped because their digest matched the cache.
        cache_invalidations: Files whose digest changed or had no entry.
        cleaned_files: Output entries removed (clean builds, deletions).
        outputs: Every file written.
        issues: Per-file problems.
        security_warnings: Findings of the security scanner.
        cancelled: True when a cancellation token stopped the build early.
        duration_ms: Wall-clock time of the operation.
        error: Set when the build could not run at all.

    """

    processed_files: tuple[str, ...] = ()
    copied_assets: tuple[str, ...] = ()
    cache_hits: int = 0
    cache_invalidations: int = 0
    cleaned_files: int = 0
    outputs: tuple[OutputFile, ...] = ()
    issues: tuple[BuildIssue, ...] = ()
    security_warnings: tuple[SecurityWarning, ...] = ()
    cancelled: bool = False
    duration_ms: float = 0.0
    error: str | None = None

    @property
    def success(self) -> bool:
        """No fatal error and no file that failed to build."""
        return self.error is None and all(i.kind == "recoverable" for i in self.issues)


@dataclass(slots=True)
class _Progress:
    """Mutable accumulator behind a :class:`BuildResult`."""

    processed: list[str] = field(default_factory=list)
    copied: list[str] = field(default_factory=list)
    outputs: list[OutputFile] = field(default_factory=list)
    issues: list[BuildIssue] = field(default_factory=list)
    security_warnings: list[SecurityWarning] = field(default_factory=list)
    cache_hits: int = 0
    cache_invalidations: int = 0
    cleaned: int = 0
    cancelled: bool = False

    def issue(self, path: Path | str, message: str, kind: str) -> None:
        self.issues.append(BuildIssue(file_path=str(path), message=message, kind=kind))  # type: ignore[arg-type]

    def stopped(self, token: CancellationToken | None) -> bool:
        """Record and report cancellation."""
        if token is not None and token.is_cancelled:
            self.cancelled = True
        return self.cancelled

    def finish(self, t0: float, *, error: str | None = None) -> BuildResult:
        return BuildResult(
            processed_files=tuple(self.processed),
            copied_assets=tuple(self.copied),
            cache_hits=self.cache_hits,
            cache_invalidations=self.cache_invalidations,
            cleaned_files=self.cleaned,
            outputs=tuple(self.outputs),
            issues=tuple(self.issues),
            security_warnings=tuple(self.security_warnings),
            cancelled=self.cancelled,
            duration_ms=(time.perf_counter() - t0) * 1000,
            error=error,
        )


def _read(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'s' if count != 1 else ''}"


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


class IncrementalBuilder:
    """Builds a source tree and keeps the output current as files change.

    Args:
        config: Build settings; only the composition and cache settings are
            read, roots are passed per call.
        engine: Composition engine (one is created if omitted).
        tracker: Dependency tracker (one is created if omitted).
        collector: Optional event collector for observability.
        verbose: Print per-build summaries to stderr.

    """

    def __init__(
        self,
        config: UnifyConfig | None = None,
        *,
        engine: CompositionEngine | None = None,
        tracker: DependencyTracker | None = None,
        collector: StackCollector | None = None,
        verbose: bool = True,
    ) -> None:
        self._config = config or UnifyConfig()
        self._collector = collector
        self._verbose = verbose
        self._engine = engine or CompositionEngine(collector=collector)
        self._tracker = tracker or DependencyTracker(includes_dir=self._config.includes_dir)
        self._options = ComposeOptions(
            area_prefix=self._config.area_prefix,
            includes_dir=self._config.includes_dir,
            pretty_urls=self._config.pretty_urls,
            minify=self._config.minify,
        )
        self._cache: BuildCache | None = None
        self._source_root: Path = self._config.source_path
        self._output_root: Path = self._config.output_path

        self._profiler: BuildProfiler | None = None
        if collector is not None:
            from unify.observability.profiler import BuildProfiler

            self._profiler = BuildProfiler(collector.log, verbose=verbose)

    @property
    def engine(self) -> CompositionEngine:
        return self._engine

    @property
    def tracker(self) -> DependencyTracker:
        return self._tracker

    @property
    def cache(self) -> BuildCache:
        """The build cache for the current output root."""
        return self._cache_for(self._output_root)

    # ----- Initial build -----

    async def perform_initial_build(
        self,
        source_root: str | Path,
        output_root: str | Path,
        *,
        clean: bool = False,
        token: CancellationToken | None = None,
    ) -> BuildResult:
        """Build every page and asset under *source_root*.

        Files whose digests all match the cache short-circuit the build:
        dependencies are still tracked (for later incremental builds) but
        nothing is written.

        """
        t0 = time.perf_counter()
        progress = _Progress()
        source_root, output_root = self._bind(source_root, output_root)
        self._begin("initial")

        if not source_root.is_dir():
            return progress.finish(t0, error=f"Source directory not found: {source_root}")

        cache = self._cache_for(output_root)
        if clean:
            progress.cleaned = clean_output(output_root)
            cache.clear()
        cache.repair()

        with self._stage("discover"):
            files = self._discover(source_root, output_root)
            check = cache.check_multiple_files(files)
        progress.cache_hits = len(check.unchanged)
        progress.cache_invalidations = len(check.changed)

        classifier = FileClassifier(source_root, self._config.includes_dir)
        roles = {path: classifier.classify(path) for path in files}
        templates = [p for p in files if roles[p].is_layout or roles[p].is_fragment]
        pages = [p for p in files if roles[p].is_page]
        assets = [p for p in files if roles[p].is_asset]

        if files and check.all_unchanged:
            with self._stage("track"):
                for path in [*templates, *pages]:
                    content = _read(path)
                    if content is not None:
                        self._tracker.track_page_dependencies(
                            path, content, source_root, is_page=roles[path].is_page,
                        )
                for path in assets:
                    self._track_stylesheet(path, source_root)
            return self._complete(progress, t0, "Up to date:")

        # One in-memory map of every layout and fragment for this build
        self._engine.clear_cache()
        file_system: dict[str, str] = {}
        for path in templates:
            content = _read(path)
            if content is None:
                progress.issue(path, "Could not read file", "filesystem")
                continue
            file_system[str(path)] = content
        with self._stage("track"):
            for key, content in file_system.items():
                self._tracker.track_page_dependencies(key, content, source_root, is_page=False)
                cache.store_file_hash(key, content)
            for asset in assets:
                self._track_stylesheet(asset, source_root)

        for page in pages:
            await asyncio.sleep(0)
            if progress.stopped(token):
                break
            if self._build_page(page, source_root, output_root, progress, file_system):
                cache.store_file_hash(page)

        for asset in assets:
            await asyncio.sleep(0)
            if progress.stopped(token):
                break
            if roles[asset].should_copy or self._tracker.is_referenced(asset):
                if self._copy(asset, source_root, output_root, progress):
                    cache.store_file_hash(asset)
            else:
                # Every discovered file gets a digest, copied or not
                cache.store_file_hash(asset)

        self._persist(cache)
        return self._complete(progress, t0, "Built")

    # ----- Incremental builds -----

    async def perform_incremental_build(
        self,
        changed_file: str | Path,
        source_root: str | Path | None = None,
        output_root: str | Path | None = None,
        *,
        token: CancellationToken | None = None,
    ) -> BuildResult:
        """Rebuild what one modified file affects."""
        t0 = time.perf_counter()
        progress = _Progress()
        source_root, output_root = self._bind(source_root, output_root)
        self._begin(str(changed_file))
        await self._changed(Path(changed_file).resolve(), source_root, output_root, progress, token)
        self._persist(self._cache_for(output_root))
        return self._complete(progress, t0, "Rebuilt")

    async def handle_new_file(
        self,
        new_file: str | Path,
        source_root: str | Path | None = None,
        output_root: str | Path | None = None,
        *,
        token: CancellationToken | None = None,
    ) -> BuildResult:
        """Build a newly created file and anything that was waiting for it."""
        t0 = time.perf_counter()
        progress = _Progress()
        source_root, output_root = self._bind(source_root, output_root)
        self._begin(str(new_file))
        await self._added(Path(new_file).resolve(), source_root, output_root, progress, token)
        self._persist(self._cache_for(output_root))
        return self._complete(progress, t0, "Added")

    async def handle_deleted_files(
        self,
        deleted_files: Iterable[str | Path],
        source_root: str | Path | None = None,
        output_root: str | Path | None = None,
        *,
        token: CancellationToken | None = None,
    ) -> BuildResult:
        """Remove output of deleted files and rebuild the pages that used them."""
        t0 = time.perf_counter()
        progress = _Progress()
        source_root, output_root = self._bind(source_root, output_root)
        paths = [Path(p).resolve() for p in deleted_files]
        self._begin(_plural(len(paths), "deletion"))
        await self._deleted(paths, source_root, output_root, progress, token)
        self._persist(self._cache_for(output_root))
        return self._complete(progress, t0, "Removed")

    async def process_batch(
        self,
        batch: list[ChangeEvent],
        token: CancellationToken | None = None,
    ) -> BuildResult:
        """Watcher handler: apply a batch of changes in discovery order."""
        t0 = time.perf_counter()
        progress = _Progress()
        source_root, output_root = self._source_root, self._output_root
        self._begin(_plural(len(batch), "change"))

        for event in batch:
            if progress.stopped(token):
                break
            path = event.file_path.resolve()
            if event.is_deletion:
                await self._deleted([path], source_root, output_root, progress, token)
            elif event.is_addition:
                await self._added(path, source_root, output_root, progress, token)
            else:
                await self._changed(path, source_root, output_root, progress, token)

        self._persist(self._cache_for(output_root))
        result = self._complete(progress, t0, "Rebuilt")
        if self._collector is not None:
            self._collector.record_batch(
                files=len(batch),
                rebuilt=len(result.processed_files),
                copied=len(result.copied_assets),
                cancelled=result.cancelled,
                duration_ms=result.duration_ms,
            )
        return result

    # ----- Change routing -----

    async def _changed(
        self,
        path: Path,
        source_root: Path,
        output_root: Path,
        progress: _Progress,
        token: CancellationToken | None,
    ) -> None:
        if not path.is_file():
            await self._deleted([path], source_root, output_root, progress, token)
            return

        cache = self._cache_for(output_root)
        role = FileClassifier(source_root, self._config.includes_dir).classify(path)
        if role.is_asset:
            if not cache.has_file_changed(path):
                progress.cache_hits += 1
                return
            progress.cache_invalidations += 1
            self._track_stylesheet(path, source_root)
            if (role.should_copy or self._tracker.is_referenced(path)) and self._copy(
                path, source_root, output_root, progress,
            ):
                cache.store_file_hash(path)
            self._copy_referenced(path, source_root, output_root, progress)
            return

        content = _read(path)
        if content is None:
            progress.issue(path, "Could not read file", "filesystem")
            return
        if not cache.has_file_changed(path, content):
            progress.cache_hits += 1
            return
        progress.cache_invalidations += 1

        # Pages can serve as layouts too, so any HTML change drops the cached copy
        self._engine.invalidate(path)
        if role.is_page:
            if self._build_page(path, source_root, output_root, progress):
                cache.store_file_hash(path, content)
            self._copy_referenced(path, source_root, output_root, progress)
            return

        with self._stage("track"):
            self._tracker.track_page_dependencies(path, content, source_root, is_page=False)
        cache.store_file_hash(path, content)
        self._copy_referenced(path, source_root, output_root, progress)
        await self._rebuild(self._tracker.get_all_transitive_dependents(path), source_root, output_root, progress, token)

    async def _added(
        self,
        path: Path,
        source_root: Path,
        output_root: Path,
        progress: _Progress,
        token: CancellationToken | None,
    ) -> None:
        if not path.is_file():
            return

        cache = self._cache_for(output_root)
        role = FileClassifier(source_root, self._config.includes_dir).classify(path)
        progress.cache_invalidations += 1
        self._engine.invalidate(path)

        if role.is_asset:
            self._track_stylesheet(path, source_root)
            if (role.should_copy or self._tracker.is_referenced(path)) and self._copy(
                path, source_root, output_root, progress,
            ):
                cache.store_file_hash(path)
            self._copy_referenced(path, source_root, output_root, progress)
            return

        if role.is_page:
            if self._build_page(path, source_root, output_root, progress):
                cache.store_file_hash(path)
            # A page may also satisfy directives that were missing so far
            dependents = self._tracker.get_all_transitive_dependents(path)
        else:
            content = _read(path)
            if content is None:
                progress.issue(path, "Could not read file", "filesystem")
                return
            with self._stage("track"):
                self._tracker.track_page_dependencies(path, content, source_root, is_page=False)
            cache.store_file_hash(path, content)
            dependents = self._tracker.get_all_transitive_dependents(path)

        self._copy_referenced(path, source_root, output_root, progress)
        await self._rebuild(dependents, source_root, output_root, progress, token)

    async def _deleted(
        self,
        paths: list[Path],
        source_root: Path,
        output_root: Path,
        progress: _Progress,
        token: CancellationToken | None,
    ) -> None:
        dependents: set[str] = set()
        for path in paths:
            dependents |= self._tracker.get_all_transitive_dependents(path)

        cache = self._cache_for(output_root)
        classifier = FileClassifier(source_root, self._config.includes_dir)
        for path in paths:
            role = classifier.classify(path)
            self._tracker.remove_file(path)
            cache.remove(path)
            self._engine.invalidate(path)

            if role.is_layout or role.is_fragment:
                continue
            pretty = self._config.pretty_urls and role.is_page
            try:
                target = output_path_for(path, source_root, output_root, pretty_urls=pretty)
            except ValueError:
                continue
            try:
                removed = remove_output(target, output_root)
            except OSError as exc:
                progress.issue(path, f"Could not remove {target}: {exc}", "filesystem")
                continue
            if removed:
                progress.cleaned += 1
                if self._collector is not None:
                    self._collector.record_build("remove_output", str(path), str(target))

        gone = {str(p) for p in paths}
        survivors = {d for d in dependents - gone if Path(d).is_file()}
        await self._rebuild(survivors, source_root, output_root, progress, token)

    async def _rebuild(
        self,
        pages: Iterable[str],
        source_root: Path,
        output_root: Path,
        progress: _Progress,
        token: CancellationToken | None,
    ) -> None:
        cache = self._cache_for(output_root)
        for page in sorted(pages):
            await asyncio.sleep(0)
            if progress.stopped(token):
                return
            path = Path(page)
            if self._build_page(path, source_root, output_root, progress):
                cache.store_file_hash(path)

    # ----- Per-file work -----

    def _build_page(
        self,
        path: Path,
        source_root: Path,
        output_root: Path,
        progress: _Progress,
        file_system: dict[str, str] | None = None,
    ) -> bool:
        """Compose, write and track one page.  Returns True when written."""
        try:
            return self._write_page(path, source_root, output_root, progress, file_system)
        except Exception as exc:
            # Failures stay local to the page
            progress.issue(path, f"Unexpected failure: {type(exc).__name__}: {exc}", "composition")
            print(f"  Error: {path.name}: {type(exc).__name__}: {exc}", file=sys.stderr)
            return False

    def _write_page(
        self,
        path: Path,
        source_root: Path,
        output_root: Path,
        progress: _Progress,
        file_system: dict[str, str] | None,
    ) -> bool:
        t0 = time.perf_counter()
        html = _read(path)
        if html is None:
            progress.issue(path, "Could not read file", "filesystem")
            return False

        with self._stage("compose"):
            result = self._engine.compose(path, html, file_system, source_root, self._options)
        with self._stage("track"):
            self._tracker.track_page_dependencies(path, html, source_root, is_page=True)

        for message in result.recoverable_errors:
            progress.issue(path, message, "recoverable")
        progress.security_warnings.extend(result.security_warnings)
        for warning in result.security_warnings:
            self._say(f"  Security warning: {path.name}:{warning.line}: {warning.message}")

        if not result.success:
            kind = "security" if result.exit_code == EXIT_SECURITY else "composition"
            progress.issue(path, str(result.error), kind)
            print(f"  Error: {path.relative_to(source_root)}: {result.error}", file=sys.stderr)
            return False

        target = output_path_for(path, source_root, output_root, pretty_urls=self._config.pretty_urls)
        with self._stage("compose"):
            try:
                size = write_html(target, result.html)
            except BuildError as exc:
                progress.issue(path, str(exc), "filesystem")
                return False

        elapsed = (time.perf_counter() - t0) * 1000
        progress.processed.append(str(path))
        progress.outputs.append(OutputFile(
            source_path=str(path),
            output_path=target,
            source_type="page",
            size_bytes=size,
            duration_ms=elapsed,
        ))
        if self._collector is not None:
            self._collector.record_build("compose", str(path), str(target), duration_ms=elapsed)
        return True

    def _copy(self, path: Path, source_root: Path, output_root: Path, progress: _Progress) -> bool:
        with self._stage("copy"):
            try:
                copied = copy_asset(path, source_root, output_root)
            except BuildError as exc:
                progress.issue(path, str(exc), "filesystem")
                return False
        progress.copied.append(str(path))
        progress.outputs.append(copied)
        if self._collector is not None:
            self._collector.record_build(
                "copy_asset", str(path), str(copied.output_path), duration_ms=copied.duration_ms,
            )
        return True

    def _track_stylesheet(self, path: Path, source_root: Path) -> None:
        if path.suffix.lower() not in STYLESHEET_SUFFIXES:
            return
        content = _read(path)
        if content is not None:
            self._tracker.track_stylesheet(path, content, source_root)

    def _copy_referenced(self, path: Path, source_root: Path, output_root: Path, progress: _Progress) -> None:
        """Copy private assets that *path* references but the output lacks."""
        classifier = FileClassifier(source_root, self._config.includes_dir)
        cache = self._cache_for(output_root)
        for dependency in sorted(self._tracker.get_dependencies(path)):
            asset = Path(dependency)
            role = classifier.classify(asset)
            if not role.is_asset or role.should_copy or not asset.is_file():
                continue
            if output_path_for(asset, source_root, output_root).exists():
                continue
            if self._copy(asset, source_root, output_root, progress):
                cache.store_file_hash(asset)

    # ----- Helpers -----

    def _bind(self, source_root: str | Path | None, output_root: str | Path | None) -> tuple[Path, Path]:
        """Resolve roots, remembering them for watcher batches."""
        if source_root is not None:
            self._source_root = Path(source_root).resolve()
        if output_root is not None:
            self._output_root = Path(output_root).resolve()
        return self._source_root, self._output_root

    def _cache_for(self, output_root: Path) -> BuildCache:
        cache_file = Path(self._config.cache_file)
        path = cache_file if cache_file.is_absolute() else output_root / cache_file
        if self._cache is None or self._cache.path != path:
            self._cache = BuildCache(path)
            self._cache.load_from_disk()
        return self._cache

    def _discover(self, source_root: Path, output_root: Path) -> list[Path]:
        classifier = FileClassifier(source_root, self._config.includes_dir)
        files: list[Path] = []
        for path in sorted(source_root.rglob("*")):
            if not path.is_file() or classifier.is_hidden(path):
                continue
            if output_root == path or output_root in path.parents:
                continue
            if any(part in IGNORED_DIRS for part in path.relative_to(source_root).parts):
                continue
            files.append(path)
        return files

    def _persist(self, cache: BuildCache) -> None:
        with self._stage("persist"):
            cache.persist_to_disk()

    @contextmanager
    def _stage(self, name: str) -> Iterator[None]:
        if self._profiler is None:
            yield
            return
        self._profiler.start(name)
        try:
            yield
        finally:
            self._profiler.stop(name)

    def _begin(self, trigger: str) -> None:
        if self._profiler is not None:
            self._profiler.begin(trigger)

    def _complete(self, progress: _Progress, t0: float, verb: str) -> BuildResult:
        result = progress.finish(t0)
        if self._profiler is not None:
            self._profiler.finish(pages=len(result.processed_files))
        self._print_summary(result, verb)
        return result

    def _print_summary(self, result: BuildResult, verb: str) -> None:
        parts = [_plural(len(result.processed_files), "page")]
        if result.copied_assets:
            parts.append(f"copied {_plural(len(result.copied_assets), 'asset')}")
        if result.cleaned_files:
            parts.append(f"removed {_plural(result.cleaned_files, 'file')}")
        failed = sum(1 for i in result.issues if i.kind != "recoverable")
        if failed:
            parts.append(f"{failed} failed")
        if result.cancelled:
            parts.append("cancelled")
        self._say(f"  {verb} {', '.join(parts)} ({result.duration_ms:.0f}ms)")

    def _say(self, message: str) -> None:
        if self._verbose:
            print(message, file=sys.stderr)
