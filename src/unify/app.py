"""Unify application entry points.

The two public functions (build, watch) load configuration, run the
incremental builder and report to stderr.  Both return a process exit code
instead of raising so the CLI can hand it straight to ``sys.exit``.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from unify._errors import EXIT_ERROR, EXIT_OK, EXIT_SECURITY, ConfigError
from unify.config_loader import load_config

if TYPE_CHECKING:
    from unify.build.incremental import BuildResult, IncrementalBuilder
    from unify.config import UnifyConfig


def _create_builder(config: UnifyConfig) -> IncrementalBuilder:
    """Create an IncrementalBuilder wired to a fresh StackCollector."""
    from unify.build.incremental import IncrementalBuilder
    from unify.observability.collector import StackCollector

    return IncrementalBuilder(config, collector=StackCollector())


def _exit_code(result: BuildResult) -> int:
    """Map a build result to a process exit code."""
    if result.error is not None:
        return EXIT_ERROR
    if any(issue.kind == "security" for issue in result.issues):
        return EXIT_SECURITY
    if not result.success:
        return EXIT_ERROR
    return EXIT_OK


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------


def build(root: str | Path = ".", **kwargs: object) -> int:
    """Compose every page under the source directory into the output directory.

    Pages whose sources are unchanged since the last build are skipped via
    the content-hash cache stored in the output directory.

    Args:
        root: Path to the project root directory.
        **kwargs: Override UnifyConfig fields.

    Returns:
        Process exit code: 0 on success, 2 when a page failed a security
        check, 1 for any other failure.

    """
    from unify.banner import print_banner, print_build_summary

    try:
        config = load_config(Path(root), **kwargs)
    except ConfigError as exc:
        print(f"  Error: {exc}", file=sys.stderr)
        return exc.exit_code

    print_banner(config, mode="build")
    builder = _create_builder(config)
    result = asyncio.run(
        builder.perform_initial_build(config.source_path, config.output_path, clean=config.clean),
    )
    print_build_summary(result, config)
    return _exit_code(result)


def watch(root: str | Path = ".", **kwargs: object) -> int:
    """Build once, then rebuild affected pages as source files change.

    Runs until interrupted with Ctrl-C.  Changes are debounced into batches;
    a new batch cancels the one still being built.

    Args:
        root: Path to the project root directory.
        **kwargs: Override UnifyConfig fields.

    Returns:
        Exit code of the initial build when it could not run, otherwise 0.

    """
    from unify.banner import print_banner, print_build_summary

    try:
        config = load_config(Path(root), **kwargs)
    except ConfigError as exc:
        print(f"  Error: {exc}", file=sys.stderr)
        return exc.exit_code

    print_banner(config, mode="watch")
    builder = _create_builder(config)

    async def _run() -> int:
        from unify.content.watcher import FileWatcher

        result = await builder.perform_initial_build(
            config.source_path, config.output_path, clean=config.clean,
        )
        print_build_summary(result, config)
        if result.error is not None:
            return EXIT_ERROR

        watcher = FileWatcher(
            config.source_path,
            builder.process_batch,
            debounce_ms=config.debounce_ms,
            output_dir=config.output_path,
        )
        watcher.start()
        print(f"  Watching {config.source_path} for changes (Ctrl-C to stop)", file=sys.stderr)
        try:
            # Sleeps until the task is cancelled by asyncio.run on Ctrl-C
            await asyncio.Event().wait()
        finally:
            watcher.stop_watching()
        return EXIT_OK

    try:
        return asyncio.run(_run())
    except KeyboardInterrupt:
        print("\n  Stopped watching", file=sys.stderr)
        return EXIT_OK
