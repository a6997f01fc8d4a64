"""Unify CLI — unify build / unify watch.

Entry point for the ``unify`` command-line interface.
"""

from __future__ import annotations

import argparse
import sys


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("root", nargs="?", default=".", help="Project root directory")
    parser.add_argument("--source", dest="source_dir", default=None, help="Source directory (relative to root)")
    parser.add_argument("--output", default=None, help="Output directory")
    parser.add_argument(
        "--pretty-urls", action="store_true", default=None,
        help="Write about.html as about/index.html and rewrite links",
    )
    parser.add_argument(
        "--minify", action="store_true", default=None, help="Collapse whitespace in output HTML",
    )
    parser.add_argument(
        "--clean", action="store_true", default=None, help="Empty the output directory first",
    )


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the unify CLI."""
    parser = argparse.ArgumentParser(
        prog="unify",
        description="Compose static HTML pages from layouts, areas and components.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # unify build
    build_parser = subparsers.add_parser(
        "build",
        help="Build the site into the output directory",
    )
    _add_common_arguments(build_parser)

    # unify watch
    watch_parser = subparsers.add_parser(
        "watch",
        help="Build, then rebuild affected pages on every change",
    )
    _add_common_arguments(watch_parser)
    watch_parser.add_argument(
        "--debounce", dest="debounce_ms", type=int, default=None,
        help="Quiet period in milliseconds before a batch is built",
    )

    return parser


def _get_version() -> str:
    """Get the package version."""
    from unify import __version__

    return __version__


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    from unify.app import build, watch

    overrides = {
        "source_dir": args.source_dir,
        "output": args.output,
        "pretty_urls": args.pretty_urls,
        "minify": args.minify,
        "clean": args.clean,
    }
    if args.command == "build":
        sys.exit(build(root=args.root, **overrides))
    elif args.command == "watch":
        sys.exit(watch(root=args.root, debounce_ms=args.debounce_ms, **overrides))


if __name__ == "__main__":
    main()
