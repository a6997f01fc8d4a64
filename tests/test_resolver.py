"""Tests for unify.cascade.resolver — directive path resolution."""

from __future__ import annotations

import os

import pytest

from unify._errors import PathTraversalError
from unify.cascade.resolver import candidate_paths, is_short_name, resolve_reference

ROOT = os.path.abspath("/site/src")


def _exists(*paths: str):
    existing = {os.path.join(ROOT, p) for p in paths}
    return lambda candidate: candidate in existing


class TestShortNames:

    def test_short_name(self) -> None:
        assert is_short_name("blog")
        assert not is_short_name("blog.html")
        assert not is_short_name("layouts/blog")


class TestResolveReference:
    """Precedence of directive candidates."""

    def test_root_absolute(self) -> None:
        page = os.path.join(ROOT, "blog", "post.html")
        assert resolve_reference("/_base.html", page, ROOT, _exists()) == os.path.join(ROOT, "_base.html")

    def test_relative_to_referencing_file_first(self) -> None:
        page = os.path.join(ROOT, "blog", "post.html")
        exists = _exists("blog/_base.html", "_base.html")
        assert resolve_reference("_base.html", page, ROOT, exists) == os.path.join(ROOT, "blog", "_base.html")

    def test_relative_falls_back_to_root(self) -> None:
        page = os.path.join(ROOT, "blog", "post.html")
        exists = _exists("_base.html")
        assert resolve_reference("_base.html", page, ROOT, exists) == os.path.join(ROOT, "_base.html")

    def test_short_name_searches_upward(self) -> None:
        page = os.path.join(ROOT, "blog", "2024", "post.html")
        exists = _exists("blog/_post.html")
        assert resolve_reference("post", page, ROOT, exists) == os.path.join(ROOT, "blog", "_post.html")

    def test_short_name_layout_suffix(self) -> None:
        page = os.path.join(ROOT, "index.html")
        exists = _exists("_blog.layout.htm")
        assert resolve_reference("blog", page, ROOT, exists) == os.path.join(ROOT, "_blog.layout.htm")

    def test_short_name_includes_dir_last(self) -> None:
        page = os.path.join(ROOT, "docs", "index.html")
        exists = _exists("_includes/_layout.html")
        assert resolve_reference("layout", page, ROOT, exists) == os.path.join(ROOT, "_includes", "_layout.html")

    def test_custom_includes_dir(self) -> None:
        page = os.path.join(ROOT, "index.html")
        exists = _exists("_layouts/base.html")
        resolved = resolve_reference("base", page, ROOT, exists, includes_dir="_layouts")
        assert resolved == os.path.join(ROOT, "_layouts", "base.html")

    def test_missing_returns_first_candidate(self) -> None:
        page = os.path.join(ROOT, "index.html")
        assert resolve_reference("x.html", page, ROOT, _exists()) == os.path.join(ROOT, "x.html")

    def test_traversal_raises(self) -> None:
        page = os.path.join(ROOT, "index.html")
        with pytest.raises(PathTraversalError):
            resolve_reference("../../etc/passwd", page, ROOT, _exists())

    def test_escaping_candidate_discarded(self) -> None:
        page = os.path.join(ROOT, "blog", "post.html")
        # Local candidate stays inside; only the rooted one escapes.
        resolved = resolve_reference("../_base.html", page, ROOT, _exists("_base.html"))
        assert resolved == os.path.join(ROOT, "_base.html")


class TestCandidatePaths:

    def test_no_duplicates(self) -> None:
        page = os.path.join(ROOT, "index.html")
        candidates = candidate_paths("_base.html", page, ROOT)
        assert candidates == [os.path.join(ROOT, "_base.html")]

    def test_short_name_patterns(self) -> None:
        page = os.path.join(ROOT, "index.html")
        names = [os.path.basename(c) for c in candidate_paths("blog", page, ROOT)[:6]]
        assert names == [
            "blog.html", "blog.htm",
            "_blog.html", "_blog.htm",
            "_blog.layout.html", "_blog.layout.htm",
        ]
