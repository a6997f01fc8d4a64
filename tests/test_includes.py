"""Tests for unify.content.includes — server-side include expansion."""

from __future__ import annotations

from pathlib import Path

import pytest

from unify._errors import PathTraversalError
from unify.content.includes import MAX_INCLUDE_DEPTH, find_include_targets, process_includes


@pytest.fixture
def site(tmp_path: Path) -> Path:
    root = tmp_path / "src"
    (root / "_partials").mkdir(parents=True)
    (root / "blog").mkdir()
    (root / "_partials" / "note.html").write_text("<aside>Note</aside>")
    (root / "_partials" / "outer.html").write_text('<div><!--#include file="note.html" --></div>')
    return root


class TestProcessIncludes:
    """File and virtual includes, nesting and failure modes."""

    def test_no_includes(self, site: Path) -> None:
        result = process_includes("<p>x</p>", str(site / "index.html"), site)
        assert result.success
        assert result.content == "<p>x</p>"
        assert result.includes_processed == 0

    def test_file_include_relative(self, site: Path) -> None:
        result = process_includes(
            '<body><!--#include file="_partials/note.html" --></body>',
            str(site / "index.html"),
            site,
        )
        assert result.content == "<body><aside>Note</aside></body>"
        assert result.includes_processed == 1
        assert result.dependencies == [str(site / "_partials" / "note.html")]

    def test_virtual_include_from_root(self, site: Path) -> None:
        result = process_includes(
            "<!--#include virtual='/_partials/note.html'-->",
            str(site / "blog" / "post.html"),
            site,
        )
        assert result.content == "<aside>Note</aside>"

    def test_nested(self, site: Path) -> None:
        result = process_includes(
            '<!--#include virtual="/_partials/outer.html" -->',
            str(site / "index.html"),
            site,
        )
        assert result.content == "<div><aside>Note</aside></div>"
        assert result.includes_processed == 2
        assert len(result.dependencies) == 2

    def test_missing_include_warns(self, site: Path) -> None:
        result = process_includes('<!--#include file="gone.html" -->', str(site / "index.html"), site)
        assert not result.success
        assert "WARNING" in result.content
        assert result.warnings == [f"Include not found: gone.html in {site / 'index.html'}"]

    def test_circular_include(self, site: Path) -> None:
        (site / "_partials" / "loop.html").write_text('<!--#include file="loop.html" -->')
        result = process_includes(
            '<!--#include virtual="/_partials/loop.html" -->',
            str(site / "index.html"),
            site,
        )
        assert not result.success
        assert any("Circular include" in w for w in result.warnings)

    def test_depth_limit(self, site: Path) -> None:
        for i in range(MAX_INCLUDE_DEPTH + 2):
            (site / "_partials" / f"d{i}.html").write_text(f'<!--#include file="d{i + 1}.html" -->')
        result = process_includes(
            '<!--#include virtual="/_partials/d0.html" -->',
            str(site / "index.html"),
            site,
        )
        assert not result.success
        assert any("depth exceeded" in w for w in result.warnings)

    def test_include_element(self, site: Path) -> None:
        result = process_includes(
            '<body><include src="/_partials/note.html"></include></body>',
            str(site / "blog" / "post.html"),
            site,
        )
        assert result.success
        assert result.content == "<body><aside>Note</aside></body>"
        assert result.dependencies == [str(site / "_partials" / "note.html")]

    def test_include_element_relative_and_self_closing(self, site: Path) -> None:
        result = process_includes(
            '<include src="note.html" /><INCLUDE class="x" src=\'outer.html\'>ignored</INCLUDE>',
            str(site / "_partials" / "page.html"),
            site,
        )
        assert result.content == "<aside>Note</aside><div><aside>Note</aside></div>"
        assert result.includes_processed == 3

    def test_include_element_inside_partial(self, site: Path) -> None:
        (site / "_partials" / "card.html").write_text('<section><include src="note.html"></include></section>')
        result = process_includes(
            '<!--#include virtual="/_partials/card.html" -->',
            str(site / "index.html"),
            site,
        )
        assert result.content == "<section><aside>Note</aside></section>"

    def test_circular_include_element(self, site: Path) -> None:
        (site / "_partials" / "self.html").write_text('<include src="/_partials/self.html"></include>')
        result = process_includes('<include src="/_partials/self.html"></include>', str(site / "index.html"), site)
        assert not result.success
        assert any("Circular include" in w for w in result.warnings)

    def test_missing_include_element_warns(self, site: Path) -> None:
        result = process_includes('<include src="gone.html"></include>', str(site / "index.html"), site)
        assert not result.success
        assert "<include" not in result.content
        assert result.warnings == [f"Include not found: gone.html in {site / 'index.html'}"]

    def test_nul_byte_raises(self, site: Path) -> None:
        with pytest.raises(PathTraversalError):
            process_includes('<include src="a\x00b.html"></include>', str(site / "index.html"), site)

    def test_traversal_raises(self, site: Path) -> None:
        with pytest.raises(PathTraversalError):
            process_includes('<!--#include file="../../etc/passwd" -->', str(site / "index.html"), site)

    def test_custom_loader(self, site: Path) -> None:
        files = {str(site / "mem.html"): "<b>memory</b>"}
        result = process_includes(
            '<!--#include file="mem.html" -->',
            str(site / "index.html"),
            site,
            loader=files.get,
        )
        assert result.content == "<b>memory</b>"


class TestFindIncludeTargets:

    def test_targets_without_reading(self, site: Path) -> None:
        html = '<!--#include file="a.html" --><!--#include virtual="/b.html" --><!--#include file="a.html" -->'
        targets = find_include_targets(html, str(site / "blog" / "post.html"), site)
        assert targets == [str(site / "blog" / "a.html"), str(site / "b.html")]

    def test_include_element_targets(self, site: Path) -> None:
        html = '<include src="a.html"></include><include src="/b.html" />'
        targets = find_include_targets(html, str(site / "blog" / "post.html"), site)
        assert targets == [str(site / "blog" / "a.html"), str(site / "b.html")]

    def test_escaping_targets_skipped(self, site: Path) -> None:
        assert find_include_targets('<!--#include file="../../x.html" -->', str(site / "index.html"), site) == []
