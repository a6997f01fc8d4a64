"""Tests for unify.build.assets — writing, copying and removing output."""

from __future__ import annotations

from pathlib import Path

import pytest

from unify._errors import BuildError
from unify.build.assets import clean_output, copy_asset, remove_output, write_html


# ---------------------------------------------------------------------------
# Asset copying
# ---------------------------------------------------------------------------


class TestCopyAsset:
    """copy_asset — mirrored copy preserving directory structure."""

    def test_copies_to_mirrored_path(self, tmp_path: Path) -> None:
        src = tmp_path / "src"
        (src / "css").mkdir(parents=True)
        (src / "css" / "main.css").write_text("h1 { color: red; }")
        output = tmp_path / "dist"

        result = copy_asset(src / "css" / "main.css", src, output)

        assert (output / "css" / "main.css").read_text() == "h1 { color: red; }"
        assert result.output_path == output / "css" / "main.css"
        assert result.source_path == str(src / "css" / "main.css")
        assert result.source_type == "asset"
        assert result.size_bytes == len("h1 { color: red; }")
        assert result.duration_ms >= 0

    def test_overwrites_existing(self, tmp_path: Path) -> None:
        src = tmp_path / "src"
        src.mkdir()
        (src / "a.txt").write_text("new")
        output = tmp_path / "dist"
        output.mkdir()
        (output / "a.txt").write_text("old")

        copy_asset(src / "a.txt", src, output)

        assert (output / "a.txt").read_text() == "new"

    def test_missing_source_raises_build_error(self, tmp_path: Path) -> None:
        src = tmp_path / "src"
        src.mkdir()
        with pytest.raises(BuildError, match="Could not copy asset") as info:
            copy_asset(src / "gone.png", src, tmp_path / "dist")
        assert info.value.file_path == str(src / "gone.png")
        assert isinstance(info.value.__cause__, OSError)


# ---------------------------------------------------------------------------
# Page writing
# ---------------------------------------------------------------------------


class TestWriteHtml:

    def test_creates_parents(self, tmp_path: Path) -> None:
        target = tmp_path / "dist" / "about" / "index.html"
        size = write_html(target, "<p>é</p>")
        assert target.read_text(encoding="utf-8") == "<p>é</p>"
        assert size == len("<p>é</p>".encode())

    def test_unwritable_target_raises_build_error(self, tmp_path: Path) -> None:
        target = tmp_path / "dist" / "page.html"
        target.mkdir(parents=True)
        with pytest.raises(BuildError, match="Could not write"):
            write_html(target, "<p>x</p>")


# ---------------------------------------------------------------------------
# Removal and cleaning
# ---------------------------------------------------------------------------


class TestRemoveOutput:
    """remove_output — stale output cleanup."""

    def test_removes_file(self, tmp_path: Path) -> None:
        output = tmp_path / "dist"
        output.mkdir()
        (output / "a.html").write_text("x")
        assert remove_output(output / "a.html", output)
        assert not (output / "a.html").exists()
        assert output.exists()

    def test_missing_file_is_not_an_error(self, tmp_path: Path) -> None:
        assert remove_output(tmp_path / "dist" / "gone.html", tmp_path / "dist") is False

    def test_removes_empty_pretty_url_folder(self, tmp_path: Path) -> None:
        output = tmp_path / "dist"
        folder = output / "about"
        folder.mkdir(parents=True)
        (folder / "index.html").write_text("x")
        remove_output(folder / "index.html", output)
        assert not folder.exists()

    def test_keeps_non_empty_folder(self, tmp_path: Path) -> None:
        output = tmp_path / "dist"
        folder = output / "blog"
        folder.mkdir(parents=True)
        (folder / "a.html").write_text("x")
        (folder / "b.html").write_text("x")
        remove_output(folder / "a.html", output)
        assert (folder / "b.html").exists()


class TestCleanOutput:

    def test_empties_directory(self, tmp_path: Path) -> None:
        output = tmp_path / "dist"
        (output / "css").mkdir(parents=True)
        (output / "css" / "a.css").write_text("x")
        (output / "index.html").write_text("x")
        (output / ".unify-cache.json").write_text("{}")

        removed = clean_output(output, keep=(".unify-cache.json",))

        assert removed == 2
        assert sorted(p.name for p in output.iterdir()) == [".unify-cache.json"]

    def test_creates_missing_directory(self, tmp_path: Path) -> None:
        assert clean_output(tmp_path / "dist") == 0
        assert (tmp_path / "dist").is_dir()
