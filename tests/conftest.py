"""Shared test fixtures for unify."""

from __future__ import annotations

from pathlib import Path

import pytest

LAYOUT = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>Site</title>
  <link rel="stylesheet" href="/css/site.css">
</head>
<body class="site">
  <header class="unify-header"><h1>Site</h1></header>
  <main class="unify-content"><p>Default content</p></main>
  <footer>Footer</footer>
</body>
</html>
"""


@pytest.fixture
def tmp_project(tmp_path: Path) -> Path:
    """Create a minimal unify project for testing.

    Returns the project root.  Sources live in ``src/``: a shared layout in
    ``_includes/``, a nav component, two pages using the layout, one plain
    page, a stylesheet, and a private asset under ``_assets/``.
    """
    src = tmp_path / "src"
    (src / "_includes").mkdir(parents=True)
    (src / "_components").mkdir()
    (src / "css").mkdir()
    (src / "_assets").mkdir()

    (src / "_includes" / "_layout.html").write_text(LAYOUT)
    (src / "_components" / "nav.html").write_text(
        '<nav class="site-nav"><a href="/index.html">Home</a></nav>\n'
    )
    (src / "index.html").write_text(
        '<body data-unify="layout">\n'
        '  <header class="unify-header"><div data-unify="/_components/nav.html"></div></header>\n'
        '  <main class="unify-content"><p>Welcome home</p></main>\n'
        "</body>\n"
    )
    (src / "about.html").write_text(
        "<html>\n"
        '<head><title>About</title></head>\n'
        '<body data-unify="layout">\n'
        '  <main class="unify-content"><p>About us</p></main>\n'
        "</body>\n"
        "</html>\n"
    )
    (src / "plain.html").write_text("<p>No layout here</p>\n")
    (src / "css" / "site.css").write_text("body { margin: 0; }\n")
    (src / "_assets" / "logo.svg").write_text("<svg></svg>\n")

    return tmp_path


@pytest.fixture
def source_root(tmp_project: Path) -> Path:
    """The ``src/`` directory of :func:`tmp_project`."""
    return tmp_project / "src"
