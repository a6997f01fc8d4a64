"""Tests for unify.cascade.areas — area and landmark matching."""

from __future__ import annotations

from unify.cascade.areas import (
    area_class,
    match_areas,
    match_landmarks,
    wrap_loose_content,
)
from unify.html.dom import Element, parse_document, serialize


# ---------------------------------------------------------------------------
# match_areas
# ---------------------------------------------------------------------------


class TestMatchAreas:
    """Class-based area matching."""

    def test_matches_by_identical_class(self) -> None:
        layout = parse_document('<main class="unify-content">L</main><aside class="unify-side">S</aside>')
        page = parse_document('<div class="unify-content">P</div>')
        matches = match_areas(layout, page)
        assert len(matches) == 1
        assert matches[0].target_class == "unify-content"
        assert matches[0].layout_element.tag == "main"
        assert matches[0].combined_content == "P"

    def test_unmatched_area_left_out(self) -> None:
        layout = parse_document('<div class="unify-side">S</div>')
        page = parse_document('<div class="unify-content">P</div>')
        assert match_areas(layout, page) == []

    def test_first_page_element_wins(self) -> None:
        layout = parse_document('<div class="unify-content">L</div>')
        page = parse_document(
            '<div class="unify-content">first</div><div class="unify-content">second</div>'
        )
        [match] = match_areas(layout, page)
        assert len(match.page_elements) == 2
        assert match.source.inner_html == "first"
        assert match.combined_content == "first"

    def test_custom_prefix(self) -> None:
        layout = parse_document('<div class="slot-main unify-content">L</div>')
        page = parse_document('<div class="slot-main">P</div>')
        [match] = match_areas(layout, page, prefix="slot-")
        assert match.target_class == "slot-main"

    def test_prefix_must_match_exactly(self) -> None:
        layout = parse_document('<div class="unify-content">L</div>')
        page = parse_document('<div class="unify-contents">P</div>')
        assert match_areas(layout, page) == []

    def test_area_class_first_prefixed(self) -> None:
        element = Element(tag="div", attrs={"class": "wide unify-a unify-b"})
        assert area_class(element, "unify-") == "unify-a"
        assert area_class(Element(tag="div"), "unify-") is None


# ---------------------------------------------------------------------------
# match_landmarks
# ---------------------------------------------------------------------------


class TestMatchLandmarks:
    """Tag-identity landmark fallback."""

    def test_pairs_by_tag(self) -> None:
        layout = parse_document("<header>LH</header><main>LM</main><footer>LF</footer>")
        page = parse_document("<header>PH</header><footer>PF</footer>")
        matches = match_landmarks(layout, page)
        assert [m.tag for m in matches] == ["header", "footer"]
        assert matches[0].page_element.inner_html == "PH"

    def test_first_of_each_tag(self) -> None:
        layout = parse_document("<nav>A</nav><nav>B</nav>")
        page = parse_document("<nav>1</nav><nav>2</nav>")
        [match] = match_landmarks(layout, page)
        assert match.layout_element.inner_html == "A"
        assert match.page_element.inner_html == "1"

    def test_exclude_main(self) -> None:
        layout = parse_document("<main>L</main><aside>LA</aside>")
        page = parse_document("<main>P</main><aside>PA</aside>")
        tags = [m.tag for m in match_landmarks(layout, page, include_main=False)]
        assert tags == ["aside"]

    def test_area_landmarks_skipped(self) -> None:
        layout = parse_document('<header class="unify-header">L</header>')
        page = parse_document("<header>P</header>")
        assert match_landmarks(layout, page) == []


# ---------------------------------------------------------------------------
# wrap_loose_content
# ---------------------------------------------------------------------------


class TestWrapLooseContent:
    """Plain pages fill the content area."""

    def test_wraps_plain_content(self) -> None:
        page = parse_document("<body><h1>Hi</h1><p>x</p></body>")
        wrapper = wrap_loose_content(page)
        assert wrapper is not None
        assert wrapper.has_class("unify-content")
        assert serialize(page) == '<body><div class="unify-content"><h1>Hi</h1><p>x</p></div></body>'

    def test_existing_content_area(self) -> None:
        page = parse_document('<body><div class="unify-content">x</div></body>')
        assert wrap_loose_content(page) is None

    def test_landmark_page_untouched(self) -> None:
        page = parse_document("<body><main>x</main></body>")
        assert wrap_loose_content(page) is None

    def test_skips_area_elements(self) -> None:
        page = parse_document('<body><div class="unify-hero">H</div><p>loose</p></body>')
        wrapper = wrap_loose_content(page)
        assert wrapper is not None
        assert wrapper.inner_html == "<p>loose</p>"
        assert page.find("div") is not None
        assert page.find("div").has_class("unify-hero")  # type: ignore[union-attr]

    def test_whitespace_only(self) -> None:
        page = parse_document("<body>\n  \n</body>")
        assert wrap_loose_content(page) is None
