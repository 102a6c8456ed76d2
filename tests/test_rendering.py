"""
Unit tests for ViewRenderer.
"""

import pytest

from procedure_app.program.demo import NOT_YET_PRESSED
from procedure_app.web import ViewRenderer


@pytest.fixture
def renderer():
    return ViewRenderer()


class TestRegions:
    def test_text_region(self, renderer):
        assert renderer.render_region("on-type", "You pressed Z!!!") == "You pressed Z!!!"

    def test_text_region_is_escaped(self, renderer):
        html = renderer.render_region("port-message", "Thanks for the message: <b>hi</b>")

        assert html == "Thanks for the message: &lt;b&gt;hi&lt;/b&gt;"

    def test_list_region_renders_items(self, renderer):
        html = renderer.render_region("save-messages", ["You saved a word: a", "<x>"])

        assert html == "<li>You saved a word: a</li><li>&lt;x&gt;</li>"

    def test_empty_list_region(self, renderer):
        assert renderer.render_region("save-messages", []) == ""

    def test_region_without_macro_is_escaped(self, renderer):
        assert renderer.render_region("status-line", "a & b") == "a &amp; b"
        assert renderer.render_region("status-line", None) == ""

    def test_render_regions(self, renderer):
        regions = renderer.render_regions({"on-type": "x", "save-messages": ["y"]})

        assert regions == {"on-type": "x", "save-messages": "<li>y</li>"}


class TestPage:
    def test_page_contains_session_and_regions(self, renderer):
        html = renderer.render_page(
            "20260101-abc",
            {"on-type": NOT_YET_PRESSED, "port-message": "", "save-messages": ["saved"]},
        )

        assert 'data-session="20260101-abc"' in html
        assert NOT_YET_PRESSED in html
        assert "<li>saved</li>" in html
        assert "&lt;li&gt;" not in html
        for selector in (
            "data-on-type",
            "data-port-input",
            "data-port-async-submit",
            "data-port-sync-submit",
            "data-word-save",
            "data-number-save",
            "data-port-message",
            "data-save-messages",
        ):
            assert selector in html

    def test_custom_title(self, renderer):
        html = renderer.render_page("s", {}, title="Demo")

        assert "<title>Demo</title>" in html
