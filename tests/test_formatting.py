"""Tests for inline bold/italic formatting."""

from competitor_watcher.formatting import (
    TextRun,
    format_inline,
    plain_text,
    runs_to_markup,
    sanitize_html,
)


class TestFormatInline:
    """Splitting fragments into styled runs."""

    def test_bold(self):
        assert format_inline("<strong>x</strong>") == [TextRun("x", bold=True)]

    def test_b_and_i_aliases(self):
        assert format_inline("<b>a</b><i>b</i>") == [
            TextRun("a", bold=True),
            TextRun("b", italic=True),
        ]

    def test_nesting_combines_styles(self):
        assert format_inline("<strong>a<em>b</em></strong>c") == [
            TextRun("a", bold=True),
            TextRun("b", bold=True, italic=True),
            TextRun("c"),
        ]

    def test_unclosed_tag_runs_to_end(self):
        assert format_inline("plain <b>bold forever") == [
            TextRun("plain "),
            TextRun("bold forever", bold=True),
        ]

    def test_stray_closing_tag_ignored(self):
        assert format_inline("a</b>b") == [TextRun("ab")]

    def test_attributes_on_style_tags(self):
        assert format_inline('<strong class="x" style="color:red">hi</strong>') == [TextRun("hi", bold=True)]

    def test_unknown_tags_kept_literally(self):
        assert plain_text('<a href="https://example.com">link</a>') == "<a>link</a>"

    def test_entities_unescaped(self):
        assert format_inline("Fish &amp; Chips &lt;3") == [TextRun("Fish & Chips <3")]

    def test_line_break(self):
        assert format_inline("one<br/>two") == [TextRun("one\ntwo")]

    def test_empty(self):
        assert format_inline("") == []
        assert format_inline(None) == []

    def test_adjacent_runs_with_same_style_merge(self):
        assert format_inline("<b>a</b><strong>b</strong>") == [TextRun("ab", bold=True)]


class TestRunsToMarkup:
    def test_text_is_escaped(self):
        assert runs_to_markup([TextRun("<x> & y", bold=True)]) == "<b>&lt;x&gt; &amp; y</b>"

    def test_bold_wraps_italic(self):
        assert runs_to_markup([TextRun("t", bold=True, italic=True)]) == "<b><i>t</i></b>"

    def test_newlines(self):
        assert runs_to_markup([TextRun("a\nb")]) == "a<br>b"

    def test_html_survives_round_trip_only_as_text(self):
        markup = runs_to_markup(format_inline('<script>alert("x")</script> <b>ok</b>'))
        assert "<script>" not in markup
        assert "&lt;script&gt;" in markup
        assert markup.endswith("<b>ok</b>")


class TestSanitizeHtml:
    def test_drops_scripts_attributes_and_unknown_tags(self):
        text = '<div class="x"><p onclick="y">Hi <a href="z">there</a></p><script>bad()</script></div>'
        assert sanitize_html(text) == "<p>Hi there</p>"

    def test_keeps_structure(self):
        text = "<h2>Market Trends</h2><ul><li><strong>Delivery</strong></li></ul>"
        assert sanitize_html(text) == text

    def test_markdown_is_rendered(self):
        assert sanitize_html("**bold**") == "<p><strong>bold</strong></p>"

    def test_empty(self):
        assert sanitize_html(None) == ""
