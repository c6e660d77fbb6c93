"""Unit tests for HTML to plain text normalization."""

import pytest

from gmail_calendar_mcp.gmail.html import decode_entities, strip_html


@pytest.mark.unit
class TestStripHtml:
    """Tests for strip_html()."""

    def test_should_return_empty_string_for_empty_input(self) -> None:
        """Verify empty markup yields empty text."""
        assert strip_html("") == ""

    def test_should_drop_script_and_style_content(self) -> None:
        """Verify script and style bodies never surface as text."""
        html = "<style>p { color: red }</style><p>Hello</p><script>alert('x')</script>"
        assert strip_html(html) == "Hello"

    def test_should_drop_everything_after_unclosed_script(self) -> None:
        """Verify an unclosed script tag swallows the rest of the document."""
        assert strip_html("<p>Visible</p><script>var secret = 1;<p>Hidden</p>") == "Visible"

    def test_should_drop_comments(self) -> None:
        """Verify HTML comments are removed."""
        assert strip_html("<p>Hi<!-- tracking pixel --> there</p>") == "Hi there"

    def test_should_turn_breaks_and_block_ends_into_newlines(self) -> None:
        """Verify <br> and closing block tags become line breaks."""
        html = "<div>Line one<br>Line two</div><p>Paragraph</p><ul><li>a</li><li>b</li></ul>"
        assert strip_html(html) == "Line one\nLine two\nParagraph\na\nb"

    def test_should_collapse_runs_of_blank_lines(self) -> None:
        """Verify three or more newlines collapse to one blank line."""
        assert strip_html("<p>One</p><br><br><br><br><p>Two</p>") == "One\n\nTwo"

    def test_should_decode_entities_after_removing_tags(self) -> None:
        """Verify escaped markup becomes literal text, not tags."""
        assert strip_html("<p>5 &lt; 6 &amp;&amp; 7 &gt; 3</p>") == "5 < 6 && 7 > 3"

    def test_should_round_trip_composed_html(self) -> None:
        """Verify rendered paragraphs come back as their text."""
        html = '<p style="margin:0">Hello<br>World</p>\n<p style="margin:0">Bye</p>'
        assert strip_html(html) == "Hello\nWorld\n\nBye"


@pytest.mark.unit
class TestDecodeEntities:
    """Tests for decode_entities()."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("&quot;quoted&quot;", '"quoted"'),
            ("it&apos;s", "it's"),
            ("a&nbsp;b", "a b"),
            ("&mdash;&hellip;&trade;", "—…™"),
            ("&#65;&#x42;&#X43;", "ABC"),
            ("&#128512;", "\U0001f600"),
        ],
    )
    def test_should_decode_known_entities(self, text: str, expected: str) -> None:
        """Verify named and numeric references are decoded."""
        assert decode_entities(text) == expected

    def test_should_decode_in_a_single_pass(self) -> None:
        """Verify an escaped entity is not decoded twice."""
        assert decode_entities("&amp;lt;script&amp;gt;") == "&lt;script&gt;"

    def test_should_keep_unknown_named_entities(self) -> None:
        """Verify unknown names are left verbatim."""
        assert decode_entities("&bogus; &amp;") == "&bogus; &"

    @pytest.mark.parametrize("text", ["&#0;", "&#xD800;", "&#x110000;", "&#55296;"])
    def test_should_keep_invalid_code_points(self, text: str) -> None:
        """Verify surrogates, NUL and out-of-range references are not decoded."""
        assert decode_entities(text) == text
