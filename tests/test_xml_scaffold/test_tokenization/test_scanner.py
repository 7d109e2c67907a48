"""Tests for the position-based scanner.

Covers the priority order of constructs, quote-aware tag termination,
attribute extraction and the unterminated-construct fallbacks.
"""

import pytest

from xml_scaffold.shared.config import ScannerConfig
from xml_scaffold.tokenization import (
    NodeRole,
    SourceLocator,
    TokenPosition,
    XMLAttribute,
    find_tag_end,
    parse_attributes,
    scan,
)


class TestTextRuns:
    """Test scanning of character data."""

    def test_text_up_to_next_tag(self):
        """Text stops right before the next '<'."""
        token = scan("hello<a>", 0)
        assert token.role is NodeRole.TEXT_LEAF
        assert token.raw == "hello"
        assert token.start == 0
        assert token.end == 5

    def test_text_to_end_of_input(self):
        token = scan("<a>tail text", 3)
        assert token.raw == "tail text"
        assert token.end == len("<a>tail text")

    def test_whitespace_run_is_flagged(self):
        token = scan("<a>  \n\t<b>", 3)
        assert token.role is NodeRole.TEXT_LEAF
        assert token.is_whitespace is True

    def test_text_with_content_is_not_whitespace(self):
        assert scan("  x  ", 0).is_whitespace is False

    def test_scan_at_end_returns_empty_text(self):
        """Scanning at or past the end never raises."""
        token = scan("<a>", 3)
        assert token.role is NodeRole.TEXT_LEAF
        assert token.raw == ""
        assert token.end == 3

        assert scan("<a>", 10).raw == ""


class TestTags:
    """Test open, self-closing and close tag classification."""

    def test_quoted_gt_does_not_end_tag(self):
        """A '>' inside a quoted attribute value is opaque."""
        token = scan('<el attr="a>b">text</el>', 0)
        assert token.role is NodeRole.OPEN_TAG
        assert token.raw == '<el attr="a>b">'
        assert token.end == 15
        assert token.tag == "el"
        assert token.attributes == [XMLAttribute("attr", "a>b")]
        assert token.malformed is False

    def test_single_quoted_gt(self):
        token = scan("<el attr='>'>", 0)
        assert token.raw == "<el attr='>'>"
        assert token.attributes == [XMLAttribute("attr", ">")]

    def test_inner_preserves_whitespace(self):
        source = '<item\n\tid="1"  kind="x">'
        token = scan(source, 0)
        assert token.tag == "item"
        assert token.inner == '\n\tid="1"  kind="x"'

    def test_close_tag(self):
        token = scan("</a >", 0)
        assert token.role is NodeRole.CLOSE_TAG
        assert token.tag == "a"
        assert token.attributes is None
        assert token.inner is None

    def test_close_tag_with_space_after_slash(self):
        token = scan("</ b>", 0)
        assert token.role is NodeRole.CLOSE_TAG
        assert token.tag == "b"

    def test_self_closing_tag(self):
        token = scan("<br/>", 0)
        assert token.role is NodeRole.SELF_TAG
        assert token.tag == "br"
        assert token.inner is None
        assert token.attributes == []

    def test_self_closing_tag_with_attributes(self):
        token = scan('<img src="x.png" />', 0)
        assert token.role is NodeRole.SELF_TAG
        assert token.tag == "img"
        assert token.attributes == [XMLAttribute("src", "x.png")]
        assert token.inner == ' src="x.png" '

    def test_namespace_prefix_is_kept(self):
        token = scan('<env:Envelope xmlns:env="urn:x">', 0)
        assert token.tag == "env:Envelope"
        assert token.attributes == [XMLAttribute("xmlns:env", "urn:x")]

    def test_unterminated_tag_is_malformed(self):
        """Without a closing '>' the tag consumes the rest of the input."""
        token = scan('<div class="a"', 0)
        assert token.role is NodeRole.OPEN_TAG
        assert token.malformed is True
        assert token.raw == '<div class="a"'
        assert token.end == len('<div class="a"')
        assert token.tag == "div"
        assert token.attributes == []

    def test_unclosed_quote_hides_gt(self):
        token = scan('<a href="x>y', 0)
        assert token.malformed is True
        assert token.tag == "a"

    def test_features_can_be_disabled(self):
        config = ScannerConfig(parse_attributes=False, capture_inner=False)
        token = scan('<a x="1">', 0, config)
        assert token.tag == "a"
        assert token.attributes == []
        assert token.inner is None


class TestSpecialConstructs:
    """Test processing instructions, comments, CDATA and doctypes."""

    def test_processing_instruction(self):
        source = '<?xml version="1.0"?><r/>'
        token = scan(source, 0)
        assert token.role is NodeRole.PROCESSING_INSTRUCTION
        assert token.raw == '<?xml version="1.0"?>'
        assert token.end == 21
        assert token.target == "xml"
        assert token.attributes == [XMLAttribute("version", "1.0")]

    def test_unterminated_processing_instruction_is_not_malformed(self):
        token = scan("<?xml version", 0)
        assert token.role is NodeRole.PROCESSING_INSTRUCTION
        assert token.raw == "<?xml version"
        assert token.malformed is False
        assert token.end == len("<?xml version")

    def test_comment(self):
        token = scan("<!-- c -->x", 0)
        assert token.role is NodeRole.COMMENT
        assert token.raw == "<!-- c -->"
        assert token.end == 10

    def test_comment_hides_markup(self):
        token = scan("<!-- <a> -->", 0)
        assert token.role is NodeRole.COMMENT
        assert token.raw == "<!-- <a> -->"

    def test_unterminated_comment_is_not_malformed(self):
        token = scan("<!-- never closed <a>", 0)
        assert token.role is NodeRole.COMMENT
        assert token.raw == "<!-- never closed <a>"
        assert token.malformed is False

    def test_cdata_is_opaque_text(self):
        token = scan("<![CDATA[x < y && y > z]]></root>", 0)
        assert token.role is NodeRole.TEXT_LEAF
        assert token.is_cdata is True
        assert token.raw == "<![CDATA[x < y && y > z]]>"

    def test_unterminated_cdata(self):
        token = scan("<![CDATA[abc", 0)
        assert token.role is NodeRole.TEXT_LEAF
        assert token.raw == "<![CDATA[abc"
        assert token.malformed is False

    def test_doctype(self):
        token = scan("<!DOCTYPE html><html/>", 0)
        assert token.role is NodeRole.DOCTYPE
        assert token.raw == "<!DOCTYPE html>"

    def test_doctype_keyword_case_insensitive(self):
        assert scan("<!doctype html>", 0).role is NodeRole.DOCTYPE

    def test_doctype_internal_subset(self):
        """A '[' before the first '>' extends the doctype to the closing ']>'."""
        source = "<!DOCTYPE note [<!ELEMENT note (#PCDATA)>]><note/>"
        token = scan(source, 0)
        assert token.role is NodeRole.DOCTYPE
        assert token.raw == "<!DOCTYPE note [<!ELEMENT note (#PCDATA)>]>"

    def test_doctype_subset_needs_adjacent_close(self):
        """Whitespace between ']' and '>' does not end the internal subset."""
        source = "<!DOCTYPE r [<!ENTITY a 'x'>] ><r/>"
        token = scan(source, 0)
        assert token.role is NodeRole.DOCTYPE
        assert token.raw == source
        assert token.end == len(source)
        assert token.malformed is False

    def test_unterminated_doctype(self):
        token = scan("<!DOCTYPE html", 0)
        assert token.role is NodeRole.DOCTYPE
        assert token.raw == "<!DOCTYPE html"
        assert token.malformed is False


class TestAttributes:
    """Test best-effort attribute extraction."""

    def test_both_quote_styles(self):
        attrs = parse_attributes(""" a="1" b='2'""")
        assert attrs == [XMLAttribute("a", "1"), XMLAttribute("b", "2")]

    def test_whitespace_around_equals(self):
        assert parse_attributes('a = "1"') == [XMLAttribute("a", "1")]

    def test_duplicates_are_kept_in_order(self):
        attrs = parse_attributes("""x="1" x='2'""")
        assert [a.value for a in attrs] == ["1", "2"]

    def test_unquoted_values_are_skipped(self):
        assert parse_attributes('x=1 y="2"') == [XMLAttribute("y", "2")]

    def test_value_may_contain_other_quote(self):
        assert parse_attributes("""t='say "hi"'""") == [XMLAttribute("t", 'say "hi"')]

    def test_empty_text(self):
        assert parse_attributes("") == []


class TestHelpers:
    """Test tag-end search and offset location."""

    def test_find_tag_end_skips_quotes(self):
        assert find_tag_end('a="x>y">', 0) == 7

    def test_find_tag_end_missing(self):
        assert find_tag_end("abc", 0) == -1
        assert find_tag_end('a="x>', 0) == -1

    def test_locator(self):
        locator = SourceLocator("ab\ncd\n")
        assert locator.locate(0).to_dict() == {"line": 1, "column": 1, "offset": 0}
        assert locator.locate(3).to_dict() == {"line": 2, "column": 1, "offset": 3}
        assert locator.locate(4).column == 2

    def test_position_validation(self):
        with pytest.raises(ValueError):
            TokenPosition(line=0, column=1, offset=0)
        with pytest.raises(ValueError):
            TokenPosition(line=1, column=1, offset=-1)

    def test_token_to_dict(self):
        data = scan('<a x="1">', 0).to_dict()
        assert data["role"] == "openTag"
        assert data["tag"] == "a"
        assert data["attributes"] == [{"name": "x", "value": "1"}]
        assert "malformed" not in data

    def test_role_is_tag(self):
        assert NodeRole.CLOSE_TAG.is_tag is True
        assert NodeRole.COMMENT.is_tag is False
