"""Test the Mortar parser: text, elements, links, emphasis and references."""

import logging

import pytest

from mortar import Environment, ErrorCode, ParseError, parse
from mortar.nodes import (
    Element,
    Expr,
    Index,
    LinkBox,
    MacroChain,
    ParagraphBreak,
    Scope,
    Text,
)
from mortar.parser import Parser, normalize_source


@pytest.fixture
def macros():
    return Environment().macros


class TestText:
    """Plain text, escapes, comments and line breaks."""

    def test_plain_text(self):
        assert parse("Hello world", "P") == [Text("P", 1, "Hello world")]

    def test_empty_source(self):
        assert parse("", "P") == []

    def test_escape(self):
        nodes = parse("Cost: \\$5", "P")
        assert nodes == [Text("P", 1, "Cost: $5")]

    def test_trailing_backslash_is_line_break(self):
        nodes = parse("a\\", "P")
        assert nodes == [Text("P", 1, "a\n")]

    def test_single_newline_stays_text(self):
        nodes = parse("a\nb", "P")
        assert nodes == [Text("P", 1, "a\nb")]

    def test_paragraph_break(self):
        nodes = parse("a\n\n\nb", "P")
        assert isinstance(nodes[1], ParagraphBreak)
        assert nodes[1].raw == "\n\n\n"
        assert nodes[2] == Text("P", 4, "b")

    def test_line_comment(self):
        assert parse("a// note\nb", "P") == [Text("P", 1, "ab")]

    def test_block_comment(self):
        assert parse("a/* note */b", "P") == [Text("P", 1, "ab")]

    def test_unterminated_block_comment(self):
        with pytest.raises(ParseError, match="close the block comment"):
            parse("a/* note", "P")

    def test_lone_slash_is_text(self):
        assert parse("a/b", "P") == [Text("P", 1, "a/b")]

    def test_lone_bracket_is_text(self):
        assert parse("a[b]", "P") == [Text("P", 1, "a[b]")]

    def test_normalize_source(self):
        assert normalize_source("a  \r\nb\rc") == "a\nb\nc"


class TestElements:
    """HTML-like elements."""

    def test_element_with_content(self):
        (node,) = parse("<b>bold</b>", "P")
        assert isinstance(node, Element)
        assert node.name == "b"
        assert node.content == (Text("P", 1, "bold"),)

    def test_id_and_class_shorthand(self):
        (node,) = parse("<div#main.a.b>x</div>", "P")
        assert dict(node.attributes) == {"id": "main", "class": "a b"}

    def test_attributes_keep_order(self):
        (node,) = parse('<span title="t" lang="en"></span>', "P")
        assert node.attributes == (("title", "t"), ("lang", "en"))

    def test_dynamic_attribute(self):
        (node,) = parse("<span title=($name)></span>", "P")
        assert node.eval_attributes == (("title", "story.name"),)

    def test_tag_name_is_lowercased(self):
        (node,) = parse("<DIV>x</div>", "P")
        assert node.name == "div"

    def test_void_element(self):
        nodes = parse("a<br>b", "P")
        assert nodes[1].name == "br"
        assert nodes[1].content == ()
        assert nodes[2] == Text("P", 1, "b")

    def test_self_closing_element(self):
        nodes = parse("<span/>after", "P")
        assert nodes[0].content == ()
        assert nodes[1] == Text("P", 1, "after")

    def test_style_content_is_raw(self):
        (node,) = parse("<style>p { color: $red; }</style>", "P")
        assert node.content == (Text("P", 1, "p { color: $red; }"),)

    def test_nested_elements(self):
        (node,) = parse("<div><span>x</span></div>", "P")
        (inner,) = node.content
        assert inner.name == "span"

    def test_banned_element(self):
        with pytest.raises(ParseError, match="cannot contain") as exc:
            parse("<script>alert(1)</script>", "P")
        assert exc.value.code is ErrorCode.INVALID_ELEMENT

    def test_missing_closing_tag(self):
        with pytest.raises(ParseError, match="Missing closing tag </div>"):
            parse("<div>never closed", "P")

    def test_unexpected_closing_tag(self):
        with pytest.raises(ParseError, match="Unexpected closing tag"):
            parse("</div>", "P")

    def test_invalid_element_name(self):
        with pytest.raises(ParseError) as exc:
            parse("a < b", "P")
        assert exc.value.suggestion is not None

    def test_duplicate_attribute_is_a_warning(self, caplog):
        parser = Parser('<span a="1" a="2">x</span>', "P")
        with caplog.at_level(logging.WARNING, logger="mortar.parser.core"):
            (node,) = parser.parse()
        assert dict(node.attributes) == {"a": "1"}
        assert len(parser.warnings) == 1
        assert "duplicate attribute 'a'" in parser.warnings[0].message
        assert "duplicate attribute" in caplog.text

    def test_empty_dynamic_attribute(self):
        with pytest.raises(ParseError, match="Empty dynamic attribute"):
            parse("<span a=( )></span>", "P")


class TestLinks:
    """Wiki-style [[...]] links."""

    @pytest.mark.parametrize(
        ("source", "text", "link"),
        [
            ("[[Go->Kitchen]]", "Go", "Kitchen"),
            ("[[Kitchen<-Go]]", "Go", "Kitchen"),
            ("[[Go|Kitchen]]", "Go", "Kitchen"),
            ("[[Kitchen]]", "Kitchen", "Kitchen"),
            ("[[ Go -> Kitchen ]]", "Go", "Kitchen"),
        ],
    )
    def test_link_forms(self, source, text, link):
        (node,) = parse(source, "P")
        assert isinstance(node, LinkBox)
        assert (node.text, node.link) == (text, link)

    def test_two_separator_kinds(self):
        with pytest.raises(ParseError, match="only have one of") as exc:
            parse("[[a->b|c]]", "P")
        assert exc.value.code is ErrorCode.INVALID_LINK

    def test_repeated_separator(self):
        with pytest.raises(ParseError, match="once"):
            parse("[[a->b->c]]", "P")

    def test_unmatched_link(self):
        with pytest.raises(ParseError, match="Unmatched"):
            parse("[[nowhere", "P")

    @pytest.mark.parametrize(
        ("source", "text", "link"),
        [
            ("[[a\\]b]]", "a]b", "a]b"),
            ("[[Go\\!->Hall\\]]]", "Go!", "Hall]"),
        ],
    )
    def test_escapes_removed(self, source, text, link):
        (node,) = parse(source, "P")
        assert (node.text, node.link) == (text, link)


class TestEmphasis:
    """``*`` and ``**`` delimiter runs."""

    def test_em(self):
        (node,) = parse("*hi*", "P")
        assert node.name == "em"
        assert node.content == (Text("P", 1, "hi"),)

    def test_strong(self):
        (node,) = parse("**hi**", "P")
        assert node.name == "strong"

    def test_nested(self):
        (node,) = parse("***hi***", "P")
        assert {node.name, node.content[0].name} == {"em", "strong"}

    def test_spaced_stars_are_literal(self):
        assert parse("a * b * c", "P") == [Text("P", 1, "a * b * c")]

    def test_unmatched_star_is_literal(self):
        assert parse("*hi", "P") == [Text("P", 1, "*hi")]

    def test_emphasis_inside_element(self):
        (node,) = parse("<span>*x*</span>", "P")
        assert node.content[0].name == "em"


class TestReferences:
    """Variable references and macro invocations."""

    def test_story_and_temp(self):
        nodes = parse("$a and _b", "P")
        assert nodes[0] == Expr("P", 1, Scope.STORY, "a")
        assert nodes[2] == Expr("P", 1, Scope.TEMP, "b")

    def test_property_ops(self):
        (node,) = parse("$inv.sword[0]", "P")
        assert node.ops == (Index("sword", False, ".sword"), Index("0", True, "[0]"))

    def test_sentence_full_stop(self):
        nodes = parse("You have $gold.", "P")
        assert nodes[1].ops == ()
        assert nodes[2] == Text("P", 1, ".")

    def test_call_and_body(self):
        (node,) = parse("@link('Go') {@(_x = 1)}", "P")
        assert node.base == "link"
        assert node.trailing_call.args == ("'Go'",)
        assert node.content[0].base == ""
        assert node.content[0].trailing_call.args == ("temp.x = 1",)

    def test_empty_body_is_not_none(self):
        (node,) = parse("@later {}", "P")
        assert node.content == ()

    def test_space_before_arguments(self):
        (node,) = parse("@print (1)", "P")
        assert node.trailing_call.args == ("1",)

    def test_link_ends_postscript_ops(self):
        expr, link = parse("@punt(_x)[[Next]]", "P")
        assert expr.ops[-1].raw == "(_x)"
        assert len(expr.ops) == 1
        assert isinstance(link, LinkBox)
        assert link.link == "Next"

    def test_symbol_macro_names(self):
        assert parse("@-(1)", "P")[0].base == "-"
        assert parse("@=('x')", "P")[0].base == "="

    def test_line_numbers(self):
        nodes = parse("a\n$b", "P")
        assert nodes[1].line_number == 2

    def test_start_line(self):
        nodes = parse("$b", "P", start_line=7)
        assert nodes[0].line_number == 7

    def test_unescaped_sigil(self):
        with pytest.raises(ParseError, match='Unescaped "\\$"'):
            parse("costs $ 5", "P")

    def test_unterminated_body(self):
        with pytest.raises(ParseError, match="Missing closing `}`") as exc:
            parse("@later {never closed", "P")
        assert exc.value.code is ErrorCode.UNCLOSED_BODY

    def test_stray_closing_brace_is_text(self):
        assert parse("a}b", "P") == [Text("P", 1, "a}b")]


class TestRegistryGrammars:
    """Chains and the @for head, directed by the macro registry."""

    def test_if_chain(self, macros):
        (node,) = parse("@if(_a) {A} @else if(_b) {B} @else {C}", "P", macros=macros)
        assert isinstance(node, MacroChain)
        assert [s.name for s in node.segments] == ["if", "else if", "else"]
        assert node.segments[1].args == ("temp.b",)
        assert node.segments[2].body == (Text("P", 1, "C"),)

    def test_chain_stops_at_other_macro(self, macros):
        nodes = parse("@if(1) {A} @print(2)", "P", macros=macros)
        assert isinstance(nodes[0], MacroChain)
        assert len(nodes[0].segments) == 1
        assert nodes[1] == Text("P", 1, " ")
        assert nodes[2].base == "print"

    def test_chain_requires_body(self, macros):
        with pytest.raises(ParseError, match="requires a body"):
            parse("@if(1) yes", "P", macros=macros)

    def test_chain_without_registry_is_generic(self):
        nodes = parse("@if(1) {A} @else {B}", "P")
        assert all(isinstance(n, (Expr, Text)) for n in nodes)

    def test_for_head(self, macros):
        (node,) = parse("@for(_item of $bag) {_item}", "P", macros=macros)
        assert node.base == "for"
        (call,) = node.ops
        assert call.args[0] == "_item"
        assert call.args[1].strip() == "story.bag"

    def test_for_bad_syntax(self, macros):
        with pytest.raises(ParseError, match="@for"):
            parse("@for(_item in $bag) {x}", "P", macros=macros)
