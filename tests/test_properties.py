"""Property-based tests for the Mortar parser and renderer.

Uses hypothesis to verify structural invariants that must hold for
*all* inputs, not just hand-picked examples:

- Plain text parses to a single Text node with the original content
- Re-parsing yields an identical tree
- Arbitrary input either parses or raises ParseError, nothing else
- Rendering never raises, whatever the parsed input does
- Blank-line separated words become one paragraph each
"""

from __future__ import annotations

from hypothesis import assume, given, settings

from mortar import Environment, MemoryHost, NewlineMode, ParseError, Renderer, parse
from mortar.nodes import Text

from .conftest import render_html
from .strategies import arbitrary_passage_source, paragraphs, plain_text


class TestParserProperties:
    """Property-based parser invariants."""

    @given(source=plain_text)
    @settings(max_examples=200)
    def test_plain_text_roundtrip(self, source: str) -> None:
        """Text without reserved characters is one Text node, unchanged."""
        assert parse(source, "P") == [Text("P", 1, source)]

    @given(source=arbitrary_passage_source)
    @settings(max_examples=200)
    def test_reparse_is_identical(self, source: str) -> None:
        """Parsing the same text twice yields structurally equal trees."""
        try:
            first = parse(source, "P")
        except ParseError:
            return
        assert parse(source, "P") == first

    @given(source=arbitrary_passage_source)
    @settings(max_examples=300)
    def test_no_unhandled_crash(self, source: str) -> None:
        """The parser only ever fails with ParseError."""
        try:
            parse(source, "P")
        except ParseError:
            pass  # Expected for malformed input

    @given(source=arbitrary_passage_source)
    @settings(max_examples=300)
    def test_no_unhandled_crash_with_macros(self, source: str) -> None:
        """The registry-directed grammar only ever fails with ParseError."""
        macros = Environment().macros
        try:
            parse(source, "P", macros=macros)
        except ParseError:
            pass  # Expected for malformed input


class TestRenderProperties:
    """Property-based renderer invariants."""

    @given(source=arbitrary_passage_source)
    @settings(max_examples=200, deadline=None)
    def test_render_never_raises(self, source: str) -> None:
        """Whatever parses renders without an exception escaping."""
        # Scripts must not build huge values
        assume("*" not in source and "<<" not in source)
        env = Environment()
        try:
            nodes = env.parse_source(source, "P")
        except ParseError:
            return
        host = MemoryHost()
        Renderer(env, host).render(host.document, {}, nodes)
        host.run_all()

    @given(source=plain_text)
    @settings(max_examples=100)
    def test_text_content_preserved(self, source: str) -> None:
        """Inline rendering of plain text keeps every character."""
        env = Environment()
        host = MemoryHost()
        render_html(env, source, host=host, mode=NewlineMode.INLINE)
        assert host.document.text_content == source

    @given(words=paragraphs)
    @settings(max_examples=100)
    def test_one_paragraph_per_block(self, words: list[str]) -> None:
        """Words separated by blank lines each get their own <p>."""
        html = render_html(Environment(), "\n\n".join(words))
        assert html == "".join(f"<p>{w}</p>" for w in words)
