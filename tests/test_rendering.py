"""Test the renderer: paragraphs, newline modes, expressions, elements and errors."""

import logging

import pytest

from mortar import (
    DictLoader,
    Element,
    Environment,
    LoopSignal,
    MemoryHost,
    NewlineMode,
    Renderer,
)

from .conftest import error_messages, render_html


class TestParagraphs:
    """BLOCK mode paragraph grouping."""

    def test_inline_text_wrapped(self, env):
        assert render_html(env, "Hello *world*") == "<p>Hello <em>world</em></p>"

    def test_paragraph_break(self, env):
        assert render_html(env, "A\n\nB") == "<p>A</p><p>B</p>"

    def test_single_newline_stays_in_paragraph(self, env):
        assert render_html(env, "A\nB") == "<p>A\nB</p>"

    def test_block_element_splits_paragraphs(self, env):
        html = render_html(env, "Intro\n<div>Box</div>\nOutro")
        assert html == "<p>Intro\n</p><div>Box</div><p>\nOutro</p>"

    def test_single_result_not_wrapped(self, env):
        assert render_html(env, "$gold", story={"gold": 3}) == "3"

    def test_adjacent_results_wrapped(self, env):
        assert render_html(env, "$a$b", story={"a": 1, "b": 2}) == "<p>12</p>"

    def test_results_wrapped_per_paragraph(self, env):
        html = render_html(env, "$a $b\n\nx", story={"a": 1, "b": 2})
        assert html == "<p>1 2</p><p>x</p>"

    def test_result_alone_in_its_paragraph(self, env):
        html = render_html(env, "x\n\n$a", story={"a": 1})
        assert html == "<p>x</p>1"

    def test_silent_macro_does_not_count(self, env):
        assert render_html(env, "@(_n = 4)_n", temp={}) == "4"

    def test_macro_output_joins_prose(self, env):
        assert render_html(env, "Gold: $gold", story={"gold": 3}) == "<p>Gold: 3</p>"

    def test_body_without_break_flows_inline(self, env):
        assert render_html(env, "Say @if(true) {hi} now") == "<p>Say hi now</p>"

    def test_body_with_break_makes_paragraphs(self, env):
        assert render_html(env, "@if(true) {one\n\ntwo}") == "<p>one</p><p>two</p>"

    def test_included_passage_not_wrapped(self, env_with_loader):
        html = render_html(env_with_loader, '@include("Lamp")')
        assert html == "<div><p>The lamp is <em>off</em>.</p></div>"

    def test_include_with_tag(self, env_with_loader):
        html = render_html(env_with_loader, '@include("Lamp", "section")')
        assert html.startswith("<section>")


class TestNewlineModes:
    def test_inline(self, env):
        assert render_html(env, "A\n\nB", mode=NewlineMode.INLINE) == "A<br><br>B"

    def test_all_breaks(self, env):
        html = render_html(env, "A\nB\n\nC", mode=NewlineMode.ALL_BREAKS)
        assert html == "A<br>B<br><br>C"

    def test_no_breaks(self, env):
        assert render_html(env, "A\n\nB", mode=NewlineMode.NO_BREAKS) == "A\n\nB"

    def test_environment_default(self):
        env = Environment(newline_mode=NewlineMode.INLINE)
        assert render_html(env, "A\n\nB") == "A<br><br>B"

    def test_block_element_children_are_inline(self, env):
        html = render_html(env, "<div>A\n\nB</div>")
        assert html == "<div>A<br><br>B</div>"

    def test_inline_element_children_are_inline(self, env):
        html = render_html(env, "<span>a\n\nb</span>")
        assert html == "<p><span>a<br><br>b</span></p>"

    def test_no_paragraph_inside_element_body(self, env):
        html = render_html(env, "<em>@if(true) {a\n\nb}</em>")
        assert html == "<p><em>a<br><br>b</em></p>"


class TestExpressions:
    def test_text_is_escaped(self, env):
        assert render_html(env, "$t", story={"t": "<b>"}) == "&lt;b&gt;"

    def test_none_renders_empty(self, env):
        assert render_html(env, "$t", story={"t": None}) == ""

    def test_field_access(self, env):
        assert render_html(env, "$inv.sword", story={"inv": {"sword": 2}}) == "2"

    def test_index_access(self, env):
        assert render_html(env, "$list[1]", story={"list": [5, 6]}) == "6"

    def test_computed_index(self, env):
        html = render_html(env, "$list[_i + 1]", story={"list": [5, 6]}, temp={"i": 0})
        assert html == "6"

    def test_method_call(self, env):
        assert render_html(env, "$name.upper()", story={"name": "bo"}) == "BO"

    def test_sentence_full_stop(self, env):
        assert render_html(env, "$name.", story={"name": "bo"}) == "<p>bo.</p>"

    def test_print_macro(self, env):
        assert render_html(env, "@print(1 + 2)") == "3"
        assert render_html(env, '@-("x")') == "x"

    def test_render_macro(self, env):
        assert render_html(env, '@=("*hi*")') == "<em>hi</em>"

    def test_template_string(self, env):
        assert render_html(env, "@print(`n=${_n}`)", temp={"n": 2}) == "n=2"

    def test_regex_literal(self, env):
        assert render_html(env, '@print(/b+/.sub("x", "abbc"))') == "axc"

    def test_unnamed_macro_runs_statements(self, env):
        story: dict = {}
        assert render_html(env, "@($gold = 5)$gold", story=story) == "5"
        assert story == {"gold": 5}

    def test_global_functions(self, env):
        assert render_html(env, "@print(slugify('A B'))") == "a-b"
        assert render_html(env, "@slugify('A B')") == "a-b"

    def test_unknown_temp_is_empty_with_warning(self, env, caplog):
        with caplog.at_level(logging.WARNING, logger="mortar.scripting"):
            assert render_html(env, "_missing") == ""
        assert 'Unknown temporary variable "_missing"' in caplog.text


class TestErrors:
    """Errors are shown inline and rendering continues."""

    def test_unknown_constant(self, env, host):
        render_html(env, "@prnt(1)", host=host)
        (message,) = error_messages(host)
        assert 'while evaluating "@prnt"' in message
        assert 'Did you mean "@print"?' in message

    def test_rendering_continues_after_error(self, env, host):
        html = render_html(env, "@prnt(1) after", host=host)
        assert len(error_messages(host)) == 1
        assert html.endswith(" after</p>")

    def test_error_is_logged(self, env, caplog):
        with caplog.at_level(logging.ERROR, logger="mortar.template.core"):
            render_html(env, "@prnt(1)")
        assert "Unknown constant" in caplog.text

    def test_failed_property(self, env, host):
        render_html(env, "_x.y", temp={"x": None}, host=host)
        (message,) = error_messages(host)
        assert 'while evaluating "_x.y"' in message

    def test_call_non_function(self, env, host):
        render_html(env, "$n()", story={"n": 1}, host=host)
        (message,) = error_messages(host)
        assert '"$n" is not a function' in message

    def test_body_on_non_macro(self, env, host):
        render_html(env, "$n {x}", story={"n": 1}, host=host)
        assert error_messages(host) == ["in “Test” at line 1: $n is not a macro"]

    def test_body_on_macro_without_body(self, env, host):
        env.macros.register("shout", lambda context, text: text.upper())
        render_html(env, "@shout('a') {x}", host=host)
        (message,) = error_messages(host)
        assert "@shout does not accept a body" in message

    def test_custom_macro(self, env):
        env.macros.register("shout", lambda context, text: text.upper())
        assert render_html(env, "@shout('hey')") == "HEY"

    @pytest.mark.parametrize("source", ["@record(1)[0]", "@record(1).x", "@record(1)(2)"])
    def test_macro_call_must_be_last(self, env, host, source):
        calls = []
        env.macros.register("record", lambda context, *args: calls.append((context, args)))
        render_html(env, source, host=host)
        (message,) = error_messages(host)
        assert "@record(1): a macro call must be the last operation" in message
        assert calls == []

    def test_printed_value_cannot_be_indexed(self, env, host):
        render_html(env, '@print("ab")[0]', host=host)
        (message,) = error_messages(host)
        assert "a macro call must be the last operation" in message

    def test_macro_then_link(self, env, host):
        calls = []
        env.macros.register("record", lambda context, *args: calls.append(args))
        render_html(env, "@record(1)[[Next]]", host=host)
        assert calls == [(1,)]
        assert host.document.query_selector("button").text_content == "Next"

    def test_macro_raising(self, env, host):
        def boom(context):
            raise ValueError("nope")

        env.macros.register("boom", boom)
        render_html(env, "@boom()", host=host)
        assert error_messages(host) == ["in “Test” at line 1: @boom: nope"]

    def test_macro_bad_return_type(self, env, host):
        env.macros.register("bad", lambda context: 5)
        render_html(env, "@bad()", host=host)
        (message,) = error_messages(host)
        assert "returned a int" in message

    def test_argument_error_reported(self, env, host):
        render_html(env, "@print(1, 2)", host=host)
        (message,) = error_messages(host)
        assert "@print: TypeError: requires 1 argument (got 2)" in message

    def test_nested_error_shown_once(self, env, host):
        render_html(env, "@if(true) {@if(true) {@prnt(1)}}", host=host)
        assert len(error_messages(host)) == 1

    def test_render_returns_normal(self, env):
        host = MemoryHost()
        nodes = env.parse_source("@prnt(1)", "Test")
        assert Renderer(env, host).render(host.document, {}, nodes) is LoopSignal.NORMAL


class TestPassages:
    def test_missing_passage(self, env_with_loader, host):
        Renderer(env_with_loader, host).render(host.document, {}, "Nowhere")
        (message,) = error_messages(host)
        assert 'No passage named "Nowhere" found' in message

    def test_include_missing_passage_suggests(self, env_with_loader, host):
        render_html(env_with_loader, '@include("Lamps")', host=host)
        (message,) = error_messages(host)
        assert 'Did you mean "Lamp"?' in message

    def test_parse_error_replaces_passage(self, host):
        env = Environment(DictLoader({"Bad": "Hello @later {oops"}))
        Renderer(env, host).render(host.document, {}, "Bad")
        (message,) = error_messages(host)
        assert "Missing closing `}`" in message
        assert "Hello" not in host.document.text_content.replace(message, "")

    def test_recursion_detected_once(self, env_with_loader, host):
        env_with_loader.max_render_depth = 10
        Renderer(env_with_loader, host).render(host.document, {}, "Loop")
        (message,) = error_messages(host)
        assert "Infinite recursion detected" in message

    def test_render_after_recursion_recovers(self, env_with_loader, host):
        env_with_loader.max_render_depth = 10
        renderer = Renderer(env_with_loader, host)
        renderer.render(host.document, {}, "Loop")
        out = Element("div")
        renderer.render(out, {}, "Lamp")
        assert out.text_content == "The lamp is off."

    def test_pre_process_text(self, env_with_loader):
        env_with_loader.pre_process_text = lambda passage: passage.text.upper()
        html = render_html(env_with_loader, '@include("Lamp")')
        assert "<em>OFF</em>" in html

    def test_pre_process_text_must_return_string(self, env_with_loader, host):
        env_with_loader.pre_process_text = lambda passage: 42
        Renderer(env_with_loader, host).render(host.document, {}, "Lamp")
        (message,) = error_messages(host)
        assert "pre_process_text returned a int" in message


class TestElements:
    def test_dynamic_attribute(self, env):
        html = render_html(env, "<span title=($t)>x</span>", story={"t": "hi"})
        assert html == '<p><span title="hi">x</span></p>'

    def test_attribute_value_escaped(self, env):
        html = render_html(env, "<span title=($t)></span>", story={"t": '"q"'})
        assert 'title="&quot;q&quot;"' in html

    def test_first_failing_attribute_stops_the_rest(self, env, host):
        render_html(env, "<span a=(1) b=(@nope) c=(2)>x</span>", host=host)
        (message,) = error_messages(host)
        assert 'while evaluating the attribute "b"' in message
        (span,) = [s for s in host.document.query_selector_all("span") if s.text_content == "x"]
        assert span.attributes == {"a": "1"}

    def test_event_listener_attribute(self, env, host):
        clicked = []
        render_html(env, "<button onclick=(_f)>Go</button>", temp={"f": clicked.append}, host=host)
        button = host.document.query_selector("button")
        assert "onclick" not in button.attributes
        button.click()
        assert [event.type for event in clicked] == ["click"]

    def test_non_callable_on_attribute_is_plain(self, env):
        html = render_html(env, "<span onx=(1)></span>")
        assert 'onx="1"' in html

    def test_static_attributes_kept(self, env):
        html = render_html(env, '<div#box.a data-x="1">y</div>')
        assert html == '<div id="box" class="a" data-x="1">y</div>'


@pytest.mark.parametrize("mode", list(NewlineMode))
def test_every_mode_renders_text(env, mode):
    assert "word" in render_html(env, "word", mode=mode)
