"""Test Environment configuration, the macro registry, the parse cache and loaders."""

import logging

import pytest

from mortar import (
    ChoiceLoader,
    DictLoader,
    Environment,
    FunctionLoader,
    MacroFlag,
    MacroRegistry,
    MacroSpec,
    NewlineMode,
    Passage,
    PassageNotFoundError,
    RegistryFrozenError,
)
from mortar.environment.globals import passage_name, tags
from mortar.render_context import get_render_context_required, render_context
from mortar.utils.values import clone, either, number_range, random_int, slugify


def noop(context, *args):
    return None


class TestConfiguration:
    def test_defaults(self):
        env = Environment()
        assert env.max_loop_iterations == 1000
        assert env.max_render_depth == 50
        assert env.newline_mode is NewlineMode.BLOCK
        assert env.pre_process_text is None
        assert env.list_passages() == []
        assert env.get_passage("Start") is None

    @pytest.mark.parametrize("value", [0, -1, True, "5", 2.5])
    def test_limits_must_be_positive_ints(self, value):
        with pytest.raises(TypeError, match="positive integer"):
            Environment(max_loop_iterations=value)
        env = Environment()
        with pytest.raises(TypeError, match="positive integer"):
            env.max_render_depth = value

    def test_newline_mode_type(self):
        with pytest.raises(TypeError, match="NewlineMode"):
            Environment(newline_mode="block")

    def test_pre_process_text_must_be_callable(self):
        with pytest.raises(TypeError, match="callable"):
            Environment(pre_process_text="upper")

    def test_cache_size(self):
        with pytest.raises(TypeError, match="cache_size"):
            Environment(cache_size=0)

    def test_extra_globals(self):
        env = Environment(globals={"answer": 42})
        assert env.globals["answer"] == 42
        assert "slugify" in env.globals


class TestGlobalsAndFreezing:
    def test_add_global(self, env):
        env.add_global("double", lambda n: n * 2)
        assert env.constants["double"](4) == 8

    def test_global_hidden_by_macro_warns(self, env, caplog):
        with caplog.at_level(logging.WARNING, logger="mortar.environment.core"):
            env.add_global("print", print)
        assert "hidden by the macro" in caplog.text
        assert isinstance(env.constants["print"], MacroSpec)

    def test_freeze(self, env):
        env.freeze()
        assert env.frozen
        assert env.macros.frozen
        with pytest.raises(RegistryFrozenError):
            env.add_global("late", 1)
        with pytest.raises(RegistryFrozenError):
            env.macros.register("late", noop)


class TestConstants:
    def test_macros_then_globals(self, env):
        assert env.constants["if"] is env.macros["if"]
        assert env.constants["slugify"] is env.globals["slugify"]
        with pytest.raises(KeyError):
            env.constants["nothing"]

    def test_live_view(self, env):
        env.macros.register("fresh", noop)
        assert "fresh" in env.constants

    def test_iteration_has_no_duplicates(self, env):
        env.globals["print"] = print
        names = list(env.constants)
        assert names.count("print") == 1
        assert len(env.constants) == len(names)


class TestMacroRegistry:
    def test_register(self):
        registry = MacroRegistry()
        spec = registry.register("shout", noop)
        assert registry["shout"] is spec
        assert spec.flags is MacroFlag.NONE
        assert not spec.accepts_body
        assert not spec.raw_args

    def test_version_counts_changes(self):
        registry = MacroRegistry()
        registry.register("a", noop)
        registry.alias("a", "b")
        registry.remove("a")
        assert registry.version == 3

    def test_replacing_warns(self, caplog):
        registry = MacroRegistry()
        registry.register("a", noop)
        with caplog.at_level(logging.WARNING, logger="mortar.environment.registry"):
            registry.register("a", noop)
        assert "Replacing an existing macro" in caplog.text

    def test_alias_survives_removal(self):
        registry = MacroRegistry()
        spec = registry.register("a", noop)
        registry.alias("a", "b")
        assert registry.remove("a") is True
        assert registry["b"] is spec
        assert registry.remove("a") is False

    def test_alias_missing(self):
        with pytest.raises(KeyError, match="No macro 'x'"):
            MacroRegistry().alias("x", "y")

    def test_decorator(self):
        registry = MacroRegistry()

        @registry.macro("box", MacroFlag.BODY)
        def box(context):
            return None

        assert registry["box"].handler is box
        assert registry["box"].accepts_body

    def test_chain_needs_pattern(self):
        with pytest.raises(ValueError, match="chain pattern"):
            MacroRegistry().register("when", noop, MacroFlag.CHAIN)

    def test_chain_pattern_compiled(self):
        spec = MacroRegistry().register("when", noop, MacroFlag.CHAIN, r"otherwise\s*")
        assert spec.chain_pattern.match("otherwise ")
        assert spec.accepts_body

    def test_frozen(self):
        registry = MacroRegistry()
        registry.freeze()
        for change in (
            lambda: registry.register("a", noop),
            lambda: registry.alias("a", "b"),
            lambda: registry.remove("a"),
        ):
            with pytest.raises(RegistryFrozenError, match="frozen"):
                change()

    def test_builtins(self, env):
        assert env.macros["-"] is env.macros["print"]
        assert env.macros["="] is env.macros["render"]
        assert MacroFlag.FOR_ARGS in env.macros["for"].flags
        assert env.macros[""].raw_args
        assert env.macros["if"].chain_pattern is not None
        assert not env.macros["break"].accepts_body


class TestParseCache:
    def test_cached(self, env):
        first = env.parse_source("Hello $name", "P")
        assert env.parse_source("Hello $name", "P") is first

    def test_key_includes_location(self, env):
        first = env.parse_source("$a", "P")
        assert env.parse_source("$a", "Q") is not first
        assert env.parse_source("$a", "P", 3)[0].line_number == 3

    def test_registry_change_invalidates(self, env):
        first = env.parse_source("@when(1) {a} @otherwise {b}", "P")
        env.macros.register("when", noop, MacroFlag.CHAIN, r"otherwise\s*")
        second = env.parse_source("@when(1) {a} @otherwise {b}", "P")
        assert second is not first
        assert len(second) == 1

    def test_eviction(self):
        env = Environment(cache_size=1)
        first = env.parse_source("a", "P")
        env.parse_source("b", "P")
        assert env.parse_source("a", "P") is not first

    def test_pre_process_change_clears(self, env_with_loader):
        passage = env_with_loader.get_passage("Lamp")
        first = env_with_loader.parse_passage(passage)
        env_with_loader.pre_process_text = lambda p: p.text
        assert env_with_loader.parse_passage(passage) is not first

    def test_clear_cache(self, env):
        first = env.parse_source("a", "P")
        env.clear_cache()
        assert env.parse_source("a", "P") is not first


class TestLoaders:
    def test_passage_normalization(self):
        passage = Passage("  The Iron Giant ", "x", ("b", "a", ""))
        assert passage.name == "The Iron Giant"
        assert passage.tags == ("a", "b")
        assert passage.slug == "the-iron-giant"

    def test_dict_loader(self):
        loader = DictLoader({"B": "two", "A": ("one", ["z", "y"])})
        assert loader.list_passages() == ["A", "B"]
        assert loader.get_passage("A").tags == ("y", "z")
        assert loader.get_passage("C") is None

    @pytest.mark.parametrize("name", ["StoryTitle", "StoryData"])
    def test_reserved_names(self, name):
        with pytest.raises(ValueError, match="is not allowed"):
            DictLoader({name: "x"})

    def test_special_names_allowed(self):
        loader = DictLoader({"StoryInit": "", "StoryHeader": "", "StoryFooter": ""})
        assert len(loader.list_passages()) == 3

    def test_foreign_special_name_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="mortar.environment.loaders"):
            DictLoader({"PassageHeader": "x"})
        assert "no special meaning" in caplog.text

    def test_function_loader(self):
        results = {
            "Text": "plain",
            "Pair": ("tagged", ["t"]),
            "Ready": Passage("Ready", "made"),
        }
        loader = FunctionLoader(results.get)
        assert loader.get_passage("Text").text == "plain"
        assert loader.get_passage("Pair").tags == ("t",)
        assert loader.get_passage("Ready") is results["Ready"]
        assert loader.get_passage("Missing") is None
        assert loader.list_passages() == []

    def test_choice_loader(self):
        loader = ChoiceLoader([DictLoader({"A": "new"}), DictLoader({"A": "old", "B": "b"})])
        assert loader.get_passage("A").text == "new"
        assert loader.get_passage("B").text == "b"
        assert loader.list_passages() == ["A", "B"]

    def test_required_passage_suggestion(self, env_with_loader):
        with pytest.raises(PassageNotFoundError, match='Did you mean "Room"'):
            env_with_loader.get_passage_required("Rooom")


class TestPassageHelpers:
    def test_outside_render(self):
        assert passage_name() == ""
        assert tags() == ()

    def test_reads_render_metadata(self):
        with render_context() as ctx:
            ctx.set_meta("passage", Passage("Cellar", "", ("dark",)))
            assert passage_name() == "Cellar"
            assert tags() == ("dark",)

    def test_required_context(self):
        with pytest.raises(RuntimeError, match="Not in a render context"):
            get_render_context_required()
        with render_context(max_depth=3) as ctx:
            assert get_render_context_required() is ctx


class TestValueHelpers:
    def test_slugify(self):
        assert slugify("What's up?") == "whats-up"
        assert slugify("a  b") == "a-b"

    def test_clone_is_deep(self):
        original = {"bag": [1, {"x": 2}]}
        copied = clone(original)
        copied["bag"][1]["x"] = 3
        assert original == {"bag": [1, {"x": 2}]}

    def test_clone_uses_clone_method(self):
        class Counter:
            def clone(self):
                return "copied"

        assert clone(Counter()) == "copied"

    def test_clone_rejects_functions(self):
        with pytest.raises(TypeError, match="Functions cannot be cloned"):
            clone(len)

    def test_either(self):
        assert either([7]) == 7
        with pytest.raises(ValueError):
            either([])
        with pytest.raises(TypeError):
            either("abc")

    def test_random_int(self):
        assert all(0 <= random_int(3) < 3 for _ in range(20))
        with pytest.raises(TypeError):
            random_int(True)

    def test_number_range(self):
        assert list(number_range(0, 2, 0.5)) == [0, 0.5, 1.0, 1.5]
        assert list(number_range(3)) == [0, 1, 2]
        assert list(number_range(3, 0, -1)) == [3, 2, 1]
        with pytest.raises(ValueError):
            list(number_range(1, 2, 0))
