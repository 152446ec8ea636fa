"""Story engine: navigation, history, temp scope lifetime and punting.

The engine owns the story variables and renders one passage at a time into
its container as an ``<article class="mortar-passage">``. Every navigation
records a ``Moment``: the passage name, the turn and a ``clone()`` snapshot
of the story variables. ``backward()`` and ``forward()`` move through those
moments and re-render.

Temp variables live for one render. ``@punt(_name)`` carries a temp variable
into the next render: the punted values travel inside the next moment's
snapshot, so moving back and forward through history restores them too.

Example:
    >>> env = Environment(DictLoader({"Start": "[[Go->Next]]", "Next": "Done."}))
    >>> host = MemoryHost()
    >>> engine = Engine(env, host)
    >>> engine.start()
    >>> host.document.query_selector("button").click()
    >>> engine.passage_name
    'Next'
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from mortar.dom import Element
from mortar.environment.exceptions import MortarError
from mortar.environment.registry import MacroFlag
from mortar.macros.interactive import FADE_IN_MS, REDO_EVENT, REDOABLE_CLASS, TRANSPARENT_CLASS
from mortar.parser.scripting import IDENTIFIER
from mortar.render_context import render_context
from mortar.template.core import Renderer
from mortar.utils.values import clone

if TYPE_CHECKING:
    from mortar.dom import Host
    from mortar.environment.core import Environment
    from mortar.environment.loaders import Passage
    from mortar.macros.context import MacroContext

logger = logging.getLogger(__name__)

# Story variable carrying punted temp values into the next render
PUNTED_KEY = "-mortar-punted"
PASSAGE_CLASS = "mortar-passage"
ACTIVE_CLASS = "mortar-active-passage"
MACRO_TAG = "macro"


@dataclass(frozen=True, slots=True)
class Moment:
    """One entry of the history."""

    passage_name: str
    turn: int
    variables: dict[str, Any]


class Engine:
    """Runs a story: renders passages into ``container`` and keeps history.

    Args:
        env: Environment with a loader holding the story's passages
        host: Host adapter
        container: Element receiving passages (default: the host document)
        history_length: Moments kept; older ones are dropped

    Attributes:
        story: Story variables (``$name``), persisted through history
        temp: Temp variables (``_name``) of the current render
        renderer: Renderer bound to this engine
    """

    def __init__(
        self,
        env: Environment,
        host: Host,
        *,
        container: Element | None = None,
        history_length: int = 100,
    ):
        if isinstance(history_length, bool) or not isinstance(history_length, int) or history_length <= 0:
            raise TypeError("history_length must be a positive integer")
        self.env = env
        self.host = host
        self.container = container if container is not None else host.document
        self.history_length = history_length
        self.story: dict[str, Any] = {}
        self.temp: dict[str, Any] = {}
        self.renderer = Renderer(env, host, story=self.story, engine=self)
        self.passage_name = ""
        self.turn = 0
        self._history: list[Moment] = []
        self._index = -1
        self._punted: list[str] = []

    # ─────────────────────────────────────────────────────────────────────────
    # Startup
    # ─────────────────────────────────────────────────────────────────────────

    def start(self, passage_name: str = "Start") -> None:
        """Install passage macros, run StoryInit, freeze the environment and
        show ``passage_name`` as the first moment."""
        self.story.clear()
        self._history = []
        self._index = -1
        self.turn = 0
        self._punted = []

        if not self.env.frozen:
            self.install_passage_macros()
        self._run_story_init()
        self.env.freeze()

        self._push_moment(passage_name)
        self.render_active()

    def install_passage_macros(self, passages: Iterable[str] | None = None) -> None:
        """Register every passage tagged ``macro`` as a macro of the same name.

        Calling ``@Name()`` renders the passage into a ``<div>``.

        Raises:
            ValueError: A macro-tagged passage name is not an identifier
        """
        for name in passages if passages is not None else self.env.list_passages():
            passage = self.env.get_passage(name)
            if passage is None or MACRO_TAG not in passage.tags:
                continue
            if not IDENTIFIER.fullmatch(passage.name):
                raise ValueError(
                    f'The passage "{passage.name}" cannot be made into a macro. Either '
                    'change its name to a valid identifier, or remove the "macro" tag.'
                )
            self.env.macros.register(passage.name, self._passage_macro(passage), MacroFlag.NONE)

    def _passage_macro(self, passage: Passage) -> Any:
        def render_passage(context: MacroContext, *args: Any) -> Element:
            if args:
                raise TypeError(
                    'This macro was created with the "macro" tag and does not accept arguments'
                )
            div = Element("div")
            self.renderer.render(
                div, context.temp, passage, context.newline_mode, parent_context=context.detached()
            )
            return div

        return render_passage

    def _run_story_init(self) -> None:
        passage = self.env.get_passage("StoryInit")
        if passage is None:
            return
        scratch = Element("div")
        with render_context(max_depth=self.env.max_render_depth) as ctx:
            ctx.set_meta("passage", passage)
            self.renderer.render(scratch, self.temp, passage)
        text = scratch.text_content.strip()
        if text:
            logger.warning(
                "StoryInit, when rendered, contained non-whitespace characters. "
                "This is likely an error. Its contents:\n%s",
                text,
            )

    # ─────────────────────────────────────────────────────────────────────────
    # History
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def history(self) -> tuple[Moment, ...]:
        return tuple(self._history)

    @property
    def index(self) -> int:
        """Position of the current moment in ``history``."""
        return self._index

    def _push_moment(self, passage_name: str) -> None:
        del self._history[self._index + 1 :]
        self.turn += 1
        self.passage_name = passage_name
        self._history.append(Moment(passage_name, self.turn, clone(self.story)))
        if len(self._history) > self.history_length:
            del self._history[: -self.history_length]
        self._index = len(self._history) - 1

    def _load_moment(self) -> None:
        moment = self._history[self._index]
        self.story.clear()
        self.story.update(clone(moment.variables))
        self.turn = moment.turn
        self.passage_name = moment.passage_name

    def navigate(self, passage_name: str) -> None:
        """Go to ``passage_name``, recording a new moment.

        Moments after the current one are discarded.
        """
        if self._index < 0:
            raise MortarError("The engine has not been started")
        if self._punted:
            self.story[PUNTED_KEY] = [(name, self.temp.get(name)) for name in self._punted]
        self._push_moment(passage_name)
        self.render_active()

    def backward(self) -> bool:
        """Go to the previous moment. Returns False at the start of history."""
        if self._index <= 0:
            return False
        self._index -= 1
        self._load_moment()
        self.render_active()
        return True

    def forward(self) -> bool:
        """Go to the next moment. Returns False at the end of history."""
        if self._index >= len(self._history) - 1:
            return False
        self._index += 1
        self._load_moment()
        self.render_active()
        return True

    # ─────────────────────────────────────────────────────────────────────────
    # Rendering
    # ─────────────────────────────────────────────────────────────────────────

    def render_active(self) -> Element:
        """Render the current passage with a fresh temp scope."""
        self.temp = {}
        self._punted = []
        punted = self.story.pop(PUNTED_KEY, None)
        if isinstance(punted, list):
            for key, value in punted:
                if isinstance(key, str):
                    self.temp[key] = value
                else:
                    logger.warning("Non-string name in punted variables: %r", key)

        passage = self.env.get_passage(self.passage_name)
        article = Element("article", {"class": f"{PASSAGE_CLASS} {ACTIVE_CLASS} {TRANSPARENT_CLASS}"})
        if passage is not None:
            article.add_class(f"psg-{passage.slug}")
            article.set_attribute("data-name", passage.name)
            article.set_attribute("data-tags", " ".join(passage.tags))

        with render_context(max_depth=self.env.max_render_depth) as ctx:
            ctx.set_meta("passage", passage)
            self.renderer.render(article, self.temp, self.passage_name)

            header = self.env.get_passage("StoryHeader")
            if header is not None:
                element = Element("header")
                self.renderer.render(element, self.temp, header)
                article.prepend(element)
            footer = self.env.get_passage("StoryFooter")
            if footer is not None:
                element = Element("footer")
                self.renderer.render(element, self.temp, footer)
                article.append(element)

        self.container.clear()
        self.container.append(article)
        self.host.set_timeout(lambda: article.remove_class(TRANSPARENT_CLASS), FADE_IN_MS)
        return article

    def redo(self) -> None:
        """Re-render every ``@redoable`` region in the document."""
        for element in self.host.document.query_selector_all(f".{REDOABLE_CLASS}"):
            element.dispatch_event(REDO_EVENT)

    def punt(self, name: str) -> None:
        """Keep temp variable ``name`` for the next render."""
        if name in self._punted:
            logger.warning("_%s was already punted", name)
            return
        self._punted.append(name)
