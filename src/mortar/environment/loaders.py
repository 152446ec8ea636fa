"""Passage loaders for the Mortar environment.

Loaders provide passages to the Environment. They implement
``get_passage(name)`` returning a ``Passage`` or ``None`` when no passage has
that name, and ``list_passages()`` returning the known names.

Built-in Loaders:
- ``DictLoader``: Load from an in-memory dictionary (testing/embedded)
- ``FunctionLoader``: Wrap a callable as a loader (quick one-offs)
- ``ChoiceLoader``: Try multiple loaders in order

Custom Loaders:
Implement the Loader protocol:
    ```python
    class DatabaseLoader:
        def get_passage(self, name: str) -> Passage | None:
            row = db.query("SELECT text, tags FROM passages WHERE name = ?", name)
            if not row:
                return None
            return Passage(name, row.text, tuple(row.tags.split()))

        def list_passages(self) -> list[str]:
            return [r.name for r in db.query("SELECT name FROM passages")]
    ```

"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Protocol

from mortar.utils.values import slugify

logger = logging.getLogger(__name__)

# Special passages rendered by the engine around every passage
SPECIAL_PASSAGE_NAMES = frozenset({"StoryFooter", "StoryHeader", "StoryInit", "StoryInterface"})
# Names with a special meaning in other story formats, but not here
_FOREIGN_PASSAGE_NAMES = frozenset({"PassageDone", "PassageFooter", "PassageHeader", "PassageReady"})


@dataclass(frozen=True, slots=True)
class Passage:
    """A named unit of passage text.

    Attributes:
        name: Passage name (surrounding whitespace removed)
        text: Passage source
        tags: Sorted tag names
        slug: CSS-friendly form of the name
    """

    name: str
    text: str
    tags: tuple[str, ...] = ()
    slug: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", self.name.strip())
        object.__setattr__(self, "tags", tuple(sorted(tag for tag in self.tags if tag)))
        object.__setattr__(self, "slug", slugify(self.name))

    def __str__(self) -> str:
        return f'Passage "{self.name}"'


def check_passage_name(name: str) -> None:
    """Reject reserved names and warn about names that look like mistakes.

    Raises:
        ValueError: For ``Story*`` names without a meaning in Mortar
    """
    if name in _FOREIGN_PASSAGE_NAMES:
        logger.warning(
            'The passage name "%s" has no special meaning. Use "StoryHeader" or '
            '"StoryFooter" instead.',
            name,
        )
    elif name.startswith("Story") and name not in SPECIAL_PASSAGE_NAMES:
        raise ValueError(f'The passage name "{name}" is not allowed')
    elif name.startswith("::"):
        logger.warning('Found a passage named "%s"; the leading "::" is likely a mistake', name)


class Loader(Protocol):
    def get_passage(self, name: str) -> Passage | None: ...

    def list_passages(self) -> list[str]: ...


class DictLoader:
    """Load passages from an in-memory dictionary.

    Values are passage text, or ``(text, tags)`` pairs.

    Example:
            >>> loader = DictLoader({
            ...     "Start": "You wake up. [[Look around]]",
            ...     "Look around": ("Nothing here.", ["dark"]),
            ... })
            >>> loader.get_passage("Look around").tags
            ('dark',)

    Raises:
        ValueError: If a name is reserved (see ``check_passage_name``)
    """

    __slots__ = ("_passages",)

    def __init__(self, mapping: Mapping[str, str | tuple[str, Iterable[str]]]):
        passages: dict[str, Passage] = {}
        for name, value in mapping.items():
            if isinstance(value, str):
                passage = Passage(name, value)
            else:
                text, tags = value
                passage = Passage(name, text, tuple(tags))
            check_passage_name(passage.name)
            passages[passage.name] = passage
        self._passages = passages

    def get_passage(self, name: str) -> Passage | None:
        return self._passages.get(name)

    def list_passages(self) -> list[str]:
        return sorted(self._passages)


class FunctionLoader:
    """Wrap a callable as a passage loader.

    The function takes a passage name and returns the text, a
    ``(text, tags)`` pair, a ``Passage``, or ``None`` when not found.

    Example:
            >>> def load(name):
            ...     if name == "Start":
            ...         return "Hello!"
            ...     return None
            >>> FunctionLoader(load).get_passage("Start").text
            'Hello!'
    """

    __slots__ = ("_load_func",)

    def __init__(
        self,
        load_func: Callable[[str], str | tuple[str, Iterable[str]] | Passage | None],
    ):
        self._load_func = load_func

    def get_passage(self, name: str) -> Passage | None:
        """Call the load function and normalize the result."""
        result = self._load_func(name)
        if result is None or isinstance(result, Passage):
            return result
        if isinstance(result, str):
            return Passage(name, result)
        text, tags = result
        return Passage(name, text, tuple(tags))

    def list_passages(self) -> list[str]:
        """FunctionLoader cannot enumerate passages."""
        return []


class ChoiceLoader:
    """Try multiple loaders in order, returning the first match.

    Example:
            >>> overrides = DictLoader({"Start": "New opening"})
            >>> story = DictLoader({"Start": "Old opening", "End": "Fin"})
            >>> loader = ChoiceLoader([overrides, story])
            >>> loader.get_passage("Start").text
            'New opening'
    """

    __slots__ = ("_loaders",)

    def __init__(self, loaders: list[Loader]):
        self._loaders = loaders

    def get_passage(self, name: str) -> Passage | None:
        for loader in self._loaders:
            passage = loader.get_passage(name)
            if passage is not None:
                return passage
        return None

    def list_passages(self) -> list[str]:
        """Merge passage lists from all loaders (deduplicated, sorted)."""
        names: set[str] = set()
        for loader in self._loaders:
            names.update(loader.list_passages())
        return sorted(names)
