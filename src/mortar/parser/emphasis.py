"""Emphasis delimiter handling for Mortar.

``*text*`` becomes ``<em>`` and ``**text**`` becomes ``<strong>``, using the
CommonMark left/right-flanking rules and the "rule of 3" for deciding which
runs of asterisks can open or close emphasis.

Uses inline TYPE_CHECKING declarations for host attributes.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, cast

from mortar.nodes import Element, Text

if TYPE_CHECKING:
    from mortar.nodes import Node

_STARS = re.compile(r"\**")


def _is_whitespace(c: str) -> bool:
    return c in "\t\n\f\r" or unicodedata.category(c) == "Zs"


def _is_punctuation(c: str) -> bool:
    return unicodedata.category(c)[0] in "PS"


@dataclass(slots=True)
class Delimiter:
    """A run of ``*`` characters that may open or close emphasis.

    ``index`` points at the run's Text node in the body output list.
    """

    index: int
    length: int
    can_open: bool
    can_close: bool
    original_length: int
    original_can_close: bool


def merge_text(nodes: list[Node]) -> list[Node]:
    """Join adjacent Text nodes and drop empty ones."""
    merged: list[Node] = []
    for node in nodes:
        if isinstance(node, Text):
            if not node.value:
                continue
            if merged and isinstance(merged[-1], Text):
                merged[-1] = replace(merged[-1], value=merged[-1].value + node.value)
                continue
        merged.append(node)
    return merged


class EmphasisMixin:
    """Mixin for recognizing and resolving ``*`` delimiter runs."""

    if TYPE_CHECKING:
        # Host attributes (from Parser.__init__)
        _source: str
        _pos: int
        passage_name: str

        # From Parser
        def _consume(self, pattern: re.Pattern[str]) -> re.Match[str] | None: ...

    def _create_delimiter(self, index: int) -> Delimiter:
        """Read a run of ``*`` whose first star has been consumed."""
        before_pos = self._pos - 2
        stars = self._consume(_STARS)
        length = 1 + (len(stars[0]) if stars else 0)
        char_before = self._source[before_pos] if before_pos >= 0 else " "
        char_after = self._source[self._pos] if self._pos < len(self._source) else " "

        before_is_space = _is_whitespace(char_before)
        after_is_space = _is_whitespace(char_after)
        before_is_punct = _is_punctuation(char_before)
        after_is_punct = _is_punctuation(char_after)

        can_open = not after_is_space and (
            not after_is_punct or before_is_space or before_is_punct
        )
        can_close = not before_is_space and (
            not before_is_punct or after_is_space or after_is_punct
        )
        return Delimiter(
            index=index,
            length=length,
            can_open=can_open,
            can_close=can_close,
            original_length=length,
            original_can_close=can_close,
        )

    def _resolve_emphasis(self, output: list[Node], delimiters: list[Delimiter]) -> list[Node]:
        """Turn matched delimiter runs in ``output`` into em/strong Elements.

        Unmatched stars stay as literal text.
        """
        while True:
            closer_at = next(
                (i for i, d in enumerate(delimiters) if d.can_close and d.length > 0), -1
            )
            if closer_at == -1:
                break
            closer = delimiters[closer_at]

            opener_at = closer_at - 1
            while opener_at >= 0:
                opener = delimiters[opener_at]
                if opener.can_open and opener.length > 0:
                    odd_match = (
                        (opener.original_can_close or closer.can_open)
                        and closer.original_length % 3 != 0
                        and (opener.original_length + closer.original_length) % 3 == 0
                    )
                    if not odd_match:
                        break
                opener_at -= 1
            if opener_at == -1:
                closer.can_close = False
                continue
            opener = delimiters[opener_at]

            strong = closer.length >= 2 and opener.length >= 2
            used = 2 if strong else 1
            opener.length -= used
            closer.length -= used
            for d in (opener, closer):
                star_text = cast("Text", output[d.index])
                output[d.index] = replace(star_text, value=star_text.value[used:])

            children = output[opener.index + 1 : closer.index]
            element = Element(
                passage_name=self.passage_name,
                line_number=output[opener.index].line_number,
                name="strong" if strong else "em",
                content=tuple(merge_text(children)),
            )
            output[opener.index + 1 : closer.index] = [element]

            # Runs between the pair are now inside the element
            del delimiters[opener_at + 1 : closer_at]
            shift = len(children) - 1
            for d in delimiters[opener_at + 1 :]:
                d.index -= shift

        return output
