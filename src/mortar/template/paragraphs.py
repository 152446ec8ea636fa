"""Newline-mode output policy.

In ``NewlineMode.BLOCK`` consecutive inline output is gathered into runs
that end at a paragraph break or at block-level output. A run becomes a
``<p>`` when it holds prose (non-blank text, a link, or an inline
element) or when macro and variable output is followed by more output in
the same run, as in ``$first $last``. A lone result is emitted as-is, so
``@include("Map")`` on its own line is not wrapped in a paragraph.

The other modes never wrap:

    INLINE      paragraph break -> <br><br>
    ALL_BREAKS  every line break -> <br>
    NO_BREAKS   line breaks stay in the text
"""

from __future__ import annotations

from mortar.dom import Element, Fragment, Node, Text
from mortar.render_context import NewlineMode
from mortar.utils.constants import PHRASING_TAGS, SOMETIMES_PHRASING_TAGS


def is_phrasing(node: Node) -> bool:
    """True if ``node`` can sit inside a paragraph.

    ``a``, ``del``, ``ins`` and ``map`` qualify only when all their
    children do.
    """
    if not isinstance(node, Element):
        return True
    if node.tag in PHRASING_TAGS:
        return True
    if node.tag in SOMETIMES_PHRASING_TAGS:
        return all(is_phrasing(child) for child in node.children)
    return False


def append_text(container: Element | Fragment, text: str, mode: NewlineMode) -> None:
    """Append literal text outside BLOCK mode."""
    if mode is not NewlineMode.ALL_BREAKS:
        container.append(text)
        return
    lines = text.split("\n")
    container.append(lines[0])
    for line in lines[1:]:
        container.append(Element("br"), line)


def append_paragraph_break(container: Element | Fragment, raw: str, mode: NewlineMode) -> None:
    """Append a paragraph break outside BLOCK mode."""
    if mode is NewlineMode.INLINE:
        container.append(Element("br"), Element("br"))
    elif mode is NewlineMode.ALL_BREAKS:
        container.append(*(Element("br") for _ in range(raw.count("\n"))))
    else:
        container.append(raw)


class ParagraphBuilder:
    """Collects BLOCK-mode output and wraps eligible runs in ``<p>``.

    Example:
        >>> builder = ParagraphBuilder(article)
        >>> builder.add_text("Hello")
        >>> builder.flush()
        >>> article.inner_html
        '<p>Hello</p>'
    """

    __slots__ = ("_buffer", "_container", "_results", "_wrap")

    def __init__(self, container: Element | Fragment):
        self._container = container
        self._buffer = Fragment()
        self._wrap = False
        self._results = 0

    def add_text(self, text: str) -> None:
        if text.strip():
            self._wrap = True
        self._buffer.append(text)

    def add(self, output: Fragment, *, prose: bool) -> None:
        """Add the rendered output of one node.

        ``prose`` marks output of markup the author wrote inline (elements
        and links) as opposed to macro or variable output.
        """
        visible = False
        for child in list(output.children):
            if not is_phrasing(child):
                self._count(visible, prose)
                visible = False
                self.flush()
                self._container.append(child)
                continue
            if isinstance(child, Element) or child.text_content.strip():
                visible = True
            self._buffer.append(child)
        self._count(visible, prose)

    def _count(self, visible: bool, prose: bool) -> None:
        if not visible:
            return
        if prose:
            self._wrap = True
        else:
            self._results += 1

    def paragraph_break(self) -> None:
        self.flush()

    def flush(self) -> None:
        if not self._buffer.children:
            return
        eligible = self._wrap or self._results > 1
        if eligible and not _is_blank(self._buffer):
            self._container.append(Element("p", {}, [self._buffer]))
        else:
            self._container.append(self._buffer)
        self._buffer = Fragment()
        self._wrap = False
        self._results = 0


def _is_blank(fragment: Fragment) -> bool:
    return all(isinstance(child, Text) and not child.data.strip() for child in fragment.children)
