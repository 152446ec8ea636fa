"""Mortar template package: rendering template trees into document nodes."""

from mortar.template.core import Renderer
from mortar.template.helpers import SAFE_BUILTINS, get_property, str_safe
from mortar.template.paragraphs import ParagraphBuilder, is_phrasing

__all__ = [
    "SAFE_BUILTINS",
    "ParagraphBuilder",
    "Renderer",
    "get_property",
    "is_phrasing",
    "str_safe",
]
