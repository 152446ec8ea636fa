"""Mortar environment: configuration, passages, macros and diagnostics."""

from mortar.environment.core import Constants, Environment
from mortar.environment.exceptions import (
    DynamicAttributeError,
    ErrorCode,
    ExpressionError,
    MacroError,
    MortarError,
    PassageNotFoundError,
    RegistryFrozenError,
    RenderError,
    SourceSnippet,
    build_source_snippet,
)
from mortar.environment.loaders import (
    ChoiceLoader,
    DictLoader,
    FunctionLoader,
    Loader,
    Passage,
)
from mortar.environment.registry import MacroFlag, MacroRegistry, MacroSpec, is_macro

__all__ = [
    "ChoiceLoader",
    "Constants",
    "DictLoader",
    "DynamicAttributeError",
    "Environment",
    "ErrorCode",
    "ExpressionError",
    "FunctionLoader",
    "Loader",
    "MacroError",
    "MacroFlag",
    "MacroRegistry",
    "MacroSpec",
    "MortarError",
    "PassageNotFoundError",
    "Passage",
    "RegistryFrozenError",
    "RenderError",
    "SourceSnippet",
    "build_source_snippet",
    "is_macro",
]
