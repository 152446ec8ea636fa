"""Base node class for Mortar template trees."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Node:
    """Base class for all template nodes.

    Every node records the passage it came from and the line it started on,
    so diagnostics raised while rendering it can point back at the source.
    Nodes are immutable: content changes by re-parsing, never by patching.

    """

    passage_name: str
    line_number: int
