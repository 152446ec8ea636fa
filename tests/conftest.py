"""Pytest configuration and fixtures for Mortar tests."""

from __future__ import annotations

import pytest

from mortar import DictLoader, Environment, MemoryHost, NewlineMode, Renderer


@pytest.fixture
def env():
    """Create a basic Mortar Environment with no passages."""
    return Environment(DictLoader({}))


@pytest.fixture
def host():
    """Create an in-memory host with a virtual clock."""
    return MemoryHost()


@pytest.fixture
def env_with_loader():
    """Create an Environment with a few linked test passages."""
    loader = DictLoader(
        {
            "Start": "You wake up.\n\n[[Look around->Room]]",
            "Room": ("A dusty room. @include(\"Lamp\")", ["indoors"]),
            "Lamp": "The lamp is *off*.",
            "Loop": '@include("Loop")',
        }
    )
    return Environment(loader=loader)


def render_html(
    env: Environment,
    source: str,
    *,
    story: dict | None = None,
    temp: dict | None = None,
    host: MemoryHost | None = None,
    mode: NewlineMode | None = None,
) -> str:
    """Render markup into the host document and return its inner HTML.

    Args:
        env: Environment providing macros and passages
        source: Passage markup
        story: Story variables (a new dict when omitted)
        temp: Temp variables (a new dict when omitted)
        host: Host to render into (a new MemoryHost when omitted)
        mode: Newline mode (the environment default when omitted)
    """
    host = host if host is not None else MemoryHost()
    renderer = Renderer(env, host, story=story)
    nodes = env.parse_source(source, "Test")
    renderer.render(host.document, temp if temp is not None else {}, nodes, mode)
    return host.document.inner_html


def error_messages(host: MemoryHost) -> list[str]:
    """Text of every inline error diagnostic in a host document."""
    return [span.text_content for span in host.document.query_selector_all(".mortar-error")]
