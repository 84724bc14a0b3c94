"""Renderer - streams a render tree into a sink.

Like ReactDOM.render(): takes a tree and produces output. Traversal is
depth-first, left to right, in construction order, and keeps no state
between calls.
"""

from __future__ import annotations

from typing import Any

from stpl.nodes import to_node
from stpl.writer import Writer


def render(node: Any, sink: Any) -> None:
    """Render ``node`` into ``sink``.

    Args:
        node: A Node or any value ``to_node`` accepts.
        sink: Text sink (``io.TextIOBase``) or byte sink (anything else
            with ``write``).

    Raises:
        SinkWriteError: If the sink raises ``OSError``.
    """
    out = Writer(sink)
    to_node(node).render(out)
    out.flush()


def render_to_bytes(node: Any) -> bytes:
    return to_node(node).render_to_bytes()


def render_to_string(node: Any) -> str:
    return to_node(node).render_to_string()
