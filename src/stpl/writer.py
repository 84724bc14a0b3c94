"""Escaping rules and the Writer adapter over output sinks.

A sink is anything with a ``write`` method. Text sinks (``io.TextIOBase``,
e.g. ``StringIO``) receive ``str``; every other sink receives ``bytes``.
The escaping logic is the same for both.
"""

from __future__ import annotations

import io
from typing import Any

from stpl.exceptions import SinkWriteError

ENCODING = "utf-8"

_TEXT_ESCAPES = {
    ord("&"): "&amp;",
    ord("<"): "&lt;",
    ord(">"): "&gt;",
}

_ATTR_ESCAPES = {
    **_TEXT_ESCAPES,
    ord('"'): "&quot;",
    ord("'"): "&#x27;",
    # grave accent closes unquoted attributes in old IE
    ord("`"): "&#96;",
}


def escape_text(value: str) -> str:
    """Escape markup-significant characters for element content."""
    return value.translate(_TEXT_ESCAPES)


def escape_attr(value: str) -> str:
    """Escape a value for use inside a double-quoted attribute."""
    return value.translate(_ATTR_ESCAPES)


class Writer:
    """Gives a sink the two write operations a render tree needs.

    ``raw`` writes data unmodified; ``text`` and ``attr`` escape first.
    Sink ``OSError`` is re-raised as :class:`SinkWriteError`.
    """

    def __init__(self, sink: Any):
        self.sink = sink
        self.is_text = isinstance(sink, io.TextIOBase)

    def raw(self, data: bytes | str) -> None:
        if self.is_text:
            if not isinstance(data, str):
                data = bytes(data).decode(ENCODING, errors="replace")
        elif isinstance(data, str):
            data = data.encode(ENCODING)
        try:
            self.sink.write(data)
        except OSError as e:
            raise SinkWriteError(f"Sink write failed: {e}") from e

    def text(self, value: str) -> None:
        self.raw(escape_text(value))

    def attr(self, value: str) -> None:
        self.raw(escape_attr(value))

    def flush(self) -> None:
        flush = getattr(self.sink, "flush", None)
        if flush is None:
            return
        try:
            flush()
        except OSError as e:
            raise SinkWriteError(f"Sink flush failed: {e}") from e
