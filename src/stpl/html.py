"""Markup helpers.

Any public attribute of this module is a fresh Tag of that name, so
templates can write::

    from stpl import html

    html.div.class_("main")(html.h1("Welcome!"), html.p(text))

Trailing underscores are dropped for names that clash with Python
keywords (``html.del_``, ``html.object_``).
"""

from __future__ import annotations

from stpl.builder import Tag
from stpl.nodes import Raw


def tag(name: str) -> Tag:
    """Create a builder for ``name``."""
    return Tag(name)


def doctype(kind: str = "html") -> Raw:
    return Raw(f"<!DOCTYPE {kind}>")


nbsp = Raw("&nbsp;")
lt = Raw("&lt;")
gt = Raw("&gt;")


def __getattr__(name: str) -> Tag:
    if name.startswith("_"):
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    return Tag(name.rstrip("_"))
