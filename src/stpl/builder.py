"""Element builder - fluent, persistent accumulation of attributes.

    div = Tag("div")
    card = div.class_("card").attr("data-x", 1)   # div is unchanged
    node = card("hello", Tag("b")("world"))       # seals card

Every setter returns a new Tag. Calling a Tag with content seals it and
returns an Element; a sealed Tag cannot be called or extended again.
Rendering an uncalled Tag writes an empty element and seals it too.
"""

from __future__ import annotations

import re
from typing import Any

from stpl.exceptions import BuilderFinalizedError, InvalidNameError
from stpl.nodes import EMPTY, Attr, Element, Node, Seq, to_node
from stpl.writer import Writer

# Anything that would let a name escape its position in the markup
_BAD_NAME = re.compile(r"[\s\"'<>/=`\x00-\x1f\x7f]")


def _check_name(kind: str, name: str) -> str:
    if not isinstance(name, str) or not name or _BAD_NAME.search(name):
        raise InvalidNameError(kind, name)
    return name


def python_attr_name(name: str) -> str:
    """Map a keyword argument name to an attribute name.

    ``class_`` -> ``class``, ``data_toggle`` -> ``data-toggle``.
    """
    return name.rstrip("_").replace("_", "-")


class Tag(Node):
    """Transient builder for one element."""

    def __init__(self, name: str, attrs: tuple[Attr, ...] = ()):
        self.name = _check_name("tag", name)
        self.attrs = attrs
        self._sealed = False

    def _with(self, key: str, value: str | None) -> Tag:
        if self._sealed:
            raise BuilderFinalizedError(self.name)
        return Tag(self.name, (*self.attrs, (_check_name("attribute", key), value)))

    def attr(self, key: str, value: Any) -> Tag:
        """Append ``key="value"``. Repeated keys are kept, in order."""
        return self._with(key, str(value))

    def flag(self, key: str) -> Tag:
        """Append a valueless attribute such as ``disabled``."""
        return self._with(key, None)

    def set(self, **attrs: Any) -> Tag:
        """Append keyword attributes.

        ``True`` appends a valueless attribute, ``False`` and ``None``
        are skipped.
        """
        tag = self
        for name, value in attrs.items():
            if value is None or value is False:
                continue
            key = python_attr_name(name)
            tag = tag.flag(key) if value is True else tag.attr(key, value)
        # zero usable attrs still has to respect the seal
        if tag is self and self._sealed:
            raise BuilderFinalizedError(self.name)
        return tag

    def id(self, value: str) -> Tag:
        return self.attr("id", value)

    def class_(self, value: str) -> Tag:
        return self.attr("class", value)

    def _seal(self) -> None:
        if self._sealed:
            raise BuilderFinalizedError(self.name)
        self._sealed = True

    def __call__(self, *children: Any) -> Element:
        self._seal()
        if not children:
            content: Node = EMPTY
        elif len(children) == 1:
            content = to_node(children[0])
        else:
            content = Seq(tuple(to_node(child) for child in children))
        return Element(self.name, self.attrs, content)

    @property
    def sealed(self) -> bool:
        return self._sealed

    def render(self, out: Writer) -> None:
        self._seal()
        Element(self.name, self.attrs, EMPTY).render(out)

    def __repr__(self) -> str:
        return f"Tag({self.name!r}, attrs={self.attrs!r})"
