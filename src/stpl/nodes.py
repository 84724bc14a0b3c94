"""Render value model - the tree of renderable values.

Every node kind shares one capability: write itself into a Writer.

    Raw       bytes written unmodified (caller asserts they are safe)
    Text      string written with markup characters escaped
    Element   <tag attrs>children</tag>
    Seq       members written in order, no separators
    Deferred  producer called once when traversal reaches it

Trees are built bottom-up and never mutated after construction.
"""

from __future__ import annotations

import functools
import io
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from stpl.exceptions import NodeConsumedError
from stpl.writer import ENCODING, Writer

Attr = tuple[str, "str | None"]


class Node(ABC):
    """Base class for everything that can be rendered."""

    @abstractmethod
    def render(self, out: Writer) -> None:
        """Write this subtree into ``out``."""
        pass

    def render_to_bytes(self) -> bytes:
        buf = io.BytesIO()
        self.render(Writer(buf))
        return buf.getvalue()

    def render_to_string(self) -> str:
        buf = io.StringIO()
        self.render(Writer(buf))
        return buf.getvalue()


@dataclass(frozen=True)
class Raw(Node):
    """Pre-sanitized content, written byte for byte."""

    data: bytes

    def __post_init__(self):
        if isinstance(self.data, str):
            object.__setattr__(self, "data", self.data.encode(ENCODING))
        elif not isinstance(self.data, bytes):
            object.__setattr__(self, "data", bytes(self.data))

    def render(self, out: Writer) -> None:
        out.raw(self.data)


@dataclass(frozen=True)
class Text(Node):
    """Plain text, escaped on the way out."""

    value: str

    def render(self, out: Writer) -> None:
        out.text(self.value)


@dataclass(frozen=True)
class Seq(Node):
    """Ordered siblings."""

    items: tuple[Node, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(to_node(item) for item in self.items))

    def render(self, out: Writer) -> None:
        for item in self.items:
            item.render(out)

    def __len__(self) -> int:
        return len(self.items)


EMPTY = Seq()


@dataclass(frozen=True)
class Element(Node):
    """A tag with ordered attributes and a single child node.

    Attribute keys may repeat; every pair is written in insertion order.
    A ``None`` value writes a valueless attribute.
    """

    tag: str
    attrs: tuple[Attr, ...] = ()
    children: Node = field(default=EMPTY)

    def __post_init__(self):
        if not isinstance(self.children, Node):
            object.__setattr__(self, "children", to_node(self.children))

    def render(self, out: Writer) -> None:
        out.raw("<" + self.tag)
        for key, value in self.attrs:
            out.raw(" " + key)
            if value is not None:
                out.raw('="')
                out.attr(value)
                out.raw('"')
        out.raw(">")
        self.children.render(out)
        out.raw("</" + self.tag + ">")


class Deferred(Node):
    """A subtree computed at render time.

    The producer is called exactly once, when traversal reaches this node,
    and may return anything :func:`to_node` accepts (including further
    Deferred nodes). Closures see captured state as it is at render time,
    not as it was when the node was built.
    """

    def __init__(self, producer: Callable[[], Any]):
        if not callable(producer):
            raise TypeError(f"Deferred producer must be callable, got {producer!r}")
        self.producer = producer
        self.consumed = False

    def render(self, out: Writer) -> None:
        if self.consumed:
            raise NodeConsumedError(f"Deferred node {self.producer!r} already rendered")
        self.consumed = True
        to_node(self.producer()).render(out)

    def __repr__(self) -> str:
        state = "consumed" if self.consumed else "pending"
        return f"Deferred({self.producer!r}, {state})"


def deferred(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Deferred:
    """Create a Deferred node, binding ``args``/``kwargs`` now.

    The bound objects are held by reference; pass copies to snapshot
    mutable state.
    """
    if args or kwargs:
        return Deferred(functools.partial(fn, *args, **kwargs))
    return Deferred(fn)


def raw(data: bytes | str) -> Raw:
    """Mark content as trusted markup."""
    return Raw(data)


def to_node(value: Any) -> Node:
    """Coerce a renderable Python value into a Node."""
    if isinstance(value, Node):
        return value
    if isinstance(value, str):
        return Text(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return Raw(bytes(value))
    if value is None:
        return EMPTY
    if isinstance(value, bool):
        raise TypeError("Cannot render a bool; convert it to text explicitly")
    if isinstance(value, (int, float)):
        return Text(str(value))
    if isinstance(value, (Mapping, BaseModel)):
        raise TypeError(
            f"Cannot render a {type(value).__name__}; build nodes from its fields"
        )
    if isinstance(value, Iterable):
        return Seq(tuple(to_node(item) for item in value))
    raise TypeError(f"Cannot render value of type {type(value).__name__}")


def seq(*items: Any) -> Seq:
    """Compose siblings into a single node."""
    return Seq(tuple(to_node(item) for item in items))
