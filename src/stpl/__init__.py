"""stpl - composable document templates

Templates are plain Python values: build a tree, stream it into a sink.
The same templates can also run in a child process (``stpl.dynamic``) so
they can be rebuilt without restarting the host.
"""

from stpl._version import __version__
from stpl.builder import Tag
from stpl.nodes import (
    EMPTY,
    Deferred,
    Element,
    Node,
    Raw,
    Seq,
    Text,
    deferred,
    raw,
    seq,
    to_node,
)
from stpl.registry import (
    Template,
    TemplateRegistry,
    default_registry,
    load_registry,
    register,
    resolve,
    template,
)
from stpl.renderer import render, render_to_bytes, render_to_string
from stpl.writer import Writer, escape_attr, escape_text

__all__ = [
    "__version__",
    # Nodes
    "Node",
    "Raw",
    "Text",
    "Element",
    "Seq",
    "Deferred",
    "EMPTY",
    "Tag",
    # Factory functions
    "deferred",
    "raw",
    "seq",
    "to_node",
    # Rendering
    "render",
    "render_to_bytes",
    "render_to_string",
    "Writer",
    "escape_text",
    "escape_attr",
    # Registry
    "Template",
    "TemplateRegistry",
    "default_registry",
    "load_registry",
    "register",
    "resolve",
    "template",
]
