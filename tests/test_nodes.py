"""Tests for the render value model and the renderer."""

import io

import pytest
from pydantic import BaseModel

from stpl import (
    EMPTY,
    Deferred,
    Element,
    Raw,
    Seq,
    Text,
    deferred,
    render,
    render_to_bytes,
    render_to_string,
    seq,
    to_node,
)
from stpl.exceptions import NodeConsumedError


def sample_tree():
    return Element(
        "div",
        (("id", "x"), ("title", 'a "quoted" <title>')),
        Seq((Text("<a>&b"), Raw(b"<br>"), Element("span", (), Text("inner")))),
    )


class TestLeaves:
    def test_text_is_escaped(self):
        assert render_to_bytes(Text("<a>&b")) == b"&lt;a&gt;&amp;b"

    def test_raw_is_unchanged(self):
        assert render_to_bytes(Raw(b"<b>")) == b"<b>"

    def test_raw_accepts_str(self):
        assert Raw("<b>").data == b"<b>"

    def test_empty_seq_renders_nothing(self):
        assert render_to_bytes(EMPTY) == b""


class TestElement:
    def test_empty_element(self):
        assert render_to_bytes(Element("div", (), Seq(()))) == b"<div></div>"

    def test_element_with_attr_and_text(self):
        node = Element("div", (("id", "x"),), Text("hi"))
        assert render_to_bytes(node) == b'<div id="x">hi</div>'

    def test_attribute_values_always_escaped(self):
        node = Element("a", (("href", '/?a=1&b="2"'),), EMPTY)
        assert render_to_string(node) == '<a href="/?a=1&amp;b=&quot;2&quot;"></a>'

    def test_duplicate_attributes_all_emitted(self):
        node = Element("p", (("a", "1"), ("b", "2"), ("a", "3")))
        assert render_to_string(node) == '<p a="1" b="2" a="3"></p>'

    def test_valueless_attribute(self):
        node = Element("input", (("type", "checkbox"), ("checked", None)))
        assert render_to_string(node) == '<input type="checkbox" checked></input>'


class TestRenderer:
    def test_depth_first_left_to_right(self):
        assert render_to_string(sample_tree()) == (
            '<div id="x" title="a &quot;quoted&quot; &lt;title&gt;">'
            "&lt;a&gt;&amp;b<br><span>inner</span></div>"
        )

    def test_render_twice_is_byte_identical(self):
        tree = sample_tree()
        first, second = io.BytesIO(), io.BytesIO()
        render(tree, first)
        render(tree, second)
        assert first.getvalue() == second.getvalue()

    def test_string_and_byte_sinks_agree(self):
        tree = sample_tree()
        text, data = io.StringIO(), io.BytesIO()
        render(tree, text)
        render(tree, data)
        assert text.getvalue().encode("utf-8") == data.getvalue()

    def test_sequence_is_renderable_without_concat(self):
        assert render_to_string(["a", Raw("<hr>"), 3, None, ("b", "<c>")]) == "a<hr>3b&lt;c&gt;"


class TestCoercion:
    def test_node_passes_through(self):
        node = Text("x")
        assert to_node(node) is node

    def test_scalars(self):
        assert to_node("x") == Text("x")
        assert to_node(b"x") == Raw(b"x")
        assert to_node(42) == Text("42")
        assert to_node(None) is EMPTY

    def test_nested_iterables(self):
        assert to_node(["a", ["b"]]) == Seq((Text("a"), Seq((Text("b"),))))

    def test_generator_is_consumed_at_construction(self):
        node = to_node(str(i) for i in range(3))
        assert render_to_string(node) == "012"
        assert render_to_string(node) == "012"

    def test_bool_rejected(self):
        with pytest.raises(TypeError, match="bool"):
            to_node(True)

    def test_unknown_type_rejected(self):
        with pytest.raises(TypeError, match="object"):
            to_node(object())

    def test_mapping_rejected(self):
        with pytest.raises(TypeError, match="dict"):
            render_to_bytes({"name": "William"})

    def test_model_rejected(self):
        class Person(BaseModel):
            name: str

        with pytest.raises(TypeError, match="Person"):
            render_to_bytes(Person(name="William"))

    def test_element_children_coerced(self):
        node = Element("p", (), "hi & bye")
        assert node.children == Text("hi & bye")
        assert render_to_string(node) == "<p>hi &amp; bye</p>"

    def test_seq_items_coerced(self):
        node = Seq(["a", 1, b"<br>"])
        assert node.items == (Text("a"), Text("1"), Raw(b"<br>"))
        assert render_to_string(node) == "a1<br>"

    def test_element_rejects_unrenderable_child(self):
        with pytest.raises(TypeError):
            Element("p", (), object())

    def test_seq_helper(self):
        assert seq("a", 1) == Seq((Text("a"), Text("1")))


class TestDeferred:
    def test_called_at_traversal_point(self):
        events = []

        def produce():
            events.append("produce")
            return "middle"

        class Spy(Raw):
            def render(self, out):
                events.append(self.data.decode())
                super().render(out)

        tree = seq(Spy(b"<a>"), Deferred(produce), Spy(b"</a>"))
        assert events == []
        assert render_to_string(tree) == "<a>middle</a>"
        assert events == ["<a>", "produce", "</a>"]

    def test_called_exactly_once(self):
        calls = []
        node = Deferred(lambda: calls.append(1) or "x")
        assert render_to_string(node) == "x"
        with pytest.raises(NodeConsumedError):
            render_to_string(node)
        assert calls == [1]

    def test_nested_deferred(self):
        node = Deferred(lambda: ["a", Deferred(lambda: Text("<b>"))])
        assert render_to_string(node) == "a&lt;b&gt;"

    def test_closure_sees_live_state(self):
        state = {"user": "before"}
        node = Deferred(lambda: state["user"])
        state["user"] = "after"
        assert render_to_string(node) == "after"

    def test_deferred_binds_args_at_construction(self):
        name = "snapshot"
        node = deferred(lambda value: Text(value), name)
        name = "changed"  # noqa: F841
        assert render_to_string(node) == "snapshot"

    def test_producer_must_be_callable(self):
        with pytest.raises(TypeError, match="callable"):
            Deferred("not callable")
