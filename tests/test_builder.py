"""Tests for the element builder and markup helpers."""

import pytest

from stpl import Element, Tag, Text, html, render_to_string
from stpl.builder import python_attr_name
from stpl.exceptions import BuilderFinalizedError, InvalidNameError


def test_bare_tag_renders_empty_element():
    assert render_to_string(Tag("div")) == "<div></div>"


def test_attributes_kept_in_order_with_duplicates():
    tag = Tag("p").attr("a", 1).attr("b", 2).attr("a", 3)
    assert tag.attrs == (("a", "1"), ("b", "2"), ("a", "3"))
    assert render_to_string(tag) == '<p a="1" b="2" a="3"></p>'


def test_setters_return_new_builders():
    """Earlier references are not altered by later setters."""
    base = Tag("a").attr("href", "/")
    blue = base.class_("blue")
    red = base.class_("red")
    assert base.attrs == (("href", "/"),)
    assert blue.attrs == (("href", "/"), ("class", "blue"))
    assert red.attrs == (("href", "/"), ("class", "red"))


def test_call_finalizes_into_element():
    node = Tag("div").id("x")("hi")
    assert isinstance(node, Element)
    assert node.children == Text("hi")
    assert render_to_string(node) == '<div id="x">hi</div>'


def test_call_with_many_children():
    node = Tag("ul")(Tag("li")("a"), Tag("li")("b"))
    assert render_to_string(node) == "<ul><li>a</li><li>b</li></ul>"


def test_call_with_no_children():
    assert render_to_string(Tag("span")()) == "<span></span>"


def test_cannot_finalize_twice():
    tag = Tag("div")
    tag("once")
    assert tag.sealed
    with pytest.raises(BuilderFinalizedError, match="<div>"):
        tag("twice")


def test_sealed_builder_rejects_setters():
    tag = Tag("div")
    tag()
    with pytest.raises(BuilderFinalizedError):
        tag.attr("id", "late")
    with pytest.raises(BuilderFinalizedError):
        tag.set()


def test_rendering_bare_tag_seals_it():
    tag = Tag("hr")
    assert render_to_string(tag) == "<hr></hr>"
    assert tag.sealed
    with pytest.raises(BuilderFinalizedError):
        render_to_string(tag)
    with pytest.raises(BuilderFinalizedError):
        tag("late")


def test_setters_before_render_leave_base_open():
    base = Tag("hr")
    render_to_string(base.class_("rule"))
    assert not base.sealed
    assert render_to_string(base) == "<hr></hr>"


def test_set_maps_python_names():
    tag = Tag("button").set(
        type_="button", data_toggle="modal", disabled=True, hidden=False, title=None
    )
    assert tag.attrs == (("type", "button"), ("data-toggle", "modal"), ("disabled", None))
    assert render_to_string(tag) == (
        '<button type="button" data-toggle="modal" disabled></button>'
    )


def test_python_attr_name():
    assert python_attr_name("class_") == "class"
    assert python_attr_name("for_") == "for"
    assert python_attr_name("aria_label") == "aria-label"


def test_flag():
    assert render_to_string(Tag("input").flag("checked")) == "<input checked></input>"


@pytest.mark.parametrize("name", ["", "a b", "x>", 'q"', "a=b", "a/b"])
def test_invalid_attribute_names(name):
    with pytest.raises(InvalidNameError):
        Tag("div").attr(name, "v")


def test_invalid_tag_name():
    with pytest.raises(InvalidNameError, match="tag"):
        Tag("div onclick=x")


def test_html_module_tags():
    node = html.html(html.body(html.h1.class_("main")("Welcome!"), html.p("Hi, <you>")))
    assert render_to_string(node) == (
        '<html><body><h1 class="main">Welcome!</h1><p>Hi, &lt;you&gt;</p></body></html>'
    )


def test_html_module_gives_fresh_builders():
    html.div("first")
    assert render_to_string(html.div("second")) == "<div>second</div>"


def test_html_keyword_names():
    assert html.del_.name == "del"
    assert html.tag("my-widget").name == "my-widget"


def test_html_private_names_are_missing():
    with pytest.raises(AttributeError):
        html._private


def test_doctype_and_entities():
    assert render_to_string([html.doctype(), html.nbsp, html.lt, html.gt]) == (
        "<!DOCTYPE html>&nbsp;&lt;&gt;"
    )
