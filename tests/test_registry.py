"""Tests for the template registry."""

import io
import threading

import pytest
from pydantic import BaseModel

from stpl import Text, TemplateRegistry, default_registry, load_registry
from stpl.exceptions import (
    DeserializationError,
    DuplicateTemplateError,
    InvalidTemplateIdError,
    RegistryFrozenError,
    UnknownTemplateError,
)


class Person(BaseModel):
    name: str
    age: int = 0


def hello(data):
    return Text(f"hello {data.name}")


@pytest.fixture
def registry():
    reg = TemplateRegistry()
    reg.register("hello", hello, model=Person)
    return reg


class TestRegistration:
    def test_resolve_registered(self, registry):
        tmpl = registry.resolve("hello")
        assert tmpl.id == "hello"
        assert tmpl.entry is hello
        assert tmpl.model is Person

    def test_duplicate_id_rejected(self, registry):
        with pytest.raises(DuplicateTemplateError, match="hello"):
            registry.register("hello", hello)

    def test_unknown_id(self, registry):
        with pytest.raises(UnknownTemplateError, match="Unknown template: missing"):
            registry.resolve("missing")

    def test_unknown_id_is_key_error(self, registry):
        with pytest.raises(KeyError):
            registry.resolve("missing")

    def test_int_and_str_ids_are_the_same_key(self):
        reg = TemplateRegistry()
        reg.register(7, hello)
        assert reg.resolve("7").id == "7"
        assert 7 in reg
        with pytest.raises(DuplicateTemplateError):
            reg.register("7", hello)

    @pytest.mark.parametrize("bad", ["", "a\x00b", True, 1.5, None])
    def test_invalid_ids(self, bad):
        with pytest.raises(InvalidTemplateIdError):
            TemplateRegistry().register(bad, hello)

    def test_decorator_returns_function(self):
        reg = TemplateRegistry()

        @reg.template("deco")
        def deco(data):
            return "x"

        assert deco(None) == "x"
        assert reg.ids() == ["deco"]
        assert len(reg) == 1
        assert list(reg) == ["deco"]


class TestFreeze:
    def test_frozen_registry_rejects_register(self, registry):
        registry.freeze()
        assert registry.frozen
        with pytest.raises(RegistryFrozenError):
            registry.register("late", hello)

    def test_frozen_registry_still_resolves(self, registry):
        registry.freeze()
        registry.freeze()
        assert registry.resolve("hello").id == "hello"

    def test_concurrent_reads_after_freeze(self, registry):
        registry.freeze()
        results = []

        def read():
            for _ in range(200):
                results.append(registry.resolve("hello").id)

        threads = [threading.Thread(target=read) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert results == ["hello"] * 800


class TestTemplate:
    def test_load_with_model(self, registry):
        data = registry.resolve("hello").load(b'{"name": "Ada", "age": 36}')
        assert data == Person(name="Ada", age=36)

    def test_load_without_model_is_json(self):
        reg = TemplateRegistry()
        tmpl = reg.register("plain", lambda d: d["x"])
        assert tmpl.load(b'{"x": [1, 2]}') == {"x": [1, 2]}
        assert tmpl.load(b"") is None

    def test_load_invalid_model_payload(self, registry):
        with pytest.raises(DeserializationError, match="hello"):
            registry.resolve("hello").load(b'{"age": "old"}')

    def test_load_invalid_json(self):
        tmpl = TemplateRegistry().register("plain", lambda d: d)
        with pytest.raises(DeserializationError):
            tmpl.load(b"{not json")

    def test_render_streams_into_sink(self, registry):
        tmpl = registry.resolve("hello")
        buf = io.BytesIO()
        tmpl.render(tmpl.load(b'{"name": "<Ada>"}'), buf)
        assert buf.getvalue() == b"hello &lt;Ada&gt;"

    def test_build_coerces_entry_result(self):
        tmpl = TemplateRegistry().register("list", lambda d: ["a", 1])
        assert tmpl.build(None).render_to_string() == "a1"


class TestLoadRegistry:
    def test_module_attribute(self):
        import fixture_templates

        assert load_registry("fixture_templates:registry") is fixture_templates.registry

    def test_bare_module_returns_default(self):
        assert load_registry("fixture_templates") is default_registry

    def test_attribute_must_be_registry(self):
        with pytest.raises(TypeError, match="not a TemplateRegistry"):
            load_registry("fixture_templates:Greeting")
