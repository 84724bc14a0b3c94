"""Template registry - maps template ids to rendering entry points.

Filled once at process start (usually by ``@template`` decorators running
at import time), then frozen. Reads never lock.
"""

from __future__ import annotations

import importlib
import json
import logging
import threading
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ValidationError

from stpl.exceptions import (
    DeserializationError,
    DuplicateTemplateError,
    InvalidTemplateIdError,
    RegistryFrozenError,
    UnknownTemplateError,
)
from stpl.nodes import Node, to_node
from stpl.renderer import render

log = logging.getLogger(__name__)

TemplateId = str | int
Entry = Callable[[Any], Any]


def normalize_id(template_id: TemplateId) -> str:
    """Return the canonical string form of a template id."""
    if isinstance(template_id, bool) or not isinstance(template_id, (str, int)):
        raise InvalidTemplateIdError(
            f"Template id must be str or int, got {type(template_id).__name__}"
        )
    key = str(template_id)
    if not key:
        raise InvalidTemplateIdError("Template id must not be empty")
    if "\x00" in key:
        raise InvalidTemplateIdError(f"Template id must not contain NUL: {key!r}")
    return key


@dataclass(frozen=True)
class Template:
    """A registered entry point and the model its input is parsed into."""

    id: str
    entry: Entry
    model: type[BaseModel] | None = None

    def load(self, payload: bytes) -> Any:
        """Deserialize a request payload into the entry point's input.

        Raises:
            DeserializationError: If the payload does not parse/validate.
        """
        try:
            if self.model is not None:
                return self.model.model_validate_json(payload)
            return json.loads(payload) if payload else None
        except (ValidationError, ValueError) as e:
            raise DeserializationError(self.id, str(e)) from e

    def build(self, data: Any) -> Node:
        return to_node(self.entry(data))

    def render(self, data: Any, sink: Any) -> None:
        render(self.build(data), sink)


class TemplateRegistry:
    """Write-once, then read-only, map of template id -> Template."""

    def __init__(self):
        self._templates: dict[str, Template] | Mapping[str, Template] = {}
        self._lock = threading.Lock()
        self._frozen = False

    def register(
        self, template_id: TemplateId, entry: Entry, *, model: type[BaseModel] | None = None
    ) -> Template:
        """Register ``entry`` under ``template_id``.

        Raises:
            DuplicateTemplateError: If the id is already present.
            RegistryFrozenError: If the registry was frozen.
        """
        key = normalize_id(template_id)
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError(key)
            if key in self._templates:
                raise DuplicateTemplateError(key)
            tmpl = Template(id=key, entry=entry, model=model)
            self._templates[key] = tmpl  # type: ignore[index]
        log.debug(f"Registered template {key}")
        return tmpl

    def template(
        self, template_id: TemplateId, *, model: type[BaseModel] | None = None
    ) -> Callable[[Entry], Entry]:
        """Decorator form of :meth:`register`; returns the function unchanged."""

        def decorator(fn: Entry) -> Entry:
            self.register(template_id, fn, model=model)
            return fn

        return decorator

    def resolve(self, template_id: TemplateId) -> Template:
        key = normalize_id(template_id)
        try:
            return self._templates[key]
        except KeyError:
            raise UnknownTemplateError(key) from None

    def freeze(self) -> None:
        """Seal the registry. Idempotent."""
        with self._lock:
            if not self._frozen:
                self._templates = MappingProxyType(dict(self._templates))
                self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def ids(self) -> list[str]:
        return list(self._templates)

    def __contains__(self, template_id: object) -> bool:
        try:
            return normalize_id(template_id) in self._templates  # type: ignore[arg-type]
        except InvalidTemplateIdError:
            return False

    def __iter__(self) -> Iterator[str]:
        return iter(self._templates)

    def __len__(self) -> int:
        return len(self._templates)


default_registry = TemplateRegistry()


def register(template_id: TemplateId, entry: Entry, *, model=None) -> Template:
    return default_registry.register(template_id, entry, model=model)


def template(template_id: TemplateId, *, model=None) -> Callable[[Entry], Entry]:
    return default_registry.template(template_id, model=model)


def resolve(template_id: TemplateId) -> Template:
    return default_registry.resolve(template_id)


def load_registry(spec: str) -> TemplateRegistry:
    """Import a registry from ``"pkg.module:attr"`` or ``"pkg.module"``.

    A bare module is imported for its side effects (registration into the
    default registry) and the default registry is returned.
    """
    module_name, _, attr = spec.partition(":")
    module = importlib.import_module(module_name)
    if not attr:
        return default_registry
    registry = getattr(module, attr)
    if not isinstance(registry, TemplateRegistry):
        raise TypeError(f"{spec} is not a TemplateRegistry")
    return registry
