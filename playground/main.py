#!/usr/bin/env python3
"""
Playground for stpl static and dynamic rendering.

Prints the home page once per second, rendered in-process and then in a
child process. Edit ``home`` while it runs: the static output keeps the
old version, the dynamic output picks up the change on the next tick.

    python playground/main.py
"""

import sys
import time

from pydantic import BaseModel

from stpl import TemplateRegistry, html, render
from stpl.config import DynamicConfig
from stpl.dynamic import DynamicRenderer, enter_child_if_requested

registry = TemplateRegistry()


class BaseData(BaseModel):
    title: str


class Data(BaseModel):
    name: str


def base(data: BaseData, content):
    return html.html(
        html.head(html.title(data.title)),
        html.body(content),
    )


@registry.template("home", model=Data)
def home(data: Data):
    return base(
        BaseData(title=f"Home of {data.name}"),
        (
            html.h1.class_("main")("Welcome!"),
            html.p(f"Hi, {data.name}"),
        ),
    )


def print_static(data: Data) -> None:
    render(home(data), sys.stdout.buffer)
    sys.stdout.buffer.write(b"\n")
    sys.stdout.buffer.flush()


def print_dynamic(renderer: DynamicRenderer, data: Data) -> None:
    sys.stdout.buffer.write(renderer.render("home", data) + b"\n")
    sys.stdout.buffer.flush()


def main():
    enter_child_if_requested(registry)
    registry.freeze()

    renderer = DynamicRenderer(DynamicConfig(mode="self", timeout=10))
    data = Data(name="William")

    while True:
        time.sleep(1)
        print("Static:", flush=True)
        print_static(data)
        print("Dynamic:", flush=True)
        print_dynamic(renderer, data)


if __name__ == "__main__":
    main()
