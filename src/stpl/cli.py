"""stpl CLI

Usage:
    stpl render home -d '{"name": "William"}' -r app.templates
    stpl render home -d @data.json --dynamic      # render in a child process
    stpl child -r app.templates:registry          # separate-mode child executable
    stpl version
"""

from __future__ import annotations

import importlib
import sys
from pathlib import Path
from typing import List, Optional

import typer

from stpl._version import __version__
from stpl.config import load_config
from stpl.dynamic.child import REGISTRY_ENV, enter_child_if_requested, run_child
from stpl.dynamic.host import DynamicRenderer
from stpl.exceptions import StplError
from stpl.registry import default_registry, load_registry
from stpl.utils import setup_logging

app = typer.Typer(help="Composable document templates.", no_args_is_help=True)


def read_data(data: Optional[str]) -> bytes:
    """Payload bytes from a JSON string or ``@path``."""
    if data is None:
        return b""
    if data.startswith("@"):
        return Path(data[1:]).read_bytes()
    return data.encode("utf-8")


def exit_with_error(message: str, exit_code: int = 1) -> None:
    typer.secho(f"Error: {message}", err=True, fg=typer.colors.RED)
    raise typer.Exit(code=exit_code)


@app.command()
def render(
    template_id: str = typer.Argument(..., help="Template id to render."),
    data: Optional[str] = typer.Option(
        None, "-d", "--data", help="JSON payload, or @path to read it from a file."
    ),
    registry: Optional[str] = typer.Option(
        None,
        "-r",
        "--registry",
        envvar=REGISTRY_ENV,
        help="Registry to use: 'module' or 'module:attr'.",
    ),
    dynamic: bool = typer.Option(
        False, "--dynamic", help="Render in a child process instead of in-process."
    ),
    config_path: Optional[Path] = typer.Option(
        None, "-c", "--config", help="Path to stpl.yaml."
    ),
    output: Optional[Path] = typer.Option(
        None, "-o", "--output", help="Write the document to a file instead of stdout."
    ),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logging."),
) -> None:
    """Render a registered template with a JSON payload."""
    try:
        config = load_config(config_path)
        setup_logging(verbose, config.log_level)
        payload = read_data(data)

        if dynamic:
            dynamic_config = config.dynamic
            if registry and not dynamic_config.registry:
                dynamic_config = dynamic_config.model_copy(update={"registry": registry})
            document = DynamicRenderer(dynamic_config).render(template_id, payload)
            if output is not None:
                output.write_bytes(document)
            else:
                sys.stdout.buffer.write(document)
                sys.stdout.buffer.flush()
            return

        reg = load_registry(registry) if registry else default_registry
        tmpl = reg.resolve(template_id)
        value = tmpl.load(payload)
        if output is not None:
            with open(output, "wb") as f:
                tmpl.render(value, f)
        else:
            tmpl.render(value, sys.stdout.buffer)
    except (StplError, OSError) as exc:
        exit_with_error(str(exc))


@app.command()
def child(
    registry: Optional[str] = typer.Option(
        None,
        "-r",
        "--registry",
        envvar=REGISTRY_ENV,
        help="Registry to serve: 'module' or 'module:attr'.",
    ),
    modules: Optional[List[str]] = typer.Option(
        None, "-m", "--module", help="Extra modules to import before serving."
    ),
    max_frame_size: Optional[int] = typer.Option(
        None,
        "--max-frame-size",
        min=1,
        help="Largest accepted request (default: $STPL_MAX_FRAME_SIZE, else 64 MiB).",
    ),
) -> None:
    """Serve one render request on stdin/stdout (separate-mode child)."""
    setup_logging()
    for name in modules or []:
        importlib.import_module(name)
    raise typer.Exit(code=run_child(registry, max_frame_size))


@app.command()
def version() -> None:
    """Show version and exit."""
    typer.echo(f"stpl {__version__}")


def main() -> None:
    """Entry point for the ``stpl`` console script.

    Checks for self-mode child invocation before Typer parses arguments,
    so ``stpl render --dynamic`` can re-run itself as the child.
    """
    enter_child_if_requested()
    app()


if __name__ == "__main__":
    main()
