"""Child render loop.

Reads one framed request from stdin, renders the named template straight
into stdout, and reports the outcome through the exit status only.
Diagnostics go to stderr via logging; stdout never carries anything but
rendered bytes.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping, Sequence
from typing import BinaryIO

from stpl.config import DEFAULT_MAX_FRAME_SIZE
from stpl.dynamic.protocol import ChildExit, read_request
from stpl.exceptions import (
    DeserializationError,
    FrameTooLargeError,
    MalformedRequestError,
    SinkWriteError,
    TruncatedRequestError,
    UnknownTemplateError,
)
from stpl.registry import TemplateRegistry, default_registry, load_registry
from stpl.utils import setup_logging

log = logging.getLogger(__name__)

CHILD_ENV = "STPL_CHILD"
CHILD_FLAG = "--stpl-child"
REGISTRY_ENV = "STPL_REGISTRY"
FRAME_SIZE_ENV = "STPL_MAX_FRAME_SIZE"


def serve(
    registry: TemplateRegistry,
    stdin: BinaryIO,
    stdout: BinaryIO,
    max_frame_size: int = DEFAULT_MAX_FRAME_SIZE,
) -> ChildExit:
    """Serve exactly one render request.

    Args:
        registry: Registry to resolve the template id against.
        stdin: Binary stream holding the request frame.
        stdout: Binary stream receiving rendered bytes.
        max_frame_size: Upper bound for the declared frame length.

    Returns:
        The exit status the child process should report.
    """
    try:
        request = read_request(stdin, max_frame_size)
    except TruncatedRequestError as e:
        log.error(str(e))
        return ChildExit.TRUNCATED_REQUEST
    except (MalformedRequestError, FrameTooLargeError) as e:
        log.error(str(e))
        return ChildExit.MALFORMED_REQUEST

    template_id = request.template_id
    try:
        template = registry.resolve(template_id)
    except UnknownTemplateError as e:
        log.error(f"{e} (registered: {', '.join(registry.ids()) or 'none'})")
        return ChildExit.UNKNOWN_TEMPLATE

    try:
        data = template.load(request.payload)
    except DeserializationError as e:
        log.error(str(e))
        return ChildExit.DESERIALIZATION_FAILED

    log.debug(f"Rendering {template_id} ({len(request.payload)} byte payload)")
    try:
        template.render(data, stdout)
    except SinkWriteError as e:
        log.error(f"Cannot write output for {template_id}: {e}")
        return ChildExit.OUTPUT_FAILED
    except Exception:
        # process boundary: any template failure becomes an exit status
        log.exception(f"Template {template_id} failed")
        return ChildExit.RENDER_FAILED

    return ChildExit.OK


def is_child_invocation(
    argv: Sequence[str] | None = None, environ: Mapping[str, str] | None = None
) -> bool:
    """Whether this process was started as a self-mode render child."""
    argv = sys.argv if argv is None else argv
    environ = os.environ if environ is None else environ
    return environ.get(CHILD_ENV) == "1" or CHILD_FLAG in argv[1:]


def frame_limit(environ: Mapping[str, str] | None = None) -> int:
    """Request size limit exported by the host in ``$STPL_MAX_FRAME_SIZE``."""
    environ = os.environ if environ is None else environ
    value = environ.get(FRAME_SIZE_ENV)
    if not value:
        return DEFAULT_MAX_FRAME_SIZE
    try:
        limit = int(value)
    except ValueError:
        limit = 0
    if limit < 1:
        log.warning(f"Ignoring invalid {FRAME_SIZE_ENV}={value!r}")
        return DEFAULT_MAX_FRAME_SIZE
    return limit


def run_child(
    registry: TemplateRegistry | str | None = None,
    max_frame_size: int | None = None,
) -> int:
    """Freeze the registry and serve one request over stdin/stdout.

    ``registry`` may be a registry, a ``load_registry`` spec, or None to
    use ``$STPL_REGISTRY`` (falling back to the default registry).
    ``max_frame_size`` defaults to ``$STPL_MAX_FRAME_SIZE``.
    """
    if max_frame_size is None:
        max_frame_size = frame_limit()
    if registry is None:
        spec = os.environ.get(REGISTRY_ENV)
        registry = load_registry(spec) if spec else default_registry
    elif isinstance(registry, str):
        registry = load_registry(registry)

    registry.freeze()
    code = serve(registry, sys.stdin.buffer, sys.stdout.buffer, max_frame_size)
    if code is ChildExit.OK:
        try:
            sys.stdout.buffer.flush()
        except OSError as e:
            log.error(f"Cannot flush output: {e}")
            code = ChildExit.OUTPUT_FAILED
    return int(code)


def enter_child_if_requested(
    registry: TemplateRegistry | str | None = None,
    max_frame_size: int | None = None,
) -> None:
    """Self mode hook: call at the very top of the host's entry point.

    Returns immediately in a normal run. In a render child it serves the
    request and exits the process.
    """
    if not is_child_invocation():
        return
    setup_logging()
    sys.exit(run_child(registry, max_frame_size))
