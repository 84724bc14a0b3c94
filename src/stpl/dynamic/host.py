"""Host side of dynamic rendering.

Each call spawns one child, sends one framed request, drains the child's
stdout and checks its exit status before trusting any byte of it.

Writing the request and draining the response happen together
(``Popen.communicate`` multiplexes both pipes), so neither a large payload
nor a large document can deadlock on a full pipe buffer.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import subprocess
import sys
import threading
import time
import weakref
from typing import Any

from stpl.config import DynamicConfig, DynamicMode
from stpl.dynamic.child import CHILD_ENV, CHILD_FLAG, FRAME_SIZE_ENV, REGISTRY_ENV
from stpl.dynamic.models import RenderCall, RenderRequest
from stpl.dynamic.protocol import HEADER, ChildExit, encode_payload, encode_request
from stpl.exceptions import (
    ChildRenderError,
    ConfigError,
    FrameTooLargeError,
    RenderCancelledError,
    RenderTimeoutError,
    SpawnError,
)
from stpl.registry import TemplateId, normalize_id

log = logging.getLogger(__name__)

_CONFIG_TIMEOUT: Any = object()


def self_invocation() -> list[str]:
    """Interpreter arguments that re-run the current program.

    ``["-m", "pkg"]`` when started with ``python -m pkg``, otherwise the
    absolute path of the main script.
    """
    main = sys.modules.get("__main__")
    spec = getattr(main, "__spec__", None)
    if spec is not None and spec.name:
        name = spec.name.removesuffix(".__main__")
        return ["-m", name]
    if not sys.argv or sys.argv[0] in ("", "-c"):
        raise ConfigError("Cannot determine how to re-run this program; set self_args")
    return [os.path.abspath(sys.argv[0])]


class DynamicRenderer:
    """Renders templates in child processes, one process per call.

    Usage:
        renderer = DynamicRenderer(DynamicConfig(mode="separate", executable=...))
        html = renderer.render("home", {"name": "William"})
    """

    POLL_INTERVAL = 0.05

    def __init__(self, config: DynamicConfig | None = None):
        self.config = config or DynamicConfig()
        self._slots = threading.BoundedSemaphore(self.config.max_in_flight)
        self._async_slots: weakref.WeakKeyDictionary[
            asyncio.AbstractEventLoop, asyncio.Semaphore
        ] = weakref.WeakKeyDictionary()

    def command(self) -> list[str]:
        """The child command line for the configured mode."""
        cfg = self.config
        if cfg.mode == DynamicMode.SEPARATE:
            return [str(cfg.executable), *cfg.args]
        self_args = cfg.self_args if cfg.self_args is not None else self_invocation()
        return [sys.executable, *self_args, CHILD_FLAG]

    def environment(self) -> dict[str, str]:
        env = os.environ.copy()
        env.update(self.config.env)
        if self.config.mode == DynamicMode.SELF:
            env[CHILD_ENV] = "1"
        else:
            env.pop(CHILD_ENV, None)
        if self.config.registry:
            env[REGISTRY_ENV] = self.config.registry
        env[FRAME_SIZE_ENV] = str(self.config.max_frame_size)
        return env

    def _prepare(self, template_id: TemplateId, data: Any) -> tuple[RenderCall, bytes]:
        key = normalize_id(template_id)
        frame = encode_request(RenderRequest(template_id=key, payload=encode_payload(data)))
        body_len = len(frame) - HEADER.size
        if body_len > self.config.max_frame_size:
            # the child would reject it unread
            raise FrameTooLargeError(body_len, self.config.max_frame_size)
        call = RenderCall(
            template_id=key, mode=self.config.mode.value, command=self.command()
        )
        return call, frame

    def _spawn_error(self, call: RenderCall, e: OSError) -> SpawnError:
        call.mark_failed(error=str(e))
        log.error(f"Cannot spawn child for {call.template_id}: {e}")
        return SpawnError(call.template_id, call.command, str(e), call)

    def _started(self, call: RenderCall, pid: int, frame: bytes) -> None:
        call.mark_running(pid)
        log.info(
            f"Render {call.id}: {call.template_id} in child {pid} "
            f"({len(frame)} byte request)"
        )

    # -------------------------------------------------------------------------
    # Synchronous calls
    # -------------------------------------------------------------------------

    def render(
        self,
        template_id: TemplateId,
        data: Any = None,
        *,
        timeout: float | None = _CONFIG_TIMEOUT,
        cancel: threading.Event | None = None,
    ) -> bytes:
        """Render ``template_id`` with ``data`` in a child process.

        Args:
            template_id: Registered template id in the child.
            data: Payload: bytes, a pydantic model, or JSON-able data.
            timeout: Seconds before the child is killed; defaults to the
                configured timeout, None waits forever.
            cancel: Event that, once set, kills the child.

        Returns:
            The rendered document.

        Raises:
            FrameTooLargeError: The request exceeds ``max_frame_size``.
            SpawnError: The child could not be started.
            ChildRenderError: The child exited non-zero.
            RenderTimeoutError: The timeout expired.
            RenderCancelledError: ``cancel`` was set.
        """
        if timeout is _CONFIG_TIMEOUT:
            timeout = self.config.timeout
        call, frame = self._prepare(template_id, data)
        capture = subprocess.PIPE if self.config.capture_stderr else None

        with self._slots:
            try:
                proc = subprocess.Popen(
                    call.command,
                    stdin=subprocess.PIPE,
                    stdout=subprocess.PIPE,
                    stderr=capture,
                    env=self.environment(),
                    cwd=self.config.cwd,
                )
            except OSError as e:
                raise self._spawn_error(call, e) from e

            self._started(call, proc.pid, frame)
            # exiting the context closes every pipe and reaps the child
            with proc:
                out, err = self._communicate(proc, call, frame, timeout, cancel)

        return self._finish(call, proc.returncode, out, err)

    def _communicate(
        self,
        proc: subprocess.Popen,
        call: RenderCall,
        frame: bytes,
        timeout: float | None,
        cancel: threading.Event | None,
    ) -> tuple[bytes, bytes | None]:
        deadline = None if timeout is None else time.monotonic() + timeout
        pending: bytes | None = frame
        while True:
            try:
                return proc.communicate(pending, timeout=self._wait_for(deadline, cancel))
            except subprocess.TimeoutExpired:
                # input was handed over on the first attempt
                pending = None

            if cancel is not None and cancel.is_set():
                self._kill(proc)
                call.mark_cancelled(proc.returncode)
                log.warning(f"Render {call.id}: cancelled, output discarded")
                raise RenderCancelledError(call.template_id, call)
            if deadline is not None and time.monotonic() >= deadline:
                self._kill(proc)
                call.mark_timed_out(proc.returncode)
                log.warning(f"Render {call.id}: timed out after {timeout}s")
                raise RenderTimeoutError(call.template_id, timeout, call)

    def _wait_for(self, deadline: float | None, cancel: threading.Event | None) -> float | None:
        if deadline is None:
            return self.POLL_INTERVAL if cancel is not None else None
        remaining = max(deadline - time.monotonic(), 0.0)
        if cancel is not None:
            return min(remaining, self.POLL_INTERVAL)
        return remaining

    @staticmethod
    def _kill(proc: subprocess.Popen) -> None:
        proc.kill()
        # drain and reap so no descriptor or zombie outlives the call
        proc.communicate()

    def _finish(
        self, call: RenderCall, returncode: int, out: bytes, err: bytes | None
    ) -> bytes:
        stderr = err.decode("utf-8", errors="replace") if err else None
        if returncode != 0:
            reason = ChildExit.describe(returncode) if returncode > 0 else None
            call.mark_failed(returncode, stderr=stderr)
            log.warning(
                f"Render {call.id}: child exited with {returncode}, "
                f"discarding {len(out)} bytes"
            )
            raise ChildRenderError(call.template_id, returncode, reason, stderr, call)

        call.mark_succeeded(len(out))
        log.info(f"Render {call.id}: {call.template_id} produced {len(out)} bytes")
        return out

    # -------------------------------------------------------------------------
    # asyncio calls
    # -------------------------------------------------------------------------

    def _async_slot(self) -> asyncio.Semaphore:
        loop = asyncio.get_running_loop()
        slot = self._async_slots.get(loop)
        if slot is None:
            slot = self._async_slots[loop] = asyncio.Semaphore(self.config.max_in_flight)
        return slot

    async def render_async(
        self,
        template_id: TemplateId,
        data: Any = None,
        *,
        timeout: float | None = _CONFIG_TIMEOUT,
    ) -> bytes:
        """asyncio variant of :meth:`render`.

        Task cancellation kills and reaps the child, then re-raises
        ``asyncio.CancelledError``.
        """
        if timeout is _CONFIG_TIMEOUT:
            timeout = self.config.timeout
        call, frame = self._prepare(template_id, data)
        capture = asyncio.subprocess.PIPE if self.config.capture_stderr else None

        async with self._async_slot():
            try:
                proc = await asyncio.create_subprocess_exec(
                    *call.command,
                    stdin=asyncio.subprocess.PIPE,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=capture,
                    env=self.environment(),
                    cwd=self.config.cwd,
                )
            except OSError as e:
                raise self._spawn_error(call, e) from e

            self._started(call, proc.pid, frame)
            try:
                out, err = await asyncio.wait_for(proc.communicate(frame), timeout)
            except asyncio.TimeoutError:
                await self._kill_async(proc)
                call.mark_timed_out(proc.returncode)
                log.warning(f"Render {call.id}: timed out after {timeout}s")
                raise RenderTimeoutError(call.template_id, timeout, call) from None
            except asyncio.CancelledError:
                await self._kill_async(proc)
                call.mark_cancelled(proc.returncode)
                log.warning(f"Render {call.id}: cancelled, output discarded")
                raise

        assert proc.returncode is not None
        return self._finish(call, proc.returncode, out, err)

    @staticmethod
    async def _kill_async(proc: asyncio.subprocess.Process) -> None:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
        await proc.communicate()
