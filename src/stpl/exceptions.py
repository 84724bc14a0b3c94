"""stpl Exceptions

Custom exceptions for the stpl rendering engine and dynamic protocol.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from stpl.dynamic.models import RenderCall
    from stpl.dynamic.protocol import ChildExit


class StplError(Exception):
    """Base exception for all stpl errors."""

    pass


class SinkWriteError(StplError, OSError):
    """Raised when the output sink fails to accept bytes."""

    pass


# =============================================================================
# Tree construction
# =============================================================================


class BuilderError(StplError):
    """Raised when an element builder is misused."""

    pass


class BuilderFinalizedError(BuilderError):
    """Raised when a sealed builder is called or modified again."""

    def __init__(self, tag: str):
        self.tag = tag
        super().__init__(f"Builder for <{tag}> was already finalized")


class InvalidNameError(BuilderError, ValueError):
    """Raised for tag or attribute names that cannot be written verbatim."""

    def __init__(self, kind: str, name: str):
        self.kind = kind
        self.name = name
        super().__init__(f"Invalid {kind} name: {name!r}")


class NodeConsumedError(StplError):
    """Raised when a deferred node is rendered more than once."""

    pass


# =============================================================================
# Registry
# =============================================================================


class RegistryError(StplError):
    """Base exception for template registry errors."""

    pass


class DuplicateTemplateError(RegistryError):
    """Raised when a template id is registered twice."""

    def __init__(self, template_id: str):
        self.template_id = template_id
        super().__init__(f"Template already registered: {template_id}")


class UnknownTemplateError(RegistryError, KeyError):
    """Raised when a template id is not registered."""

    def __init__(self, template_id: str):
        self.template_id = template_id
        super().__init__(f"Unknown template: {template_id}")

    def __str__(self) -> str:
        return str(self.args[0])


class RegistryFrozenError(RegistryError):
    """Raised when registering into a frozen registry."""

    def __init__(self, template_id: str):
        self.template_id = template_id
        super().__init__(f"Registry is frozen, cannot register: {template_id}")


class InvalidTemplateIdError(RegistryError, ValueError):
    """Raised for template ids that are empty or cannot be framed."""

    pass


# =============================================================================
# Wire protocol (child side)
# =============================================================================


class ProtocolError(StplError):
    """Base exception for request frame errors."""

    pass


class TruncatedRequestError(ProtocolError):
    """Raised when input ends before the declared frame length."""

    def __init__(self, expected: int, received: int):
        self.expected = expected
        self.received = received
        super().__init__(
            f"Truncated request: expected {expected} bytes, got {received}"
        )


class MalformedRequestError(ProtocolError):
    """Raised when a frame body cannot be split into id and payload."""

    pass


class FrameTooLargeError(ProtocolError):
    """Raised when a frame declares more bytes than the configured limit."""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Request frame of {size} bytes exceeds limit of {limit}")


class DeserializationError(StplError):
    """Raised when a payload cannot be turned into template input data."""

    def __init__(self, template_id: str, reason: str):
        self.template_id = template_id
        self.reason = reason
        super().__init__(f"Cannot deserialize payload for {template_id}: {reason}")


# =============================================================================
# Dynamic rendering (host side)
# =============================================================================


class DynamicRenderError(StplError):
    """Base exception for failed dynamic render calls."""

    def __init__(self, template_id: str, message: str, call: RenderCall | None = None):
        self.template_id = template_id
        self.call = call
        super().__init__(message)


class SpawnError(DynamicRenderError):
    """Raised when the child process cannot be started."""

    def __init__(self, template_id: str, command: list[str], reason: str, call=None):
        self.command = command
        super().__init__(
            template_id,
            f"Cannot spawn child for {template_id} ({command[0]}): {reason}",
            call,
        )


class ChildRenderError(DynamicRenderError):
    """Raised when the child exits with a non-zero status."""

    def __init__(
        self,
        template_id: str,
        exit_code: int,
        reason: ChildExit | None = None,
        stderr: str | None = None,
        call: RenderCall | None = None,
    ):
        self.exit_code = exit_code
        self.reason = reason
        self.stderr = stderr
        detail = reason.name.lower() if reason is not None else "unknown failure"
        message = f"Child render of {template_id} failed (exit {exit_code}, {detail})"
        if stderr:
            message += f"\n{stderr.rstrip()}"
        super().__init__(template_id, message, call)


class RenderTimeoutError(DynamicRenderError):
    """Raised when a dynamic call exceeds its timeout."""

    def __init__(self, template_id: str, timeout: float, call=None):
        self.timeout = timeout
        super().__init__(
            template_id, f"Child render of {template_id} timed out after {timeout}s", call
        )


class RenderCancelledError(DynamicRenderError):
    """Raised when a dynamic call is cancelled by the host."""

    def __init__(self, template_id: str, call=None):
        super().__init__(template_id, f"Child render of {template_id} was cancelled", call)


class ConfigError(StplError):
    """Raised when configuration cannot be loaded."""

    pass
