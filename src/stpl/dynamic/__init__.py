"""stpl.dynamic - render templates in a separate, rebuildable process."""

from stpl.dynamic.child import (
    CHILD_ENV,
    CHILD_FLAG,
    FRAME_SIZE_ENV,
    enter_child_if_requested,
    frame_limit,
    is_child_invocation,
    run_child,
    serve,
)
from stpl.dynamic.host import DynamicRenderer, self_invocation
from stpl.dynamic.models import CallStatus, RenderCall, RenderRequest
from stpl.dynamic.protocol import (
    ChildExit,
    decode_body,
    encode_payload,
    encode_request,
    read_request,
)

__all__ = [
    # host
    "DynamicRenderer",
    "self_invocation",
    # child
    "CHILD_ENV",
    "CHILD_FLAG",
    "FRAME_SIZE_ENV",
    "enter_child_if_requested",
    "frame_limit",
    "is_child_invocation",
    "run_child",
    "serve",
    # wire
    "ChildExit",
    "decode_body",
    "encode_payload",
    "encode_request",
    "read_request",
    # models
    "CallStatus",
    "RenderCall",
    "RenderRequest",
]
