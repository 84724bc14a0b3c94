"""Wire protocol for one dynamic render request.

Frame layout::

    [u32 big-endian body length][template id, UTF-8][0x00][payload]

The length counts every byte after the header, so the child can read
exactly one request and nothing more. The response is the child's raw
stdout; success or failure is carried only by its exit status.
"""

from __future__ import annotations

import json
import struct
from enum import IntEnum
from typing import Any, BinaryIO

from pydantic import BaseModel

from stpl.config import DEFAULT_MAX_FRAME_SIZE
from stpl.dynamic.models import RenderRequest
from stpl.exceptions import (
    FrameTooLargeError,
    MalformedRequestError,
    TruncatedRequestError,
)
from stpl.registry import normalize_id

HEADER = struct.Struct(">I")
DELIMITER = b"\x00"
MAX_BODY = 0xFFFFFFFF


class ChildExit(IntEnum):
    """Exit statuses of the child render loop."""

    OK = 0
    TRUNCATED_REQUEST = 65
    MALFORMED_REQUEST = 66
    DESERIALIZATION_FAILED = 67
    UNKNOWN_TEMPLATE = 68
    RENDER_FAILED = 70
    OUTPUT_FAILED = 74

    @classmethod
    def describe(cls, code: int) -> "ChildExit | None":
        """Map a raw exit status to a known reason, if any."""
        try:
            return cls(code)
        except ValueError:
            return None


def encode_payload(data: Any) -> bytes:
    """Serialize application data for the request payload.

    bytes pass through untouched; pydantic models use their JSON dump;
    everything else goes through ``json``.
    """
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    if isinstance(data, BaseModel):
        return data.model_dump_json().encode("utf-8")
    return json.dumps(data, separators=(",", ":")).encode("utf-8")


def encode_request(request: RenderRequest) -> bytes:
    template_id = normalize_id(request.template_id).encode("utf-8")
    body_len = len(template_id) + len(DELIMITER) + len(request.payload)
    if body_len > MAX_BODY:
        raise FrameTooLargeError(body_len, MAX_BODY)
    return b"".join(
        [HEADER.pack(body_len), template_id, DELIMITER, request.payload]
    )


def decode_body(body: bytes) -> RenderRequest:
    raw_id, sep, payload = body.partition(DELIMITER)
    if not sep:
        raise MalformedRequestError("Request frame has no template id delimiter")
    try:
        template_id = raw_id.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedRequestError(f"Template id is not UTF-8: {e}") from e
    if not template_id:
        raise MalformedRequestError("Request frame has an empty template id")
    return RenderRequest(template_id=template_id, payload=payload)


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    chunks = []
    received = 0
    while received < size:
        chunk = stream.read(size - received)
        if not chunk:
            raise TruncatedRequestError(size, received)
        chunks.append(chunk)
        received += len(chunk)
    return b"".join(chunks)


def read_request(
    stream: BinaryIO, max_frame_size: int = DEFAULT_MAX_FRAME_SIZE
) -> RenderRequest:
    """Read exactly one framed request from ``stream``.

    Raises:
        TruncatedRequestError: Input ended before the declared length.
        FrameTooLargeError: Declared length exceeds ``max_frame_size``.
        MalformedRequestError: Body has no delimiter or a bad id.
    """
    (body_len,) = HEADER.unpack(_read_exact(stream, HEADER.size))
    if body_len > max_frame_size:
        raise FrameTooLargeError(body_len, max_frame_size)
    return decode_body(_read_exact(stream, body_len))
