"""Models for dynamic render calls"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field
from uuid_extensions import uuid7str


class RenderRequest(BaseModel):
    """One request: which template, and its serialized input."""

    template_id: str
    payload: bytes = b""


class CallStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


class RenderCall(BaseModel):
    """Record of a single dynamic render call (one child process)."""

    id: str = Field(default_factory=uuid7str)
    template_id: str
    mode: str
    status: CallStatus = CallStatus.PENDING
    command: list[str] = []

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    started_at: datetime | None = None
    finished_at: datetime | None = None

    pid: int | None = None
    exit_code: int | None = None
    output_size: int | None = None
    stderr: str | None = None
    error: str | None = None

    def mark_running(self, pid: int) -> None:
        self.status = CallStatus.RUNNING
        self.pid = pid
        self.started_at = datetime.now(timezone.utc)

    def _finish(self, status: CallStatus, exit_code: int | None) -> None:
        self.status = status
        self.exit_code = exit_code
        self.finished_at = datetime.now(timezone.utc)

    def mark_succeeded(self, output_size: int) -> None:
        self.output_size = output_size
        self._finish(CallStatus.SUCCEEDED, 0)

    def mark_failed(
        self, exit_code: int | None = None, error: str | None = None, stderr: str | None = None
    ) -> None:
        self.error = error
        self.stderr = stderr
        self._finish(CallStatus.FAILED, exit_code)

    def mark_timed_out(self, exit_code: int | None) -> None:
        self._finish(CallStatus.TIMED_OUT, exit_code)

    def mark_cancelled(self, exit_code: int | None) -> None:
        self._finish(CallStatus.CANCELLED, exit_code)

    @property
    def duration(self) -> float | None:
        if self.started_at is None or self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def is_terminal(self) -> bool:
        return self.status not in (CallStatus.PENDING, CallStatus.RUNNING)
