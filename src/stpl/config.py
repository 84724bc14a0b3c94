"""Configuration parsing for stpl.yaml

Example::

    log_level: INFO
    dynamic:
      mode: separate
      executable: /opt/app/bin/stpl
      args: [child, --registry, "app.templates:registry"]
      timeout: 5
      max_in_flight: 4
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from enum import Enum
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from stpl.exceptions import ConfigError

CONFIG_FILE = "stpl.yaml"
DEFAULT_MAX_FRAME_SIZE = 64 * 1024 * 1024


class DynamicMode(str, Enum):
    SELF = "self"  # re-invoke the host program in child mode
    SEPARATE = "separate"  # run a configured child executable


class DynamicConfig(BaseModel):
    """Host-side settings for dynamic rendering."""

    mode: DynamicMode = DynamicMode.SELF
    executable: Path | None = None
    args: list[str] = []
    # self mode: replaces the detected "-m module" / script arguments
    self_args: list[str] | None = None
    # registry spec exported to the child as STPL_REGISTRY
    registry: str | None = None
    timeout: float | None = Field(default=None, gt=0)
    max_in_flight: int = Field(default=8, ge=1)
    capture_stderr: bool = False
    env: dict[str, str] = {}
    cwd: Path | None = None
    max_frame_size: int = Field(default=DEFAULT_MAX_FRAME_SIZE, ge=1)

    @model_validator(mode="after")
    def check_executable(self) -> "DynamicConfig":
        if self.mode == DynamicMode.SEPARATE and self.executable is None:
            raise ValueError("separate mode requires 'executable'")
        return self


class StplConfig(BaseModel):
    """Full stpl.yaml configuration"""

    log_level: str = "WARNING"
    dynamic: DynamicConfig = DynamicConfig()

    @classmethod
    def load(cls, path: Path) -> "StplConfig":
        """Load config from yaml file; a missing file gives defaults."""
        if not path.exists():
            return cls()

        with open(path) as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid config in {path}:\n{e}") from e

    def with_env(self, environ: Mapping[str, str] | None = None) -> "StplConfig":
        """Return a copy with STPL_* environment overrides applied."""
        environ = os.environ if environ is None else environ
        overrides: dict[str, object] = {}
        if "STPL_DYNAMIC_MODE" in environ:
            overrides["mode"] = environ["STPL_DYNAMIC_MODE"]
        if "STPL_DYNAMIC_EXECUTABLE" in environ:
            overrides["executable"] = environ["STPL_DYNAMIC_EXECUTABLE"]
        if "STPL_DYNAMIC_TIMEOUT" in environ:
            overrides["timeout"] = environ["STPL_DYNAMIC_TIMEOUT"] or None
        if "STPL_MAX_IN_FLIGHT" in environ:
            overrides["max_in_flight"] = environ["STPL_MAX_IN_FLIGHT"]
        if not overrides:
            return self

        data = self.dynamic.model_dump()
        data.update(overrides)
        try:
            dynamic = DynamicConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid STPL_* environment override:\n{e}") from e
        return self.model_copy(update={"dynamic": dynamic})


def find_config_file(start: Path | None = None) -> Path | None:
    """Find stpl.yaml in the start directory or its parents."""
    cwd = start or Path.cwd()
    for parent in [cwd] + list(cwd.parents):
        candidate = parent / CONFIG_FILE
        if candidate.exists():
            return candidate
    return None


def load_config(path: Path | None = None) -> StplConfig:
    """Load stpl.yaml (explicit path or discovered) and apply env overrides."""
    if path is None:
        path = find_config_file()
    config = StplConfig.load(path) if path is not None else StplConfig()
    return config.with_env()
