"""Shared fixtures for stpl tests."""

import logging
import os
import sys
from pathlib import Path

import pytest

from stpl.config import DynamicConfig

TESTS_DIR = Path(__file__).parent


def child_pythonpath() -> str:
    """PYTHONPATH that lets a child import fixture_templates."""
    existing = os.environ.get("PYTHONPATH")
    parts = [str(TESTS_DIR)]
    if existing:
        parts.append(existing)
    return os.pathsep.join(parts)


@pytest.fixture(autouse=True)
def reset_stpl_logger():
    """Undo setup_logging() so caplog keeps seeing stpl records."""
    yield
    logger = logging.getLogger("stpl")
    logger.handlers = []
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def separate_config():
    """Factory for separate-mode configs running ``python -m stpl child``."""

    def make(**overrides) -> DynamicConfig:
        values = {
            "mode": "separate",
            "executable": sys.executable,
            "args": ["-m", "stpl", "child", "--registry", "fixture_templates:registry"],
            "env": {"PYTHONPATH": child_pythonpath()},
        }
        values.update(overrides)
        return DynamicConfig(**values)

    return make
