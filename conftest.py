"""Root conftest — puts ``main.py`` on ``sys.path`` and isolates log levels."""

import logging
import sys
from pathlib import Path

import pytest

_ROOT = str(Path(__file__).resolve().parent)
if _ROOT not in sys.path:
    sys.path.insert(0, _ROOT)


@pytest.fixture(autouse=True)
def _restore_engine_log_level():
    # CLI invocations call setup_logging, which sets the package level.
    engine = logging.getLogger("apimetrics")
    level = engine.level
    yield
    engine.setLevel(level)
