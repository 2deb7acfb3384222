"""Pytest configuration shared by every suite.

What:
  Put the in-repo source tree on ``sys.path`` and apply the canned runtime
  configuration in ``tests/data/config.yaml`` to every test.

Why:
  Tests must exercise the source tree rather than an installed wheel, and the
  runtime configuration cache is process-global, so it is reset around each
  test to keep results independent of execution order.
"""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "mailintake" / "src"
if SRC_DIR.exists():
    sys.path.insert(0, str(SRC_DIR))

import pytest

from mailintake.config.loader import reset_runtime_config

CONFIG_PATH = Path(__file__).resolve().parent / "data" / "config.yaml"


@pytest.fixture(autouse=True)
def runtime_config(monkeypatch: pytest.MonkeyPatch):
    """Point ``MAILINTAKE_CONFIG_PATH`` at the fixture file and reset the cache."""

    monkeypatch.setenv("MAILINTAKE_CONFIG_PATH", str(CONFIG_PATH))
    reset_runtime_config()
    try:
        yield CONFIG_PATH
    finally:
        reset_runtime_config()
