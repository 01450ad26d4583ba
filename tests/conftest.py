"""Pytest configuration to ensure the matrix65 package is importable."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

_SRC = Path(__file__).resolve().parents[1] / "src"
_src_str = str(_SRC)
if _SRC.exists() and _src_str not in sys.path:
    sys.path.insert(0, _src_str)

from matrix65.config import MonitorTiming  # noqa: E402
from matrix65.monitor import MonitorSession  # noqa: E402
from matrix65.transport import EmulatedMonitorTransport  # noqa: E402


@pytest.fixture
def timing() -> MonitorTiming:
    return MonitorTiming.immediate()


@pytest.fixture
def device() -> EmulatedMonitorTransport:
    return EmulatedMonitorTransport()


@pytest.fixture
def session(device: EmulatedMonitorTransport, timing: MonitorTiming) -> MonitorSession:
    return MonitorSession(device, timing)
