from __future__ import annotations

import contextlib
import logging
import socket

import pytest

from cilium_agent.metrics import MetricsRegistry


def _find_free_port() -> int:
    with contextlib.closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


@pytest.fixture()
def free_port() -> int:
    return _find_free_port()


@pytest.fixture()
def registry() -> MetricsRegistry:
    """Fresh registry without process self-metrics (deterministic exposition)."""
    return MetricsRegistry(process_metrics=False)


@pytest.fixture()
def restore_root_logging():
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield root
    for h in root.handlers[:]:
        if h not in handlers:
            root.removeHandler(h)
    for h in handlers:
        if h not in root.handlers:
            root.addHandler(h)
    root.setLevel(level)
