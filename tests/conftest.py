# tests/conftest.py: Shared fixtures.

import logging
import socket
import sys
from pathlib import Path

import pytest

FAKE_SERVER = Path(__file__).parent / "fixtures" / "fake_server.py"


class FakeClock:
    """Stands in for the `time` module of a polling loop."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def monotonic(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def free_port() -> int:
    return _free_port()


@pytest.fixture
def port_pair():
    """Two distinct free ports (main, backup)."""
    main = _free_port()
    backup = _free_port()
    while backup == main:
        backup = _free_port()
    return main, backup


@pytest.fixture
def fake_server_argv():
    return [sys.executable, str(FAKE_SERVER)]


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture(autouse=True)
def reset_bgwatch_logger():
    """setup_logging() attaches handlers to the package logger; drop them after each test."""
    yield
    logger = logging.getLogger("bgwatch")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
