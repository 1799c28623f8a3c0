# tests/unit/test_portprobe.py: Unit tests for TCP port probing.

import logging
import socket

from bgwatch import portprobe
from bgwatch.portprobe import is_port_free, wait_port_free


def test_listening_port_is_not_free():
    """A port with a listener is reported as in use."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server:
        server.bind(("127.0.0.1", 0))
        server.listen(1)
        port = server.getsockname()[1]

        assert is_port_free(port) is False

def test_unbound_port_is_free(free_port):
    """A port nobody listens on is reported as free."""
    assert is_port_free(free_port) is True

def test_wait_port_free_returns_once_released(monkeypatch, fake_clock):
    """Polling stops as soon as the probe reports the port free."""
    answers = iter([False, False, True])
    monkeypatch.setattr(portprobe, "is_port_free", lambda port, connect_timeout=1.0: next(answers))
    monkeypatch.setattr(portprobe, "time", fake_clock)

    assert wait_port_free(9501, timeout=20) is True
    assert fake_clock.sleeps == [1.0, 1.0]

def test_wait_port_free_times_out_and_warns_once(monkeypatch, fake_clock, caplog):
    """An occupied port gives up at the deadline with a single warning."""
    monkeypatch.setattr(portprobe, "is_port_free", lambda port, connect_timeout=1.0: False)
    monkeypatch.setattr(portprobe, "time", fake_clock)

    with caplog.at_level(logging.WARNING, logger="bgwatch"):
        assert wait_port_free(9501, timeout=5) is False

    assert 5 <= fake_clock.now <= 6
    warnings = [r for r in caplog.records if "still in use" in r.getMessage()]
    assert len(warnings) == 1
