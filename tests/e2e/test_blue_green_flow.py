# tests/e2e/test_blue_green_flow.py: E2E test of a blue/green restart.
# Real launcher, real termination and real child processes; only the reload
# signal is replaced by posting to the mailbox directly.

import io
import threading
import time
from pathlib import Path

import pytest

from bgwatch.coordinator import RestartCoordinator
from bgwatch.launcher import ServerLauncher
from bgwatch.pidstore import PidStore
from bgwatch.portprobe import is_port_free
from bgwatch.process import ProcessHandle, terminate


def wait_until(predicate, timeout=20.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return predicate()


@pytest.fixture
def watchdog(tmp_path: Path, fake_server_argv, port_pair):
    main, backup = port_pair
    launcher = ServerLauncher(
        argv=fake_server_argv,
        pid_store=PidStore(tmp_path / "server.pid"),
        output=io.StringIO(),
    )
    coordinator = RestartCoordinator(
        launcher=launcher,
        terminate=terminate,
        main_port=main,
        backup_port=backup,
        timeout=15,
        kill_timeout=10,
    )
    launcher.on_exit = coordinator.handle_server_exit

    thread = threading.Thread(target=coordinator.run, daemon=True)
    thread.start()
    yield coordinator

    coordinator.mailbox.close()
    thread.join(timeout=30)
    for pid in (coordinator.pids.current, coordinator.pids.backup):
        if pid:
            terminate(pid, timeout=10)


def test_blue_green_restart_keeps_serving(watchdog: RestartCoordinator):
    """The old instance is replaced and both ports end up in the expected state."""
    assert wait_until(lambda: watchdog.pids.current is not None)
    first = watchdog.pids.current
    assert ProcessHandle(first).is_running()

    watchdog.mode.request_transfer()
    watchdog.mailbox.offer()

    served = []
    def main_or_backup_listening():
        served.append(not is_port_free(watchdog.main_port) or not is_port_free(watchdog.backup_port))
        return watchdog.pids.current not in (None, first) and not watchdog.mode.transferring

    assert wait_until(main_or_backup_listening, timeout=40)

    second = watchdog.pids.current
    assert second != first
    assert ProcessHandle(second).is_running()
    assert not ProcessHandle(first).is_running()
    assert is_port_free(watchdog.main_port) is False
    assert wait_until(lambda: is_port_free(watchdog.backup_port), timeout=5)
    assert all(served)

def test_unexpected_exit_is_restarted(watchdog: RestartCoordinator):
    """Killing the current server from outside brings a new one up."""
    assert wait_until(lambda: watchdog.pids.current is not None)
    first = watchdog.pids.current

    terminate(first, timeout=10)

    assert wait_until(lambda: watchdog.pids.current not in (None, first))
    assert ProcessHandle(watchdog.pids.current).is_running()
