# src/bgwatch/daemon.py: The watchdog process (bgwatch start).
# Wires the pieces together for one watchdog run: take the instance lock,
# publish the watchdog pid, install the signal bridge and run the control loop
# on its own thread until it stops. The main thread only waits, so signal
# handlers always run promptly. The watchdog pid file is removed on every way
# out of the loop.

import os
import threading
from typing import Optional, TextIO

from filelock import FileLock, Timeout

from .config import WatchdogConfig
from .coordinator import RestartCoordinator
from .launcher import ServerLauncher
from .mailbox import RestartMailbox, WatchdogMode
from .pidstore import PidStore
from .process import terminate
from .signals import SignalBridge
from .util.errors import AlreadyRunning, WatchdogError
from .util.log import get_logger

logger = get_logger(__name__)

JOIN_INTERVAL = 0.5


class Watchdog:
    """One run of the watchdog for a loaded configuration."""

    def __init__(self, config: WatchdogConfig, output: Optional[TextIO] = None, launcher=None, terminator=terminate):
        self.config = config
        self.mailbox = RestartMailbox()
        self.mode = WatchdogMode()
        self.pid_store = PidStore(config.watchdog_pid_file)
        owns_launcher = launcher is None
        if owns_launcher:
            launcher = ServerLauncher.from_config(config, output=output)
        self.coordinator = RestartCoordinator.from_config(
            config,
            launcher=launcher,
            terminate=terminator,
            mailbox=self.mailbox,
            mode=self.mode,
        )
        if owns_launcher:
            launcher.on_exit = self.coordinator.handle_server_exit
        self.bridge = SignalBridge(self.mode, self.mailbox, config.signal_number)
        self.error: Optional[Exception] = None

    def _loop(self) -> None:
        try:
            self.coordinator.run()
        except Exception as e:
            self.error = e

    def run(self) -> int:
        """
        Run until the loop stops and return the process exit code.

        Raises:
            AlreadyRunning: If another watchdog holds the lock.
        """
        lock_path = f"{self.config.watchdog_pid_file}.lock"
        self.pid_store.path.parent.mkdir(parents=True, exist_ok=True)
        lock = FileLock(lock_path)

        try:
            lock.acquire(timeout=1)
        except Timeout:
            raise AlreadyRunning(
                "Another instance of the watchdog is already running."
            )

        try:
            self.pid_store.write(os.getpid())
            logger.info(f"Watchdog started (pid: [{os.getpid()}]).")
            with self.bridge:
                thread = threading.Thread(target=self._loop, name="watchdog-loop")
                thread.start()
                while thread.is_alive():
                    thread.join(JOIN_INTERVAL)
        finally:
            self.pid_store.clear()
            lock.release()

        return self._exit_code()

    def _exit_code(self) -> int:
        if self.error is not None:
            if isinstance(self.error, WatchdogError):
                return self.error.exit_code
            logger.error(f"Watchdog loop crashed: {self.error!r}")
            return 1
        if self.coordinator.server_lost:
            return 1
        return 0


def run_watchdog(config: WatchdogConfig, output: Optional[TextIO] = None) -> int:
    """Entry point used by the CLI."""
    return Watchdog(config, output=output).run()
