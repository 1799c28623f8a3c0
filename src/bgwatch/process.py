# src/bgwatch/process.py: Process handles and bounded termination.
# Liveness is answered by psutil so that a terminated child which has not been
# reaped yet (a zombie) counts as gone. Termination repeatedly sends SIGTERM
# until the process disappears or the deadline passes; it never escalates to
# SIGKILL, the caller decides what a TerminationFailed means.

import os
import signal
import time

import psutil

from .util.errors import SignalDeliveryFailed, TerminationFailed
from .util.log import get_logger

logger = get_logger(__name__)


class ProcessHandle:
    """A process identified by its pid."""

    def __init__(self, pid: int):
        self.pid = pid

    def is_running(self) -> bool:
        if self.pid <= 0:
            return False
        try:
            return psutil.Process(self.pid).status() != psutil.STATUS_ZOMBIE
        except (psutil.NoSuchProcess, psutil.ZombieProcess):
            return False
        except psutil.AccessDenied:
            # Owned by someone else, but it exists.
            return True

    def send_signal(self, sig: int) -> None:
        """
        Deliver a signal to the process.

        Raises:
            SignalDeliveryFailed: If the process is gone or may not be signalled.
        """
        try:
            os.kill(self.pid, sig)
        except OSError as e:
            raise SignalDeliveryFailed(
                f"Failed to send {signal.Signals(sig).name} to process [{self.pid}]: {e}"
            ) from e

    def __repr__(self) -> str:
        return f"ProcessHandle({self.pid})"


def terminate(pid: int, timeout: float, retry_interval: float = 1.0) -> None:
    """
    Ask a process to exit, waiting at most `timeout` seconds for it to go.

    Terminating a process that does not exist is a no-op.

    Raises:
        TerminationFailed: If the process is still alive after the timeout.
    """
    process = ProcessHandle(pid)
    if not process.is_running():
        logger.warning(f"Process [{pid}] doesn't exist.")
        return

    start = time.monotonic()
    has_warned = False
    while time.monotonic() - start < timeout:
        try:
            process.send_signal(signal.SIGTERM)
        except SignalDeliveryFailed:
            if not process.is_running():
                logger.info(f"Process [{pid}] is killed.")
                return
            raise
        if not process.is_running():
            logger.info(f"Process [{pid}] is killed.")
            return

        if not has_warned:
            has_warned = True
            logger.warning(f"Process [{pid}] is still alive, waiting...")

        time.sleep(retry_interval)

    raise TerminationFailed(f"Failed to kill process [{pid}] within {timeout} seconds.")
