# src/bgwatch/notifier.py: Reload trigger for a running watchdog.
# Used by 'bgwatch update': read the watchdog's pid file and send it the reload
# signal. Every outcome is reported as a value; nothing here raises.

import signal
from enum import Enum
from pathlib import Path

from .pidstore import PidStore
from .process import ProcessHandle
from .util.errors import SignalDeliveryFailed
from .util.log import get_logger

logger = get_logger(__name__)


class NotifyResult(Enum):
    SENT = "sent"
    NOT_RUNNING = "not_running"
    INVALID_PID = "invalid_pid"
    NOT_FOUND = "not_found"
    FAILED = "failed"


def notify(pid_file: Path, sig: int = signal.SIGWINCH) -> tuple[NotifyResult, int | None]:
    """
    Send the reload signal to the watchdog whose pid is in pid_file.

    Returns the outcome and the pid that was read, if any.
    """
    pid = PidStore(pid_file).read()
    if pid is None:
        return NotifyResult.NOT_RUNNING, None
    if pid == 0:
        return NotifyResult.INVALID_PID, None

    watchdog = ProcessHandle(pid)
    if not watchdog.is_running():
        return NotifyResult.NOT_FOUND, pid

    try:
        watchdog.send_signal(sig)
    except SignalDeliveryFailed as e:
        logger.error(str(e))
        return NotifyResult.FAILED, pid
    return NotifyResult.SENT, pid
