# src/bgwatch/signals.py: OS signal bridge.
# Turns the reload signal into a transfer request on the mailbox, and the
# usual shutdown signals into closing it. Python runs signal handlers on the
# main thread, so the handlers only flip flags and never wait on the loop.

import signal
from typing import Dict, Iterable

from .mailbox import RestartMailbox, WatchdogMode
from .util.log import get_logger

logger = get_logger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class SignalBridge:
    """Installs and removes the watchdog's signal handlers."""

    def __init__(
        self,
        mode: WatchdogMode,
        mailbox: RestartMailbox,
        reload_signal: int = signal.SIGWINCH,
        shutdown_signals: Iterable[int] = SHUTDOWN_SIGNALS,
    ):
        self.mode = mode
        self.mailbox = mailbox
        self.reload_signal = reload_signal
        self.shutdown_signals = tuple(shutdown_signals)
        self.shutdown_requested = False
        self._previous: Dict[int, object] = {}

    def install(self) -> None:
        self._register(self.reload_signal, self._on_reload)
        for sig in self.shutdown_signals:
            self._register(sig, self._on_shutdown)
        logger.debug(f"Listening for {signal.Signals(self.reload_signal).name} to restart.")

    def uninstall(self) -> None:
        for sig, handler in self._previous.items():
            signal.signal(sig, handler)
        self._previous.clear()

    def _register(self, sig: int, handler) -> None:
        self._previous[sig] = signal.signal(sig, handler)

    def _on_reload(self, signum, frame) -> None:
        self.mode.request_transfer()
        self.mailbox.offer()

    def _on_shutdown(self, signum, frame) -> None:
        self.shutdown_requested = True
        self.mailbox.close()

    def __enter__(self):
        self.install()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.uninstall()
