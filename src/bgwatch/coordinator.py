# src/bgwatch/coordinator.py: The watchdog control loop.
# RestartCoordinator serves restart requests from the mailbox one at a time.
# In normal mode a request (re)starts the server on the main port; in
# transferring mode it performs a blue/green restart: bring up a backup
# instance, retire the current one, bring a fresh instance back onto the main
# port, then retire the backup. A half-completed swap is logged and left for
# the operator; there is no rollback.

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .launcher import ServerInstance
from .mailbox import RestartMailbox, WatchdogMode
from .util.errors import LaunchFailed, PrerequisiteMissing, WatchdogError
from .util.log import get_logger

logger = get_logger(__name__)


class LoopState(Enum):
    IDLE = "idle"
    LAUNCHING = "launching"
    PROMOTING_AND_RETIRING = "promoting_and_retiring"
    STOPPED = "stopped"


@dataclass
class PidPair:
    """Which process serves traffic, and which is mid-swap."""
    current: Optional[int] = None
    backup: Optional[int] = None


class RestartCoordinator:
    """
    Owns the restart state machine.

    Args:
        launcher: Object with ``start(port, timeout) -> pid``.
        terminate: Callable ``terminate(pid, timeout)``.
        main_port: The canonical port.
        backup_port: The port used while swapping.
        timeout: Readiness timeout for each launch.
        kill_timeout: Deadline for each termination.
        restart_on_exit: Relaunch when the current server dies unexpectedly;
            otherwise stop the watchdog.
    """

    def __init__(
        self,
        launcher,
        terminate: Callable[[int, float], None],
        main_port: int,
        backup_port: int,
        timeout: float = 30,
        kill_timeout: Optional[float] = None,
        restart_on_exit: bool = True,
        mailbox: Optional[RestartMailbox] = None,
        mode: Optional[WatchdogMode] = None,
    ):
        self.launcher = launcher
        self.terminate = terminate
        self.main_port = main_port
        self.backup_port = backup_port
        self.timeout = timeout
        self.kill_timeout = kill_timeout or timeout
        self.restart_on_exit = restart_on_exit
        self.mailbox = mailbox or RestartMailbox()
        self.mode = mode or WatchdogMode()
        self.pids = PidPair()
        self.state = LoopState.IDLE
        self.server_lost = False
        self.started = False

    @classmethod
    def from_config(cls, config, launcher, terminate, **kwargs) -> "RestartCoordinator":
        return cls(
            launcher=launcher,
            terminate=terminate,
            main_port=config.ports.main,
            backup_port=config.ports.backup,
            timeout=config.timeout,
            kill_timeout=config.kill_timeout,
            restart_on_exit=config.restart_on_exit,
            **kwargs,
        )

    def run(self, initial_start: bool = True) -> None:
        """
        Serve restart requests until the mailbox is closed.

        Raises:
            LaunchFailed: If the very first start fails; the loop is stopped.
        """
        if initial_start:
            self.mailbox.offer()

        try:
            while self.mailbox.pop():
                self.handle_request()
        finally:
            self.state = LoopState.STOPPED
            logger.info("Watchdog loop stopped.")

    def handle_request(self) -> None:
        """Serve one popped request according to the current mode."""
        transferring, generation = self.mode.snapshot()
        if transferring:
            self.state = LoopState.PROMOTING_AND_RETIRING
            try:
                self.restart_server()
            except WatchdogError as e:
                logger.error(f"Restart failed: {e}")
            except Exception:
                logger.exception("Restart failed unexpectedly.")
            finally:
                self.mode.complete_transfer(generation)
                self.state = LoopState.IDLE
            return

        self.state = LoopState.LAUNCHING
        try:
            self.pids.current = self.start_server()
            self.started = True
        except LaunchFailed as e:
            logger.error(str(e))
            if not self.started:
                raise
            # Relaunch after an unexpected exit: keep running, a reload can
            # still bring the server back.
        except Exception:
            logger.exception("Server start failed.")
        finally:
            self.state = LoopState.IDLE

    def start_server(self, port: Optional[int] = None, timeout: Optional[float] = None) -> int:
        return self.launcher.start(port or self.main_port, timeout or self.timeout)

    def restart_server(self) -> None:
        """
        Blue/green restart.

        The backup must be ready before the current server is touched, so at
        least one instance is listening at every point of the swap.

        Raises:
            PrerequisiteMissing: If no current server is known.
            LaunchFailed, TerminationFailed: From the individual steps.
        """
        logger.info("Restarting server...")

        if not self.pids.current:
            raise PrerequisiteMissing("Current server pid is not found.")

        logger.info("Starting new server...")
        self.pids.backup = self.start_server(self.backup_port)

        logger.info(f"Stopping original server (pid: [{self.pids.current}])...")
        self.terminate(self.pids.current, self.kill_timeout)

        logger.info("Transferring server port...")
        self.pids.current = self.start_server()

        logger.info(f"Stopping backup server (pid: [{self.pids.backup}])...")
        self.terminate(self.pids.backup, self.kill_timeout)
        self.pids.backup = None

        logger.info("Server restarted successfully.")

    def handle_server_exit(self, instance: ServerInstance) -> None:
        """
        Exit callback for launched servers.

        Only the death of the current server outside a transfer counts as
        unexpected; retired, abandoned and backup instances are ignored.
        """
        if instance.pid is None or instance.pid != self.pids.current:
            return
        if self.mode.transferring:
            return

        logger.error(f"Server pid: {instance.pid} stopped unexpectedly. [{instance.port}]")
        if self.restart_on_exit:
            self.mailbox.offer()
        else:
            self.server_lost = True
            self.mailbox.close()
