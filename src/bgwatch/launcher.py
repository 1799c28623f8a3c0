# src/bgwatch/launcher.py: Managed server launcher.
# Starts one instance of the managed server on a given port and blocks until
# it is ready: the child is still running, it has published its pid, and (when
# configured) its port accepts connections. The child's output is streamed to
# the watchdog's own output by a background thread, which also reports the
# child's exit through an optional callback.

import os
import subprocess
import sys
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, TextIO

from .pidstore import PidStore
from .portprobe import is_port_free, wait_port_free
from .util.errors import LaunchFailed
from .util.log import get_logger, port_context

logger = get_logger(__name__)

POLL_INTERVAL = 0.1
ABANDON_GRACE = 0.5

BASE_ENV = {
    "FORCE_COLOR": "true",
    "TERM": "xterm-256color",
}


@dataclass
class ServerInstance:
    """One spawned server process, as seen by the watchdog."""
    port: int
    process: subprocess.Popen
    pid: Optional[int] = None
    returncode: Optional[int] = None
    exited: threading.Event = field(default_factory=threading.Event)


ExitCallback = Callable[[ServerInstance], None]


class ServerLauncher:
    """
    Spawns the managed server and waits for it to become ready.

    Args:
        argv: The server command.
        pid_store: Where the server publishes its pid.
        env: Extra environment variables for the child.
        env_overload: Start from the watchdog's environment when True,
            otherwise only PATH and the injected variables are passed.
        port_env: Name of the variable carrying the port.
        pid_file_env: Name of the variable carrying the pid file path.
        port_wait_timeout: Upper bound on waiting for the port to be released.
        check_listening: Also require the port to accept connections.
        output: Sink for the child's output.
        on_exit: Called from the streaming thread when a child exits.
    """

    def __init__(
        self,
        argv: List[str],
        pid_store: PidStore,
        env: Optional[Dict[str, str]] = None,
        env_overload: bool = True,
        port_env: str = "HTTP_SERVER_PORT",
        pid_file_env: Optional[str] = "WATCHDOG_SERVER_PID_FILE",
        port_wait_timeout: float = 20,
        check_listening: bool = True,
        output: Optional[TextIO] = None,
        on_exit: Optional[ExitCallback] = None,
        poll_interval: float = POLL_INTERVAL,
    ):
        self.argv = list(argv)
        self.pid_store = pid_store
        self.env = dict(env or {})
        self.env_overload = env_overload
        self.port_env = port_env
        self.pid_file_env = pid_file_env
        self.port_wait_timeout = port_wait_timeout
        self.check_listening = check_listening
        self.output = output
        self.on_exit = on_exit
        self.poll_interval = poll_interval

    @classmethod
    def from_config(cls, config, **kwargs) -> "ServerLauncher":
        return cls(
            argv=config.argv,
            pid_store=PidStore(config.server_pid_file),
            env=config.env,
            env_overload=config.env_overload,
            port_env=config.port_env,
            pid_file_env=config.pid_file_env,
            port_wait_timeout=config.port_wait_timeout,
            check_listening=config.check_listening,
            **kwargs,
        )

    def build_env(self, port: int) -> Dict[str, str]:
        if self.env_overload:
            env = os.environ.copy()
        else:
            env = {"PATH": os.environ.get("PATH", os.defpath)}
        env.update(BASE_ENV)
        env.update(self.env)
        env[self.port_env] = str(port)
        if self.pid_file_env:
            env[self.pid_file_env] = str(self.pid_store.path)
        return env

    def start(self, port: int, timeout: float) -> int:
        """
        Start a server on `port` and return the pid it published.

        Raises:
            LaunchFailed: If the port stays occupied, the child exits early,
                or readiness is not reached within `timeout` seconds.
        """
        token = port_context.set(port)
        try:
            return self._start(port, timeout)
        finally:
            port_context.reset(token)

    def _start(self, port: int, timeout: float) -> int:
        deadline = time.monotonic() + timeout
        self.pid_store.clear()

        logger.info(f"Starting server [{port}]...")
        if not wait_port_free(port, min(self.port_wait_timeout, timeout)):
            raise LaunchFailed(f"Port [{port}] is not available.")

        instance = self._spawn(port)
        try:
            self._wait_ready(instance, port, timeout, deadline)
        except LaunchFailed:
            self._abandon(instance)
            raise

        pid = instance.pid
        logger.info(f"Server pid: {pid} started successfully. [{port}]")
        return pid

    def _wait_ready(self, instance: ServerInstance, port: int, timeout: float, deadline: float) -> None:
        while not self._is_ready(instance, port):
            if instance.exited.is_set():
                raise LaunchFailed(
                    f"Server exited with code {instance.returncode} before becoming ready. [{port}]"
                )
            if time.monotonic() > deadline:
                raise LaunchFailed(f"Failed to start server within {timeout} seconds. [{port}]")
            time.sleep(self.poll_interval)

    def _abandon(self, instance: ServerInstance) -> None:
        """
        Stop a child that never became ready so it cannot hold the port.

        SIGTERM first, SIGKILL if it is still there after ABANDON_GRACE. The
        launch has already missed its deadline, so this never waits longer.
        """
        if instance.exited.is_set():
            return
        logger.warning(f"Stopping server that failed to start. [{instance.port}]")
        instance.process.terminate()
        if not instance.exited.wait(ABANDON_GRACE):
            logger.warning(f"Server ignored SIGTERM, killing it. [{instance.port}]")
            instance.process.kill()

    def _is_ready(self, instance: ServerInstance, port: int) -> bool:
        if instance.exited.is_set():
            return False
        pid = self.pid_store.read()
        if not pid:
            return False
        if self.check_listening and is_port_free(port):
            return False
        instance.pid = pid
        return True

    def _spawn(self, port: int) -> ServerInstance:
        try:
            process = subprocess.Popen(
                self.argv,
                env=self.build_env(port),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                bufsize=1,
            )
        except OSError as e:
            raise LaunchFailed(f"Failed to spawn '{' '.join(self.argv)}': {e}") from e

        instance = ServerInstance(port=port, process=process)
        thread = threading.Thread(
            target=self._stream,
            args=(instance,),
            name=f"server-{port}-{process.pid}",
            daemon=True,
        )
        thread.start()
        return instance

    def _stream(self, instance: ServerInstance) -> None:
        """Copy the child's output to the sink, then record its exit."""
        output = self.output or sys.stdout
        process = instance.process
        try:
            for line in process.stdout:
                output.write(line)
                output.flush()
        except (OSError, ValueError) as e:
            logger.warning(f"Lost output of server [{instance.port}]: {e}")
        finally:
            process.stdout.close()
            instance.returncode = process.wait()
            instance.exited.set()

        logger.warning(f"Server stopped with code {instance.returncode}. [{instance.port}]")
        if self.on_exit is not None:
            try:
                self.on_exit(instance)
            except Exception:
                logger.exception(f"Exit handler failed for server [{instance.port}].")
