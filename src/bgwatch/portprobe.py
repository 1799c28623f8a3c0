# src/bgwatch/portprobe.py: TCP port probing.
# A port counts as "in use" when a connection to it on localhost succeeds. The
# launcher uses this both to wait for a port to be released by an outgoing
# server and to confirm that a new server has actually bound its port.

import socket
import time

from .util.log import get_logger

logger = get_logger(__name__)

LOCALHOST = "127.0.0.1"


def is_port_free(port: int, connect_timeout: float = 1.0, host: str = LOCALHOST) -> bool:
    """Return True when nothing accepts connections on the port."""
    try:
        connection = socket.create_connection((host, port), timeout=connect_timeout)
    except OSError:
        return True
    connection.close()
    return False


def wait_port_free(port: int, timeout: float, interval: float = 1.0, connect_timeout: float = 1.0) -> bool:
    """
    Poll until the port is free or the timeout elapses.

    Logs a single warning the first time the port is found occupied.
    """
    start = time.monotonic()
    has_warned = False
    while time.monotonic() - start < timeout:
        if is_port_free(port, connect_timeout):
            logger.info(f"Port [{port}] is available.")
            return True
        if not has_warned:
            has_warned = True
            logger.warning(f"Port [{port}] is still in use, waiting...")
        remaining = timeout - (time.monotonic() - start)
        time.sleep(max(0.0, min(interval, remaining)))
    return False
