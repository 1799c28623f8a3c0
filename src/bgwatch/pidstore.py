# src/bgwatch/pidstore.py: Pid file storage.
# Two pid files coordinate the processes involved: the watchdog publishes its
# own pid for the 'update' command, and the managed server publishes its pid
# once it is ready to accept connections.

from pathlib import Path
from typing import Optional

from .util.fs import atomic_write, remove_if_exists
from .util.log import get_logger

logger = get_logger(__name__)


class PidStore:
    """A file holding a single decimal process id."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def write(self, pid: int) -> None:
        atomic_write(self.path, f"{pid}\n")

    def read(self) -> Optional[int]:
        """
        Returns the stored pid.

        None means nothing has been published yet (missing or empty file).
        0 means the file holds something that is not a positive integer;
        callers treat it as invalid.
        """
        try:
            content = self.path.read_text().strip()
        except FileNotFoundError:
            return None
        if not content:
            return None
        try:
            pid = int(content)
        except ValueError:
            logger.warning(f"Pid file '{self.path}' holds an invalid value: {content!r}")
            return 0
        return pid if pid > 0 else 0

    def clear(self) -> None:
        if remove_if_exists(self.path):
            logger.debug(f"Removed pid file '{self.path}'.")

    def __repr__(self) -> str:
        return f"PidStore({str(self.path)!r})"
