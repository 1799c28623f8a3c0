# src/bgwatch/util/fs.py: Filesystem utilities.
# Pid files are read by other processes while they are being replaced, so every
# write goes through a temporary file and an atomic rename.

import os
from pathlib import Path


def atomic_write(path: str | Path, content: str):
    """Write content to a file atomically."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = f"{path}.{os.getpid()}.tmp"
    with open(temp_path, "w") as f:
        f.write(content)
    os.replace(temp_path, path)


def remove_if_exists(path: str | Path) -> bool:
    """Remove a file, returning False when it was already gone."""
    try:
        os.remove(path)
    except FileNotFoundError:
        return False
    return True
