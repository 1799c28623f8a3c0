# src/bgwatch/util/paths.py: Default path resolution.
# Resolves where the watchdog keeps its configuration and runtime files when
# the configuration does not say otherwise. Runtime files (pid files, the
# instance lock) live in the per-user runtime directory.

import os
from pathlib import Path
import platformdirs

APP_NAME = "bgwatch"
CONFIG_FILE_NAME = "watchdog.yaml"

def get_config_home() -> Path:
    """Get the per-user configuration directory for the application."""
    return Path(platformdirs.user_config_dir(APP_NAME))

def get_runtime_dir() -> Path:
    """Get the per-user runtime directory used for pid files."""
    return Path(platformdirs.user_runtime_dir(APP_NAME))

def get_default_config_path() -> Path:
    """Prefer ./watchdog.yaml, falling back to the user config directory."""
    local = Path.cwd() / CONFIG_FILE_NAME
    if local.is_file():
        return local
    return get_config_home() / CONFIG_FILE_NAME

def expand_path(path: str | Path, base: Path | None = None) -> Path:
    """Expand ~ and environment variables; anchor relative paths at base."""
    expanded = Path(os.path.expandvars(os.path.expanduser(str(path))))
    if not expanded.is_absolute() and base is not None:
        expanded = base / expanded
    return expanded.resolve()
