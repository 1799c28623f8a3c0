# src/bgwatch/config.py: Pydantic models for configuration.
# This module defines the schema of the 'watchdog.yaml' configuration file,
# loads and validates it, applies WATCHDOG_* environment overrides and
# resolves pid file paths relative to the file that declared them.

from __future__ import annotations

import os
import shlex
import signal
import yaml
from importlib import resources
from pathlib import Path
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from typing import Dict, List, Optional, Union

from .util.paths import get_default_config_path, get_runtime_dir, expand_path
from .util.errors import ConfigError

# Environment variables that override values from the file.
ENV_OVERRIDES = {
    "WATCHDOG_PID_FILE": ("watchdog_pid_file",),
    "WATCHDOG_SERVER_PID_FILE": ("server_pid_file",),
    "WATCHDOG_MAIN_SERVER_PORT": ("ports", "main"),
    "WATCHDOG_BACKUP_SERVER_PORT": ("ports", "backup"),
    "WATCHDOG_TIMEOUT": ("timeout",),
}

# --- Pydantic Models for Configuration Schema ---

class Ports(BaseModel):
    main: int = Field(9501, gt=0, lt=65536)
    backup: int = Field(9502, gt=0, lt=65536)

    @model_validator(mode="after")
    def _distinct(self) -> "Ports":
        if self.main == self.backup:
            raise ValueError("main and backup ports must differ")
        return self

class LoggingSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    level: str = "INFO"
    json_format: bool = Field(True, alias="json")

class WatchdogConfig(BaseModel):
    command: Union[str, List[str]]
    watchdog_pid_file: Path = Field(default_factory=lambda: get_runtime_dir() / "watchdog.pid")
    server_pid_file: Path = Field(default_factory=lambda: get_runtime_dir() / "server.pid")
    ports: Ports = Field(default_factory=Ports)
    timeout: float = Field(30, gt=0)
    port_wait_timeout: float = Field(20, gt=0)
    terminate_timeout: Optional[float] = Field(None, gt=0)
    env_overload: bool = True
    port_env: str = "HTTP_SERVER_PORT"
    pid_file_env: str = "WATCHDOG_SERVER_PID_FILE"
    env: Dict[str, str] = Field(default_factory=dict)
    reload_signal: str = "SIGWINCH"
    restart_on_exit: bool = True
    check_listening: bool = True
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("command")
    @classmethod
    def _non_empty_command(cls, value):
        if not (value.split() if isinstance(value, str) else value):
            raise ValueError("command must not be empty")
        return value

    @field_validator("reload_signal")
    @classmethod
    def _known_signal(cls, value: str) -> str:
        name = value.upper()
        if not name.startswith("SIG"):
            name = f"SIG{name}"
        if not hasattr(signal, name):
            raise ValueError(f"unknown signal '{value}'")
        return name

    @property
    def argv(self) -> List[str]:
        """The server command as an argument vector."""
        if isinstance(self.command, str):
            return shlex.split(self.command)
        return list(self.command)

    @property
    def signal_number(self) -> signal.Signals:
        return getattr(signal, self.reload_signal)

    @property
    def kill_timeout(self) -> float:
        return self.terminate_timeout or self.timeout


# --- Configuration Loading ---

def _apply_env_overrides(raw: dict) -> dict:
    """Copy WATCHDOG_* environment values into the raw config mapping."""
    for env_name, keys in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value is None or value == "":
            continue
        target = raw
        for key in keys[:-1]:
            target = target.setdefault(key, {})
        target[keys[-1]] = value
    return raw

def _resolve_paths(config: WatchdogConfig, base: Path) -> WatchdogConfig:
    return config.model_copy(update={
        "watchdog_pid_file": expand_path(config.watchdog_pid_file, base),
        "server_pid_file": expand_path(config.server_pid_file, base),
    })

def load_config(path: Optional[Path] = None) -> WatchdogConfig:
    """
    Loads, validates, and returns the watchdog configuration.

    Args:
        path: Explicit configuration file. Defaults to ./watchdog.yaml or the
            user config directory.

    Raises:
        ConfigError: If the file is missing, unreadable, or invalid.
    """
    config_path = Path(path) if path else get_default_config_path()
    if not config_path.is_file():
        raise ConfigError(
            f"Configuration file not found at '{config_path}'. "
            "Run 'bgwatch publish-config' to create one."
        )

    try:
        with open(config_path, "r") as f:
            raw_config = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Failed to read configuration file '{config_path}': {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing YAML configuration: {e}") from e

    if not isinstance(raw_config, dict):
        raise ConfigError(f"Configuration file '{config_path}' must contain a mapping.")

    try:
        config = WatchdogConfig.model_validate(_apply_env_overrides(raw_config))
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed: {e}") from e

    return _resolve_paths(config, config_path.resolve().parent)

def default_config_text() -> str:
    """The bundled default configuration file."""
    return resources.files("bgwatch").joinpath("publish/watchdog.yaml").read_text()

def publish_config(destination: Path, force: bool = False) -> Path:
    """
    Write the bundled default configuration to destination.

    Raises:
        ConfigError: If the destination exists and force is not set.
    """
    destination = Path(destination)
    if destination.exists() and not force:
        raise ConfigError(f"'{destination}' already exists. Use --force to overwrite it.")
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_text(default_config_text())
    return destination
