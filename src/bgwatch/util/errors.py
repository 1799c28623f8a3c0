# src/bgwatch/util/errors.py: Typed exceptions and exit codes.
# Every failure the watchdog can report maps to one of these types. The control
# loop decides which of them are fatal, and the CLI turns the exit_code of an
# uncaught error into the process exit status.

class WatchdogError(Exception):
    """Base exception for the application."""
    exit_code = 1

class ConfigError(WatchdogError):
    """Configuration-related errors."""
    exit_code = 2

class LaunchFailed(WatchdogError):
    """The managed server exited, never bound its port, or missed its deadline."""
    exit_code = 3

class TerminationFailed(WatchdogError):
    """A process outlived its termination deadline."""
    exit_code = 4

class PrerequisiteMissing(WatchdogError):
    """A blue/green restart was requested before any server was running."""
    exit_code = 5

class SignalDeliveryFailed(WatchdogError):
    """The reload signal could not be delivered."""
    exit_code = 6

class AlreadyRunning(WatchdogError):
    """Another watchdog instance holds the lock."""
    exit_code = 7
