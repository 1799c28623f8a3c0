"""bgwatch: keeps one server alive and restarts it blue/green on a signal."""

__version__ = "0.1.0"
