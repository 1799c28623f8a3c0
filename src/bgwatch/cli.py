# src/bgwatch/cli.py: Command-Line Interface (CLI) entry point.
# Implemented using Typer, this module provides the 'bgwatch' command: 'start'
# runs the watchdog in the foreground, 'update' asks a running watchdog for a
# blue/green restart, 'status' shows the pid files, and 'publish-config'
# writes the default configuration file.

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import WatchdogConfig, load_config, publish_config
from .daemon import run_watchdog
from .notifier import NotifyResult, notify
from .pidstore import PidStore
from .process import ProcessHandle
from .util.errors import WatchdogError
from .util.log import setup_logging
from .util.paths import CONFIG_FILE_NAME

app = typer.Typer(
    name="bgwatch",
    help="A watchdog that keeps a server alive and restarts it without downtime.",
    add_completion=False,
)
console = Console(stderr=True)


def version_callback(value: bool):
    """Print the version and exit."""
    if value:
        print(f"bgwatch version: {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help=f"Path to the {CONFIG_FILE_NAME} configuration file.",
    ),
    version: Optional[bool] = typer.Option(
        None, "--version", callback=version_callback, is_eager=True
    ),
):
    """
    bgwatch CLI.
    """
    ctx.obj = config_path


def get_config(ctx: typer.Context) -> WatchdogConfig:
    """Loads the config, sets up logging and handles errors."""
    try:
        config = load_config(ctx.obj)
    except WatchdogError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(e.exit_code)
    setup_logging(config.logging)
    return config


@app.command()
def start(ctx: typer.Context):
    """Start the watchdog and the managed server (runs in the foreground)."""
    config = get_config(ctx)
    try:
        code = run_watchdog(config)
    except WatchdogError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(e.exit_code)
    raise typer.Exit(code)


@app.command()
def update(ctx: typer.Context):
    """Ask the running watchdog for a zero-downtime restart."""
    config = get_config(ctx)
    result, pid = notify(config.watchdog_pid_file, config.signal_number)

    if result is NotifyResult.NOT_RUNNING:
        console.print("[bold red]Watchdog process is not running.[/bold red]")
    elif result is NotifyResult.INVALID_PID:
        console.print("[bold red]Pid file is invalid.[/bold red]")
    elif result is NotifyResult.NOT_FOUND:
        console.print(f"[yellow]Watchdog process [{pid}] doesn't exist.[/yellow]")
    elif result is NotifyResult.FAILED:
        console.print(f"[bold red]Broadcast update signal to watchdog process [{pid}] failed.[/bold red]")
    else:
        console.print(f"[bold green]Broadcast update signal to watchdog process [{pid}] successfully.[/bold green]")


@app.command()
def status(ctx: typer.Context):
    """Show the watchdog and server pid files and whether they are alive."""
    config = get_config(ctx)

    table = Table()
    table.add_column("Process", no_wrap=True)
    table.add_column("Pid file", overflow="fold")
    table.add_column("Pid", no_wrap=True)
    table.add_column("Alive", no_wrap=True)
    for label, path in (
        ("watchdog", config.watchdog_pid_file),
        ("server", config.server_pid_file),
    ):
        pid = PidStore(path).read()
        alive = bool(pid) and ProcessHandle(pid).is_running()
        table.add_row(
            label,
            str(path),
            str(pid) if pid else "-",
            "[green]yes[/green]" if alive else "[red]no[/red]",
        )
    console.print(table)
    console.print(f"Ports: main [bold]{config.ports.main}[/bold], backup [bold]{config.ports.backup}[/bold]")


@app.command("publish-config")
def publish_config_command(
    destination: Path = typer.Argument(
        Path(CONFIG_FILE_NAME), help="Where to write the configuration file."
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file."),
):
    """Write the default configuration file."""
    try:
        path = publish_config(destination, force=force)
    except WatchdogError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(e.exit_code)
    console.print(f"Configuration written to [bold green]{path}[/bold green]")


if __name__ == "__main__":
    app()
