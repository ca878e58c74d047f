# ec_demo/cli/main.py

import logging
import sys
import time
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table as RichTable
from rich.text import Text

from ec_demo.core.config_manager import DEFAULT_CONFIG_PATH, load_config
from ec_demo.core.debug_session import DebugSession
from ec_demo.core.defmt_table import Level, Table
from ec_demo.core.drivers import DRIVERS, create_driver
from ec_demo.core.errors import LifecycleError, MetadataError
from ec_demo.core.log_view import LEVEL_WIDTH, LineKind, LogLine
from ec_demo.core.mock_elf import write_mock_elf
from ec_demo.core.notifications import NotificationService
from ec_demo.core.sources import MockSource
from ec_demo.utils.logger import setup_logging

console = Console()
logger = logging.getLogger(__name__)

LEVEL_STYLES = {
    Level.TRACE: "bright_black",
    Level.DEBUG: "white",
    Level.INFO: "green",
    Level.WARN: "yellow",
    Level.ERROR: "red",
}
META_STYLE = "cyan"


def render_line(line: LogLine) -> Text:
    """Turns a log-pane row into rich Text. Log content is never parsed as markup."""
    text = Text(line.text)
    if line.kind is LineKind.META:
        text.stylize(META_STYLE)
    elif line.level is not None:
        text.stylize(LEVEL_STYLES[line.level], line.level_offset, line.level_offset + LEVEL_WIDTH)
    return text


@click.group(context_settings=dict(help_option_names=['-h', '--help']))
@click.version_option(version="0.1.0", prog_name="EC Demo")
def ecd():
    """
    EC Demo - headless tools for the embedded-controller debug log.

    Use `[COMMAND] --help` for more information on a specific command.
    """
    pass


@ecd.command()
@click.option('-b', '--bin', 'bin_path',
              type=click.Path(exists=True, file_okay=True, dir_okay=False, readable=True, path_type=Path),
              required=True, help="Firmware ELF carrying the `.defmt` table.")
@click.option('--driver', type=click.Choice(sorted(DRIVERS), case_sensitive=False), default=None,
              help="Notification driver (defaults to the settings file).")
@click.option('-n', '--frames', type=click.IntRange(min=0), default=0, show_default=True,
              help="Stop after this many decoded frames; 0 runs until Ctrl+C.")
@click.option('--config', type=click.Path(file_okay=True, dir_okay=False, path_type=Path),
              default=DEFAULT_CONFIG_PATH, help="Path to a custom settings.json.")
def tail(bin_path: Path, driver: str, frames: int, config: Path):
    """Streams decoded debug logs to the terminal."""
    setup_logging(console=False)
    settings = load_config(config).with_overrides(driver=driver, bin_path=bin_path)

    try:
        service = NotificationService(create_driver(settings.driver), queue_capacity=settings.queue_capacity)
    except LifecycleError as e:
        console.print(f"[bold red]{e}[/bold red]")
        logger.error("CLI tail command could not start the notification service.", exc_info=True)
        sys.exit(1)

    with service, DebugSession(MockSource(), service, settings.bin_path, settings.max_logs) as session:
        console.print(f"[bold cyan]{session.title}[/bold cyan]")
        for line in session.log_view.snapshot():
            console.print(render_line(line))
        if not session.attached:
            sys.exit(1)

        try:
            while frames == 0 or session.frames_decoded < frames:
                time.sleep(settings.tick_ms / 1000)
                for line in session.update():
                    console.print(render_line(line))
        except KeyboardInterrupt:
            console.print("[yellow]Stopped.[/yellow]")


@ecd.command()
@click.argument('elf', type=click.Path(exists=True, file_okay=True, dir_okay=False, readable=True, path_type=Path))
def table(elf: Path):
    """Lists the interned strings of a firmware ELF."""
    try:
        defmt_table = Table.parse(elf.read_bytes())
    except MetadataError as e:
        console.print(f"[bold red]Failed to read {elf.name}: {e}[/bold red]")
        sys.exit(1)

    view = RichTable(title=f"{elf.name} (defmt v{defmt_table.version})", style="cyan", title_style="bold magenta")
    view.add_column("Index", style="green", justify="right")
    view.add_column("Tag", style="blue")
    view.add_column("String", style="yellow")
    for index, entry in defmt_table.items():
        view.add_row(str(index), entry.tag, entry.string)
    console.print(view)


@ecd.command(name="mock-bin")
@click.argument('output', type=click.Path(file_okay=True, dir_okay=False, path_type=Path), default=Path("mock-bin"))
def mock_bin(output: Path):
    """Writes the mock firmware ELF that matches the mock data source."""
    path = write_mock_elf(output)
    console.print(f"[bold green]Mock ELF written to[/bold green] [bright_magenta]{path}[/bright_magenta]")
    console.print(f"Try: ec-demo gui --bin {path}")
