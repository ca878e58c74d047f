# ec_demo/main.py

from pathlib import Path

import click

from ec_demo.cli.main import ecd
from ec_demo.core.config_manager import DEFAULT_CONFIG_PATH
from ec_demo.core.drivers import DRIVERS


@click.group(context_settings=dict(help_option_names=['-h', '--help']))
def main():
    """
    EC Demo: a live telemetry dashboard for an embedded controller.

    Use the 'gui' command for the dashboard, or 'cli' for the headless tools.

    Example (GUI): python -m ec_demo.main gui --bin mock-bin
    Example (CLI): python -m ec_demo.main cli --help
    """
    pass


@click.command()
@click.option('-b', '--bin', 'bin_path',
              type=click.Path(exists=True, file_okay=True, dir_okay=False, readable=True, path_type=Path),
              default=None, help="Firmware ELF to attach at startup.")
@click.option('--driver', type=click.Choice(sorted(DRIVERS), case_sensitive=False), default=None,
              help="Notification driver (defaults to the settings file).")
@click.option('--config', type=click.Path(file_okay=True, dir_okay=False, path_type=Path),
              default=DEFAULT_CONFIG_PATH, help="Path to a custom settings.json.")
def gui(bin_path: Path, driver: str, config: Path):
    """Launches the dashboard."""
    # Qt is only imported when the dashboard is actually requested.
    from ec_demo.gui.main_window import run_gui
    run_gui(bin_path=bin_path, driver=driver, config_path=config)


main.add_command(gui)
main.add_command(ecd, name='cli')

if __name__ == '__main__':
    main()
