"""Main CLI entry point for pcss."""

from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape

from .. import __version__
from ..config.settings import PcssConfig
from ..errors import ConfigError
from ..utils.logging import setup_logging
from .config import config_cmd
from .queue import queue_cmd
from .tunnel import tunnel_cmd

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="pcss")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-error output")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(path_type=Path),
    help="Path to the pcss settings file",
)
@click.option("--host", "-H", help="SSH host alias (overrides connection.host)")
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    config_path: Optional[Path],
    host: Optional[str],
):
    """pcss - deploy simulation jobs to a SLURM cluster and tunnel into them."""

    # Ensure that ctx.obj exists and is a dict
    ctx.ensure_object(dict)
    ctx.obj.setdefault("console", console)

    try:
        settings = PcssConfig.load(config_path)
    except ConfigError as e:
        ctx.obj["console"].print(f"[red]Error: {escape(str(e))}[/red]")
        raise click.Abort()

    if host:
        settings.connection.host = host

    if quiet:
        log_level = "ERROR"
    elif verbose:
        log_level = "DEBUG"
    else:
        log_level = settings.logging.level

    log_file = Path(settings.logging.file) if settings.logging.file else None
    ctx.obj["logger"] = setup_logging(log_level, log_file)
    ctx.obj["settings"] = settings


cli.add_command(queue_cmd)  # pcss queue TEMPLATE INPUT_DIR [DEST_ROOT]
cli.add_command(tunnel_cmd)  # pcss tunnel
cli.add_command(config_cmd)  # pcss config init/show


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
