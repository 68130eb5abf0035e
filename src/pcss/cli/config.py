"""Settings CLI commands."""

from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.syntax import Syntax
import yaml

from ..config.settings import PcssConfig
from ..utils.logging import get_logger


@click.group("config")
@click.pass_context
def config_cmd(ctx):
    """Settings file management commands."""
    pass


@config_cmd.command("init")
@click.argument("path", type=click.Path(path_type=Path), required=False)
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing settings file")
@click.pass_context
def init_cmd(ctx, path: Optional[Path], force: bool):
    """Write a commented default settings file."""
    console: Console = ctx.obj["console"]
    logger = get_logger()

    path = path or PcssConfig.search_paths()[-1]

    if path.exists() and not force:
        console.print(f"[yellow]Settings already exist at {path}[/yellow]")
        console.print("Use --force to overwrite")
        return

    try:
        PcssConfig.create_default_config(path)
    except OSError as e:
        logger.error(f"Failed to write settings: {e}")
        console.print(f"[red]Error: {e}[/red]")
        raise click.Abort()

    console.print(f"[green]✓ Created settings at {path}[/green]")


@config_cmd.command("show")
@click.pass_context
def show_cmd(ctx):
    """Show the settings in effect."""
    console: Console = ctx.obj["console"]
    settings: PcssConfig = ctx.obj["settings"]

    content = yaml.dump(settings.to_dict(), default_flow_style=False, sort_keys=False)
    console.print(Syntax(content, "yaml"))
