"""Tunnel-and-monitor CLI command."""

import asyncio
import os
from typing import List, Optional

import click
from rich.console import Console
from rich.markup import escape

from ..config.profile import load_profile
from ..config.settings import ConnectionConfig, PcssConfig
from ..core.discovery import Job, discover_running
from ..core.tunnels import TunnelManager
from ..errors import PcssError
from ..remote.session import SshSession
from ..utils.logging import get_logger
from .dashboard import Dashboard


@click.command("tunnel")
@click.pass_context
def tunnel_cmd(ctx):
    """Forward a local port to every running job's dashboard and watch them."""
    console: Console = ctx.obj["console"]
    settings: PcssConfig = ctx.obj["settings"]
    logger = get_logger()

    try:
        jobs = asyncio.run(find_jobs(settings))
        if not jobs:
            console.print("[yellow]No running jobs with a dashboard found[/yellow]")
            return

        manager = TunnelManager(
            settings.connection.host,
            settings.tunnel,
            ssh_config=_forward_ssh_config(settings.connection),
        )
        manager.open_tunnels(jobs)
        Dashboard(manager, console=console, tick=settings.tunnel.refresh_interval).run()

    except PcssError as e:
        logger.debug(f"Tunnel failed with {type(e).__name__}")
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise click.Abort()


async def find_jobs(settings: PcssConfig) -> List[Job]:
    """Connect and list running jobs that expose a dashboard."""
    profile = load_profile(settings.connection.host, settings.connection.ssh_config)
    async with await SshSession.connect(profile, settings.connection.verify_host_key) as session:
        return await discover_running(session, settings.tunnel)


def _forward_ssh_config(connection: ConnectionConfig) -> Optional[str]:
    # -F replaces both the user and system config, so only pass a non-default file
    if connection.ssh_config == ConnectionConfig().ssh_config:
        return None
    return os.path.expanduser(connection.ssh_config)
