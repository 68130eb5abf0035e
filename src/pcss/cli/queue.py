"""Deploy-and-submit CLI command."""

import asyncio
from pathlib import Path
import posixpath
from typing import List, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..config.profile import load_profile
from ..config.settings import PcssConfig
from ..core.deployer import check_template, deploy
from ..core.launcher import (
    SubmittedJob,
    build_submit_command,
    job_name_for,
    launch,
    results_dir_for,
)
from ..core.paths import PathMapping, map_paths
from ..errors import PcssError
from ..remote.session import SshSession, quote_path
from ..utils.logging import get_logger


@click.command("queue")
@click.argument("template", type=click.Path(path_type=Path))
@click.argument("input_dir", type=click.Path(path_type=Path))
@click.argument("dest_root", required=False)
@click.option("--dry-run", "-d", is_flag=True, help="Show what would be uploaded and submitted")
@click.pass_context
def queue_cmd(
    ctx, template: Path, input_dir: Path, dest_root: Optional[str], dry_run: bool
):
    """Upload the job files in INPUT_DIR and submit each one with TEMPLATE.

    Files land in DEST_ROOT/<name of INPUT_DIR>/ on the cluster; DEST_ROOT
    defaults to jobs.remote_root from the settings file.
    """
    console: Console = ctx.obj["console"]
    settings: PcssConfig = ctx.obj["settings"]
    logger = get_logger()

    dest_root = dest_root or settings.jobs.remote_root

    try:
        check_template(template)
        mapping = map_paths(input_dir, dest_root, settings.jobs.job_extension)

        if dry_run:
            console.print("[yellow]Dry run mode - nothing is uploaded or submitted[/yellow]")
            _show_dry_run(console, settings, mapping, template, dest_root)
            return

        submitted = asyncio.run(run_queue(settings, template, mapping, dest_root))

    except PcssError as e:
        logger.debug(f"Queue failed with {type(e).__name__}")
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise click.Abort()

    console.print(f"[green]✓ Submitted {len(submitted)} job(s)[/green]")
    for job in submitted:
        console.print(f"  {job.name}" + (f" ({job.job_id})" if job.job_id else ""))


async def run_queue(
    settings: PcssConfig, template: Path, mapping: PathMapping, jobs_root: str
) -> List[SubmittedJob]:
    """Connect, deploy the mapping and the template, then submit every job."""
    logger = get_logger()

    profile = load_profile(settings.connection.host, settings.connection.ssh_config)
    async with await SshSession.connect(profile, settings.connection.verify_host_key) as session:
        logger.info("SSH connection successful")
        deployment = await deploy(session, mapping, template, jobs_root)
        submitted = await launch(
            session,
            deployment.remote_job_files,
            deployment.remote_template,
            results_extension=settings.jobs.results_extension,
            log_filename=settings.jobs.log_filename,
        )
        logger.info("All jobs started successfully")
    return submitted


def _show_dry_run(
    console: Console, settings: PcssConfig, mapping: PathMapping, template: Path, jobs_root: str
) -> None:
    table = Table(title=f"Upload plan ({settings.connection.host})")
    table.add_column("Local", style="cyan")
    table.add_column("Remote", style="green")
    for local, remote in mapping:
        table.add_row(str(local), remote)
    remote_template = posixpath.join(jobs_root, template.name)
    table.add_row(str(template), remote_template)
    console.print(table)

    console.print("[cyan]Commands:[/cyan]")
    console.print(f"  mkdir -p {quote_path(mapping.remote_dir)}", markup=False, soft_wrap=True)
    for remote in mapping.remote_paths:
        results_dir = results_dir_for(remote, settings.jobs.results_extension)
        console.print(f"  mkdir -p {quote_path(results_dir)}", markup=False, soft_wrap=True)
        command = build_submit_command(
            job_name_for(remote), results_dir, remote_template, remote, settings.jobs.log_filename
        )
        console.print(f"  {command}", markup=False, soft_wrap=True)
